from .auth import SignInForm, SignUpForm
from .donation import DonationForm, ProjectDonationForm
from .story import StoryForm
from .submission import SubmissionForm

__all__ = [
    "SignInForm",
    "SignUpForm",
    "DonationForm",
    "ProjectDonationForm",
    "StoryForm",
    "SubmissionForm",
]
