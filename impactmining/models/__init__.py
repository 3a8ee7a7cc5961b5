from __future__ import annotations

from typing import Dict, Type

from impactmining.extensions import db

from .account import Account
from .donation import Donation
from .profile import PROFILE_ROLES, Profile
from .project import PROJECT_STATUSES, Project
from .story import Story
from .submission import SUBMISSION_STATUSES, DoneeSubmission

# Collection name (as addressed through the data client) -> mapped model
MODEL_BY_COLLECTION: Dict[str, Type[db.Model]] = {
    "profiles": Profile,
    "projects": Project,
    "donations": Donation,
    "stories": Story,
    "donee_submissions": DoneeSubmission,
}

__all__ = [
    "db",
    "Account",
    "Donation",
    "DoneeSubmission",
    "Profile",
    "Project",
    "Story",
    "MODEL_BY_COLLECTION",
    "PROFILE_ROLES",
    "PROJECT_STATUSES",
    "SUBMISSION_STATUSES",
]
