from __future__ import annotations

from flask_wtf import FlaskForm
from wtforms import StringField, TextAreaField
from wtforms.validators import DataRequired, Length


class StoryForm(FlaskForm):
    title = StringField(
        "Story Title",
        validators=[DataRequired(message="Please give your story a title."), Length(max=200)],
        render_kw={"placeholder": "Give your story a compelling title"},
    )
    body_md = TextAreaField(
        "Your Story",
        validators=[DataRequired(message="Please write your story.")],
        render_kw={
            "rows": 8,
            "placeholder": "Tell us about your experience, the impact you've witnessed, "
            "or how our projects have made a difference...",
        },
    )
