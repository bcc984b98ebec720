"""Form validation for participant, submission and review input.

Validation happens before any database call; callers receive a list of
human-readable messages (one per invalid field) instead of an exception.
"""

from __future__ import annotations

from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from fieldreport.db.models.submission import Gender

M = TypeVar("M", bound=BaseModel)


class ParticipantIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=120)
    age: int = Field(gt=0)
    phone_number: str = Field(min_length=1, max_length=40)
    gender: Gender

    @field_validator("gender", mode="before")
    @classmethod
    def _normalize_gender(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("age", mode="before")
    @classmethod
    def _strip_age(cls, v):
        return v.strip() if isinstance(v, str) else v

    def identity(self) -> dict:
        return {"name": self.name, "age": self.age, "phone_number": self.phone_number, "gender": self.gender}


class SubmissionIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    activity_stream: str = Field(default="", max_length=120)
    specific_location: str = Field(default="", max_length=255)
    community_group_type: str = Field(min_length=1, max_length=120)
    participant_count: int = Field(ge=1)
    key_issues: str = ""
    project_id: int | None = None

    @field_validator("project_id", mode="before")
    @classmethod
    def _blank_project(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


FIELD_MESSAGES = {
    "name": "Name is required.",
    "age": "Age must be a positive whole number.",
    "phone_number": "Phone number is required.",
    "gender": "Gender must be one of: male, female, other.",
    "community_group_type": "Community group type is required.",
    "participant_count": "Participant count must be at least 1.",
    "activity_stream": "Activity stream is too long.",
    "specific_location": "Location is too long.",
    "project_id": "Project is not valid.",
}


def parse_form(model: type[M], data: dict) -> tuple[M | None, list[str]]:
    """Validate ``data`` into ``model``.

    Returns (instance, []) or (None, messages).
    """
    try:
        return model.model_validate(data), []
    except ValidationError as exc:
        errors: list[str] = []
        for err in exc.errors():
            loc = err.get("loc") or ("",)
            name = str(loc[0])
            msg = FIELD_MESSAGES.get(name, f"{name}: {err.get('msg', 'invalid value')}")
            if msg not in errors:
                errors.append(msg)
        return None, errors


def clean_note(note: str | None) -> str:
    return (note or "").strip()
