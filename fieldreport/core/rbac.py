from __future__ import annotations

from fastapi import HTTPException

from fieldreport.db.models.user import User, Role
from fieldreport.db.models.submission import Submission


def require(condition: bool, msg: str = "Access denied", status_code: int = 403) -> None:
    """Small helper used across routers.

    Defaults to 403 (permission denied). For validation errors or not-found cases,
    pass `status_code=400/404`.
    """
    if not condition:
        raise HTTPException(status_code=status_code, detail=msg)


def is_admin(user: User) -> bool:
    return user.role == Role.ADMIN


def is_project_admin(user: User) -> bool:
    return user.role == Role.PROJECT_ADMIN


def is_promoter(user: User) -> bool:
    return user.role == Role.PROMOTER


def is_reviewer(user: User) -> bool:
    # Reviewers approve/reject submitted reports.
    return user.role in (Role.PROJECT_ADMIN, Role.ADMIN)


def is_owner(user: User, submission: Submission) -> bool:
    return submission.submitted_by == user.id


def can_create_submission(user: User) -> bool:
    return user.role in (Role.PROMOTER, Role.PROJECT_ADMIN, Role.ADMIN)


def can_view_submission(user: User, submission: Submission) -> bool:
    if is_reviewer(user):
        return True
    return is_owner(user, submission)


def can_modify_submission(user: User, submission: Submission) -> bool:
    """Author or reviewer; whether the status allows edits is workflow.can_edit."""
    return is_reviewer(user) or is_owner(user, submission)
