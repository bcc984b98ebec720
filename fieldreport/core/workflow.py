"""Workflow / State Machine for submissions.

This module centralizes *all* status rules in one place:
   - allowed actions per (status, role, ownership)
   - state transitions
   - which transitions record a review and which require a note
   - content editability per state

Statuses are handled as ``SubmissionStatus`` members only; raw strings are
converted on the way in so an unknown status fails loudly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import assert_never

from fieldreport.core.rbac import can_modify_submission
from fieldreport.db.models.submission import Submission, SubmissionStatus
from fieldreport.db.models.user import Role, User


Action = str  # "submit" | "approve" | "reject" | "resubmit"

REVIEWER_ROLES: tuple[Role, ...] = (Role.PROJECT_ADMIN, Role.ADMIN)
AUTHOR_ROLES: tuple[Role, ...] = (Role.PROMOTER, Role.PROJECT_ADMIN, Role.ADMIN)


@dataclass(frozen=True, slots=True)
class Transition:
    """One transition edge in the state machine."""

    from_status: SubmissionStatus
    action: Action
    to_status: SubmissionStatus
    actor_roles: tuple[Role, ...]
    # Author actions: a promoter may only act on their own submission.
    owner_only: bool = False
    # Review actions write reviewed_by/reviewed_at/review_notes as a unit.
    records_review: bool = False
    requires_note: bool = False


# ---- State machine configuration ----


TRANSITIONS: tuple[Transition, ...] = (
    # Legacy draft path
    Transition(
        from_status=SubmissionStatus.DRAFT,
        action="submit",
        to_status=SubmissionStatus.SUBMITTED,
        actor_roles=AUTHOR_ROLES,
        owner_only=True,
    ),
    Transition(
        from_status=SubmissionStatus.SUBMITTED,
        action="approve",
        to_status=SubmissionStatus.APPROVED,
        actor_roles=REVIEWER_ROLES,
        records_review=True,
    ),
    Transition(
        from_status=SubmissionStatus.SUBMITTED,
        action="reject",
        to_status=SubmissionStatus.REJECTED,
        actor_roles=REVIEWER_ROLES,
        records_review=True,
        requires_note=True,
    ),
    # Saving edits never changes status; resubmission is its own action.
    Transition(
        from_status=SubmissionStatus.REJECTED,
        action="resubmit",
        to_status=SubmissionStatus.SUBMITTED,
        actor_roles=AUTHOR_ROLES,
        owner_only=True,
    ),
)

ACTION_LABELS = {
    "submit": "Submit for review",
    "approve": "Approve",
    "reject": "Reject",
    "resubmit": "Resubmit",
}


def as_status(status: SubmissionStatus | str) -> SubmissionStatus:
    return status if isinstance(status, SubmissionStatus) else SubmissionStatus(status)


def get_transition(status: SubmissionStatus | str, action: Action) -> Transition:
    st = as_status(status)
    for t in TRANSITIONS:
        if t.from_status == st and t.action == action:
            return t
    raise KeyError(f"no transition '{action}' from '{st.value}'")


def allowed_actions_for_status(status: SubmissionStatus | str) -> tuple[Action, ...]:
    st = as_status(status)
    return tuple(t.action for t in TRANSITIONS if t.from_status == st)


def _actor_may(user: User, submission: Submission, t: Transition) -> bool:
    if user.role not in t.actor_roles:
        return False
    # Admins may act on behalf of the author.
    if t.owner_only and user.role != Role.ADMIN:
        return submission.submitted_by == user.id
    return True


def can_act(user: User, submission: Submission, action: Action) -> bool:
    try:
        t = get_transition(submission.status, action)
    except KeyError:
        return False
    return _actor_may(user, submission, t)


def allowed_actions(user: User, submission: Submission) -> list[Action]:
    """Actions this user can execute on the submission right now."""
    out: list[Action] = []
    for action in allowed_actions_for_status(submission.status):
        if can_act(user, submission, action):
            out.append(action)
    return out


def is_editable(status: SubmissionStatus | str) -> bool:
    match as_status(status):
        case SubmissionStatus.DRAFT | SubmissionStatus.SUBMITTED | SubmissionStatus.REJECTED:
            return True
        case SubmissionStatus.APPROVED:
            return False
        case unreachable:
            assert_never(unreachable)


def can_edit(user: User, submission: Submission) -> bool:
    """Whether user can edit content or participants *right now*.

    Rule: the author or a reviewer, and only while the status is editable.
    """
    return is_editable(submission.status) and can_modify_submission(user, submission)
