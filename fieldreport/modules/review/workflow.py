"""Status changes of a submission: approve, reject, submit, resubmit.

Each action is one transaction: status, reviewer fields, the workflow log and
the author's notification are committed together or not at all.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fieldreport.core.outcome import Outcome, OutcomeKind
from fieldreport.core.workflow import Action, ACTION_LABELS, can_act, get_transition
from fieldreport.db.base import utcnow
from fieldreport.db.models.submission import Submission, SubmissionStatus
from fieldreport.db.models.user import User
from fieldreport.db.models.workflow_log import WorkflowLog
from fieldreport.utils.forms import clean_note
from fieldreport.utils.notify import notify

logger = logging.getLogger("fieldreport.review")

NOTE_REQUIRED = "Please provide review notes explaining why the submission is being rejected."

_ERROR_MESSAGES = {
    "approve": "Failed to approve submission. Please try again.",
    "reject": "Failed to reject submission. Please try again.",
    "submit": "Failed to submit. Please try again.",
    "resubmit": "Failed to resubmit. Please try again.",
}


def _notify_author(db: Session, s: Submission, action: Action, note: str) -> None:
    if action == "approve":
        notify(db, s.submitted_by, f"Submission #{s.id} has been approved.", submission_id=s.id, type="approved")
    elif action == "reject":
        notify(
            db,
            s.submitted_by,
            f"Submission #{s.id} has been rejected: {note}",
            submission_id=s.id,
            type="rejected",
        )


def apply_action(
    db: Session,
    submission_id: int,
    actor: User,
    action: Action,
    note: str = "",
    now: datetime | None = None,
) -> Outcome:
    try:
        s = (
            db.query(Submission)
            .filter(Submission.id == submission_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if s is None:
            return Outcome.fail(OutcomeKind.NOT_FOUND, "Submission not found.")

        try:
            t = get_transition(s.status, action)
        except KeyError:
            db.rollback()
            return Outcome.fail(
                OutcomeKind.CONFLICT,
                f"Cannot {ACTION_LABELS.get(action, action).lower()} a submission that is {s.status.value}.",
            )
        if not can_act(actor, s, action):
            db.rollback()
            return Outcome.fail(OutcomeKind.FORBIDDEN, "You are not allowed to perform this action.")
        note = clean_note(note)
        if t.requires_note and not note:
            db.rollback()
            return Outcome.invalid([NOTE_REQUIRED])

        ts = now or utcnow()
        from_status = s.status
        s.status = t.to_status
        if t.records_review:
            s.reviewed_by = actor.id
            s.reviewed_at = ts
            s.review_notes = note if t.requires_note else None
        if t.to_status == SubmissionStatus.SUBMITTED:
            s.submitted_at = ts

        db.add(
            WorkflowLog(
                submission_id=s.id,
                actor_id=actor.id,
                from_status=from_status.value,
                to_status=t.to_status.value,
                action=action,
                comment=note or "",
            )
        )
        _notify_author(db, s, action, note)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error applying '%s' to submission %s", action, submission_id)
        return Outcome.fail(OutcomeKind.ERROR, _ERROR_MESSAGES.get(action, "Action failed."))

    # Reload the whole record so status banner and buttons agree.
    db.refresh(s)
    logger.info(
        "Submission %s: %s -> %s by user %s", s.id, from_status.value, s.status.value, actor.id
    )
    return Outcome.success(s)


def approve(db: Session, submission_id: int, reviewer: User, now: datetime | None = None) -> Outcome:
    return apply_action(db, submission_id, reviewer, "approve", now=now)


def reject(db: Session, submission_id: int, reviewer: User, note: str | None, now: datetime | None = None) -> Outcome:
    text = clean_note(note)
    if not text:
        return Outcome.invalid([NOTE_REQUIRED])
    return apply_action(db, submission_id, reviewer, "reject", note=text, now=now)


def submit(db: Session, submission_id: int, actor: User) -> Outcome:
    return apply_action(db, submission_id, actor, "submit")


def resubmit(db: Session, submission_id: int, actor: User) -> Outcome:
    return apply_action(db, submission_id, actor, "resubmit")
