"""Participant persistence for a submission.

Every count used for a decision is read from the database at the time of the
decision. Writers on other devices can add or remove rows at any moment, so a
count held by a page or a previous request is only ever used for display.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fieldreport.core.capacity import CapacityState, can_add_more
from fieldreport.core.outcome import Outcome, OutcomeKind
from fieldreport.core.pagination import Pagination, total_pages
from fieldreport.core.workflow import is_editable
from fieldreport.db.models.participant import Participant
from fieldreport.db.models.submission import Submission
from fieldreport.utils.audit import add_audit_log
from fieldreport.utils.forms import ParticipantIn, parse_form

logger = logging.getLogger("fieldreport.participants")


@dataclass(slots=True)
class ParticipantPage:
    items: list[Participant]
    total_count: int
    page: int
    page_size: int

    @property
    def pagination(self) -> Pagination:
        return Pagination(page=self.page, page_size=self.page_size, total_count=self.total_count)


def snapshot(p: Participant) -> dict:
    return {
        "id": p.id,
        "submission_id": p.submission_id,
        "name": p.name,
        "age": p.age,
        "phone_number": p.phone_number,
        "gender": p.gender.value if p.gender is not None else None,
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }


def count(db: Session, submission_id: int) -> int:
    return int(
        db.query(func.count(Participant.id)).filter(Participant.submission_id == submission_id).scalar() or 0
    )


def list_page(db: Session, submission_id: int, page: int, page_size: int) -> ParticipantPage:
    """One page of participants (oldest first) plus the exact total."""
    page = max(int(page or 1), 1)
    total = count(db, submission_id)
    items = (
        db.query(Participant)
        .filter(Participant.submission_id == submission_id)
        .order_by(Participant.created_at.asc(), Participant.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return ParticipantPage(items=items, total_count=total, page=page, page_size=page_size)


def fetch_page(db: Session, submission_id: int, page: int, page_size: int) -> Outcome:
    try:
        return Outcome.success(list_page(db, submission_id, page, page_size))
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error fetching participants of submission %s", submission_id)
        return Outcome.fail(OutcomeKind.ERROR, "Error loading participants.")


def capacity(db: Session, submission: Submission) -> CapacityState:
    return CapacityState(total_count=count(db, submission.id), capacity=submission.participant_count)


def _locked_submission(db: Session, submission_id: int) -> Submission | None:
    # Row lock serializes concurrent capacity checks on MySQL/Postgres;
    # SQLite compiles FOR UPDATE away.
    return (
        db.query(Submission)
        .filter(Submission.id == submission_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def _closed(s: Submission) -> Outcome:
    return Outcome.fail(OutcomeKind.CONFLICT, f"Submission #{s.id} is approved and can no longer be changed.")


def add(db: Session, submission_id: int, data: dict | ParticipantIn, actor_id: int) -> Outcome:
    """Insert one participant if the submission still has room.

    The capacity check and the insert run in the same transaction, against a
    count read after the submission row was locked.
    """
    if isinstance(data, ParticipantIn):
        fields = data
    else:
        fields, errors = parse_form(ParticipantIn, data)
        if errors:
            return Outcome.invalid(errors)

    try:
        s = _locked_submission(db, submission_id)
        if s is None:
            return Outcome.fail(OutcomeKind.NOT_FOUND, "Submission not found.")
        if not is_editable(s.status):
            db.rollback()
            return _closed(s)

        state = CapacityState(total_count=count(db, s.id), capacity=s.participant_count)
        if not can_add_more(state.total_count, state.capacity):
            db.rollback()
            logger.info(
                "Participant limit reached for submission %s (%s/%s)", s.id, state.total_count, state.capacity
            )
            return Outcome(
                OutcomeKind.CAPACITY_ERROR,
                message=f"Participant limit reached ({state.total_count}/{state.capacity}).",
                value=state,
            )

        p = Participant(submission_id=s.id, **fields.identity())
        db.add(p)
        db.flush()
        add_audit_log(
            db,
            actor_id=actor_id,
            action="create",
            entity="participant",
            entity_id=p.id,
            submission_id=s.id,
            after=snapshot(p),
        )
        db.commit()
        db.refresh(p)
        return Outcome.success(p, message=f"{p.name} has been added to the submission.")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error adding participant to submission %s", submission_id)
        return Outcome.fail(OutcomeKind.ERROR, "Error adding participant.")


def remove(db: Session, submission_id: int, participant_id: int, actor_id: int) -> Outcome:
    """Delete one participant by id.

    On success ``value`` is ``{"participant": snapshot, "total_before": n}``
    where ``n`` is the count read in the same transaction, before the delete.
    """
    try:
        s = _locked_submission(db, submission_id)
        if s is None:
            return Outcome.fail(OutcomeKind.NOT_FOUND, "Submission not found.")
        if not is_editable(s.status):
            db.rollback()
            return _closed(s)

        p = (
            db.query(Participant)
            .filter(Participant.id == participant_id, Participant.submission_id == s.id)
            .first()
        )
        if p is None:
            db.rollback()
            return Outcome.fail(OutcomeKind.NOT_FOUND, "Participant not found.")

        total_before = count(db, s.id)
        before = snapshot(p)
        db.delete(p)
        add_audit_log(
            db,
            actor_id=actor_id,
            action="delete",
            entity="participant",
            entity_id=before["id"],
            submission_id=s.id,
            before=before,
        )
        db.commit()
        return Outcome.success(
            {"participant": before, "total_before": total_before},
            message=f"{before['name']} has been removed from the submission.",
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error removing participant %s from submission %s", participant_id, submission_id)
        return Outcome.fail(OutcomeKind.ERROR, "Error removing participant.")


def remove_matching(db: Session, submission_id: int, data: dict | ParticipantIn, actor_id: int) -> Outcome:
    """Delete by (name, age, phone_number, gender).

    Rows with identical values cannot be told apart, so every match is
    removed. ``value`` carries ``{"removed": k, "total_before": n}``.
    """
    if isinstance(data, ParticipantIn):
        ident = data
    else:
        ident, errors = parse_form(ParticipantIn, data)
        if errors:
            return Outcome.invalid(errors)

    try:
        s = _locked_submission(db, submission_id)
        if s is None:
            return Outcome.fail(OutcomeKind.NOT_FOUND, "Submission not found.")
        if not is_editable(s.status):
            db.rollback()
            return _closed(s)

        matches = (
            db.query(Participant)
            .filter(Participant.submission_id == s.id)
            .filter_by(**ident.identity())
            .all()
        )
        if not matches:
            db.rollback()
            return Outcome.fail(OutcomeKind.NOT_FOUND, "No matching participant.")

        total_before = count(db, s.id)
        for p in matches:
            before = snapshot(p)
            db.delete(p)
            add_audit_log(
                db,
                actor_id=actor_id,
                action="delete",
                entity="participant",
                entity_id=before["id"],
                submission_id=s.id,
                before=before,
                comment="matched by name/age/phone/gender",
            )
        db.commit()
        if len(matches) > 1:
            logger.warning(
                "Removed %s identical participants from submission %s", len(matches), s.id
            )
        return Outcome.success(
            {"removed": len(matches), "total_before": total_before},
            message=f"{ident.name} has been removed from the submission.",
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error removing matching participants from submission %s", submission_id)
        return Outcome.fail(OutcomeKind.ERROR, "Error removing participant.")


def page_after_removal(
    db: Session, submission_id: int, page: int, page_size: int, total_before: int, removed: int = 1
) -> ParticipantPage:
    """Refetch the page to show after ``removed`` rows were deleted.

    Steps back when the current page no longer exists. If other writers shrank
    the list further in the meantime, the fresh total wins.
    """
    if removed == 1:
        target = Pagination(page=page, page_size=page_size, total_count=total_before).after_delete().page
    else:
        target = Pagination.clamp(page, page_size, max(total_before - removed, 0)).page

    result = list_page(db, submission_id, target, page_size)
    if not result.items and result.total_count > 0:
        result = list_page(db, submission_id, total_pages(result.total_count, page_size), page_size)
    return result
