from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fieldreport.core.deadline import Deadline, DeadlineExceeded
from fieldreport.core.outcome import Outcome, OutcomeKind
from fieldreport.core.pagination import Pagination
from fieldreport.core.rbac import is_reviewer
from fieldreport.core.workflow import is_editable
from fieldreport.db.base import utcnow
from fieldreport.db.models.project import Project
from fieldreport.db.models.submission import Submission, SubmissionStatus, SyncStatus
from fieldreport.db.models.submission_photo import SubmissionPhoto
from fieldreport.db.models.user import User
from fieldreport.modules.participants import store as participants
from fieldreport.utils.audit import add_audit_log
from fieldreport.utils.forms import SubmissionIn, parse_form
from fieldreport.utils.uploads import StoredFile

logger = logging.getLogger("fieldreport.submissions")

CONTENT_FIELDS = (
    "activity_stream",
    "specific_location",
    "community_group_type",
    "participant_count",
    "key_issues",
    "project_id",
)


def snapshot(s: Submission) -> dict:
    return {
        "id": s.id,
        "project_id": s.project_id,
        "activity_stream": s.activity_stream,
        "specific_location": s.specific_location,
        "community_group_type": s.community_group_type,
        "participant_count": s.participant_count,
        "key_issues": s.key_issues,
        "status": s.status.value if s.status else None,
        "submitted_by": s.submitted_by,
        "submitted_at": s.submitted_at.isoformat() if s.submitted_at else None,
        "reviewed_by": s.reviewed_by,
        "reviewed_at": s.reviewed_at.isoformat() if s.reviewed_at else None,
        "review_notes": s.review_notes,
        "sync_status": s.sync_status.value if s.sync_status else None,
    }


def _validate(db: Session, data: dict | SubmissionIn) -> tuple[SubmissionIn | None, list[str]]:
    if isinstance(data, SubmissionIn):
        fields, errors = data, []
    else:
        fields, errors = parse_form(SubmissionIn, data)
    if fields is not None and fields.project_id is not None and db.get(Project, fields.project_id) is None:
        errors = ["Project is not valid."]
        fields = None
    return fields, errors


def _attach_photos(db: Session, s: Submission, photos: list[StoredFile], actor_id: int) -> None:
    for f in photos:
        ph = SubmissionPhoto(submission_id=s.id, uploaded_by_id=actor_id, filename=f.filename, url=f.url)
        db.add(ph)
        db.flush()
        add_audit_log(
            db,
            actor_id=actor_id,
            action="create",
            entity="submission_photo",
            entity_id=ph.id,
            submission_id=s.id,
            after={"filename": f.filename, "url": f.url},
        )


def create_submission(
    db: Session,
    data: dict | SubmissionIn,
    author: User,
    deadline: Deadline,
    photos: list[StoredFile] | None = None,
    as_draft: bool = False,
) -> Outcome:
    """Create a submission (status ``submitted``, or ``draft`` on the legacy path).

    The deadline is checked between steps and right before commit; when it has
    passed, nothing is written.
    """
    fields, errors = _validate(db, data)
    if errors:
        return Outcome.invalid(errors)

    try:
        deadline.check()
        now = utcnow()
        s = Submission(
            **fields.model_dump(),
            status=SubmissionStatus.DRAFT if as_draft else SubmissionStatus.SUBMITTED,
            submitted_by=author.id,
            submitted_at=None if as_draft else now,
            sync_status=SyncStatus.SYNCED,
        )
        db.add(s)
        db.flush()
        _attach_photos(db, s, photos or [], author.id)
        add_audit_log(
            db,
            actor_id=author.id,
            action="create",
            entity="submission",
            entity_id=s.id,
            submission_id=s.id,
            after=snapshot(s),
        )
        deadline.check()
        db.commit()
    except DeadlineExceeded:
        db.rollback()
        logger.warning("Submission by user %s abandoned after %ss", author.id, deadline.seconds)
        return Outcome.fail(OutcomeKind.TIMEOUT, "Submission timed out. Please try again.")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error creating submission for user %s", author.id)
        return Outcome.fail(OutcomeKind.ERROR, "There was a problem creating the submission.")

    db.refresh(s)
    return Outcome.success(s, message="Submission created.")


def update_submission(db: Session, submission_id: int, data: dict | SubmissionIn, actor: User) -> Outcome:
    """Save edited content. Status is never changed here."""
    fields, errors = _validate(db, data)
    if errors:
        return Outcome.invalid(errors)

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
        if not is_editable(s.status):
            db.rollback()
            return Outcome.fail(OutcomeKind.CONFLICT, "This submission has been approved and cannot be edited.")

        current = participants.count(db, s.id)
        if fields.participant_count < current:
            db.rollback()
            return Outcome.invalid(
                [f"Participant count cannot be lower than the {current} participants already added."]
            )

        before = snapshot(s)
        for name in CONTENT_FIELDS:
            setattr(s, name, getattr(fields, name))
        s.updated_at = utcnow()
        db.flush()
        add_audit_log(
            db,
            actor_id=actor.id,
            action="update",
            entity="submission",
            entity_id=s.id,
            submission_id=s.id,
            before=before,
            after=snapshot(s),
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating submission %s", submission_id)
        return Outcome.fail(OutcomeKind.ERROR, "There was a problem saving the submission.")

    db.refresh(s)
    return Outcome.success(s, message="Submission updated.")


def add_photos(db: Session, submission_id: int, photos: list[StoredFile], actor: User) -> Outcome:
    try:
        s = db.get(Submission, submission_id)
        if s is None:
            return Outcome.fail(OutcomeKind.NOT_FOUND, "Submission not found.")
        if not is_editable(s.status):
            return Outcome.fail(OutcomeKind.CONFLICT, "This submission has been approved and cannot be edited.")
        _attach_photos(db, s, photos, actor.id)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error storing photos for submission %s", submission_id)
        return Outcome.fail(OutcomeKind.ERROR, "Error uploading photos.")
    return Outcome.success(len(photos))


def photos_of(db: Session, submission_id: int) -> list[SubmissionPhoto]:
    return (
        db.query(SubmissionPhoto)
        .filter(SubmissionPhoto.submission_id == submission_id)
        .order_by(SubmissionPhoto.id.asc())
        .all()
    )


def list_submissions(
    db: Session,
    user: User,
    page: int,
    page_size: int,
    project_id: int | None = None,
    status: SubmissionStatus | None = None,
) -> tuple[list[Submission], Pagination]:
    """Newest first. Promoters see their own submissions; reviewers see all."""
    q = db.query(Submission)
    if not is_reviewer(user):
        q = q.filter(Submission.submitted_by == user.id)
    if project_id is not None:
        q = q.filter(Submission.project_id == project_id)
    if status is not None:
        q = q.filter(Submission.status == status)

    total = q.count()
    pg = Pagination.clamp(page, page_size, total)
    items = q.order_by(Submission.created_at.desc(), Submission.id.desc()).offset(pg.offset).limit(page_size).all()
    return items, pg
