from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Integer, String, Enum, ForeignKey, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fieldreport.db.base import Base, TimestampMixin, utcnow


class SubmissionStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class SyncStatus(str, enum.Enum):
    SYNCED = "synced"
    LOCAL = "local"


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


STATUS_LABELS = {
    SubmissionStatus.DRAFT: "Draft",
    SubmissionStatus.SUBMITTED: "Awaiting review",
    SubmissionStatus.APPROVED: "Approved",
    SubmissionStatus.REJECTED: "Rejected",
}


def _values(e):
    return [m.value for m in e]


class Submission(TimestampMixin, Base):
    __tablename__ = "submissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int | None] = mapped_column(ForeignKey("projects.id"), nullable=True, index=True)

    # Report content
    activity_stream: Mapped[str] = mapped_column(String(120), default="")
    specific_location: Mapped[str] = mapped_column(String(255), default="")
    community_group_type: Mapped[str] = mapped_column(String(120))
    # Declared capacity: participants may never exceed this number.
    participant_count: Mapped[int] = mapped_column(Integer)
    key_issues: Mapped[str] = mapped_column(Text, default="")

    status: Mapped[SubmissionStatus] = mapped_column(
        Enum(SubmissionStatus, values_callable=_values), index=True, default=SubmissionStatus.SUBMITTED
    )
    submitted_by: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Written together, by the review workflow only.
    reviewed_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    sync_status: Mapped[SyncStatus] = mapped_column(
        Enum(SyncStatus, values_callable=_values), default=SyncStatus.SYNCED
    )
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    submitter = relationship("User", foreign_keys=[submitted_by])
    reviewer = relationship("User", foreign_keys=[reviewed_by])
    project = relationship("Project")

    @property
    def status_label(self) -> str:
        return STATUS_LABELS.get(self.status, getattr(self.status, "value", str(self.status)))
