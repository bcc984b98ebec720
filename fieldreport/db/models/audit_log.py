from sqlalchemy import Integer, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fieldreport.db.base import Base, TimestampMixin


class AuditLog(TimestampMixin, Base):
    """Change log for submission content, participants and photos.

    Independent of WorkflowLog, which only records status transitions.
    """

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    submission_id: Mapped[int | None] = mapped_column(ForeignKey("submissions.id"), nullable=True, index=True)

    action: Mapped[str] = mapped_column(String(50))  # create/update/delete
    entity: Mapped[str] = mapped_column(String(50))  # submission/participant/submission_photo
    entity_id: Mapped[int] = mapped_column(Integer, index=True)
    before_json: Mapped[str] = mapped_column(Text, default="")
    after_json: Mapped[str] = mapped_column(Text, default="")
    comment: Mapped[str] = mapped_column(Text, default="")
