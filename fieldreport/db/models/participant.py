from sqlalchemy import Integer, String, Enum, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from fieldreport.db.base import Base, TimestampMixin
from fieldreport.db.models.submission import Gender


class Participant(TimestampMixin, Base):
    __tablename__ = "participants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Plain FK: rows are removed one at a time, never cascaded from here.
    submission_id: Mapped[int] = mapped_column(ForeignKey("submissions.id"), index=True)

    name: Mapped[str] = mapped_column(String(120))
    age: Mapped[int] = mapped_column(Integer)
    phone_number: Mapped[str] = mapped_column(String(40))
    gender: Mapped[Gender] = mapped_column(Enum(Gender, values_callable=lambda e: [g.value for g in e]))
