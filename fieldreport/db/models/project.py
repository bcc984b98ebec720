from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column
from fieldreport.db.base import Base, TimestampMixin

class Project(TimestampMixin, Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, index=True)
