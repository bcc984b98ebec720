import enum
from datetime import datetime
from sqlalchemy import String, Integer, Enum, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from fieldreport.db.base import Base, utcnow

class Role(str, enum.Enum):
    PROMOTER = "promoter"
    PROJECT_ADMIN = "project-admin"
    ADMIN = "admin"

ROLE_LABELS = {
    Role.PROMOTER: "Promoter",
    Role.PROJECT_ADMIN: "Project admin",
    Role.ADMIN: "Administrator",
}

class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    full_name: Mapped[str] = mapped_column(String(120))
    username: Mapped[str] = mapped_column(String(80), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))

    role: Mapped[Role] = mapped_column(Enum(Role, values_callable=lambda e: [r.value for r in e]), index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    @property
    def role_label(self) -> str:
        return ROLE_LABELS.get(self.role, self.role.value)
