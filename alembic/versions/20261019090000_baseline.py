"""baseline

Revision ID: 20261019090000
Revises:
Create Date: 2026-10-19T09:00:00Z
"""

from alembic import op
import sqlalchemy as sa  # noqa: F401

# revision identifiers, used by Alembic.
revision = "20261019090000"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # fieldreport.db.models imports every model file.
    from fieldreport.db.base import Base
    import fieldreport.db.models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.create_all(bind=bind)


def downgrade() -> None:
    # No-op: create explicit downgrade migrations for destructive rollback.
    pass
