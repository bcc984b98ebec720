from __future__ import annotations

import os
import time
import logging
import subprocess
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError

from fieldreport.core.config import settings

logger = logging.getLogger("fieldreport.migrate")


def wait_for_db(engine, timeout_s: int = 60) -> None:
    """Wait until the database is accepting connections."""
    start = time.time()
    delay = 1.0

    while True:
        try:
            with engine.begin() as conn:
                conn.execute(text("SELECT 1"))
            return
        except OperationalError as e:
            if time.time() - start > timeout_s:
                raise
            logger.warning("Database not ready (%s); retrying in %.1fs", e.orig, delay)
            time.sleep(delay)
            delay = min(delay * 1.5, 5.0)


def run(cmd: list[str]) -> int:
    p = subprocess.run(cmd, check=False)
    return p.returncode


def seed_admin() -> bool:
    """Create the bootstrap admin account once. Returns True when created."""
    from sqlalchemy.orm import Session
    from fieldreport.db.session import SessionLocal
    from fieldreport.db.models.user import User, Role
    from fieldreport.core.security import hash_password

    db: Session = SessionLocal()
    try:
        exists = db.query(User).filter(User.username == settings.DEFAULT_ADMIN_USERNAME).first()
        if exists:
            return False
        db.add(
            User(
                full_name=settings.DEFAULT_ADMIN_FULL_NAME,
                username=settings.DEFAULT_ADMIN_USERNAME,
                password_hash=hash_password(settings.DEFAULT_ADMIN_PASSWORD),
                role=Role.ADMIN,
            )
        )
        db.commit()
        logger.info("Created admin user %r", settings.DEFAULT_ADMIN_USERNAME)
        return True
    finally:
        db.close()


def main() -> int:
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    url = os.getenv("DATABASE_URL") or settings.DATABASE_URL
    engine = create_engine(url, future=True, pool_pre_ping=True)

    # Wait for DB readiness (important in docker-compose)
    wait_for_db(engine, timeout_s=int(os.getenv("DB_WAIT_TIMEOUT", "90")))

    rc = run(["alembic", "upgrade", "head"])
    if rc != 0:
        # Fail fast so schema doesn't drift from alembic_version.
        return rc

    if settings.AUTO_CREATE_ADMIN:
        seed_admin()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
