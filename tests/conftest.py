import os
import tempfile

# Settings are read at import time.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("REDIS_URL", "redis://127.0.0.1:1/0")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="fieldreport-uploads-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import fieldreport.db.models  # noqa: F401
from fieldreport.core.config import settings
from fieldreport.core.security import hash_password, sign_session
from fieldreport.db.base import Base, utcnow
from fieldreport.db.models.participant import Participant
from fieldreport.db.models.project import Project
from fieldreport.db.models.submission import Gender, Submission, SubmissionStatus
from fieldreport.db.models.user import Role, User
from fieldreport.db.session import get_db
from fieldreport.main import app

PASSWORD = "secret-pass"
_PASSWORD_HASH = hash_password(PASSWORD)

FETCH = {"X-Requested-With": "fetch"}
HX = {"HX-Request": "true"}


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    monkeypatch.setattr("fieldreport.utils.badges.get_redis", lambda: None)


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    d = tmp_path / "uploads"
    d.mkdir()
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(d))
    yield d


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role=Role.PROMOTER, username=None, is_active=True):
        counter["n"] += 1
        u = User(
            full_name=f"User {counter['n']}",
            username=username or f"user{counter['n']}",
            password_hash=_PASSWORD_HASH,
            role=role,
            is_active=is_active,
        )
        db.add(u)
        db.commit()
        return u

    return _make


@pytest.fixture
def promoter(make_user):
    return make_user(Role.PROMOTER, username="promoter")


@pytest.fixture
def other_promoter(make_user):
    return make_user(Role.PROMOTER, username="promoter2")


@pytest.fixture
def project_admin(make_user):
    return make_user(Role.PROJECT_ADMIN, username="padmin")


@pytest.fixture
def admin(make_user):
    return make_user(Role.ADMIN, username="admin")


@pytest.fixture
def project(db):
    p = Project(name="Water Access")
    db.add(p)
    db.commit()
    return p


@pytest.fixture
def make_submission(db):
    def _make(author, participant_count=5, status=SubmissionStatus.SUBMITTED, project=None):
        s = Submission(
            project_id=project.id if project else None,
            activity_stream="Health",
            specific_location="Village A",
            community_group_type="Women's group",
            participant_count=participant_count,
            key_issues="Clean water",
            status=status,
            submitted_by=author.id,
            submitted_at=None if status == SubmissionStatus.DRAFT else utcnow(),
        )
        db.add(s)
        db.commit()
        return s

    return _make


@pytest.fixture
def add_participants(db):
    def _add(submission, n, start=1):
        rows = []
        for i in range(start, start + n):
            p = Participant(
                submission_id=submission.id,
                name=f"Person {i}",
                age=20 + i,
                phone_number=f"0700{i:06d}",
                gender=Gender.FEMALE if i % 2 else Gender.MALE,
            )
            db.add(p)
            db.flush()
            rows.append(p)
        db.commit()
        return rows

    return _add


def login(client, user):
    client.cookies.set("sid", sign_session({"user_id": user.id}))
    return client
