from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from skillsprint.database import get_db, init_db
from skillsprint.dependencies import get_grading_backend, get_storage
from skillsprint.main import app
from skillsprint.models import models
from skillsprint.models import Challenge, ChallengeStatus, Difficulty, User, UserRole
from skillsprint.services.grading import FixedGradingBackend
from skillsprint.utils.security import create_access_token
from skillsprint.utils.storage import LocalStorage


def email_for(user_id):
    return f"{user_id}@example.com"


def auth_headers(user_id, role=None, name=None):
    metadata = {"name": name or user_id}
    if role is not None:
        metadata["role"] = role
    token = create_access_token(
        {"sub": user_id, "email": email_for(user_id), "user_metadata": metadata}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'skillsprint-test.db'}",
        connect_args={"check_same_thread": False},
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "uploads"))


@pytest.fixture
def grading_backend():
    return FixedGradingBackend(score=90)


@pytest.fixture
def client(session_factory, storage, grading_backend):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_grading_backend] = lambda: grading_backend
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make_user(user_id, role=UserRole.PARTICIPANT, points=0):
        user = User(
            user_id=user_id,
            email=email_for(user_id),
            name=user_id.title(),
            role=role,
            points=points,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_challenge(db):
    def _make_challenge(
        creator,
        points=100,
        status=ChallengeStatus.ACTIVE,
        starts_in=timedelta(days=-1),
        ends_in=timedelta(days=1),
        title="Two Sum",
    ):
        now = datetime.utcnow()
        challenge = Challenge(
            title=title,
            description="Return the indices of two numbers adding up to target.",
            difficulty=Difficulty.EASY,
            points=points,
            time_limit=30,
            status=status,
            start_date=now + starts_in,
            end_date=now + ends_in,
            creator_id=creator.user_id,
        )
        challenge.test_cases = [
            models.TestCase(input="2 7 11 15\n9", expected_output="0 1", is_public=True),
            models.TestCase(input="3 2 4\n6", expected_output="1 2", is_public=False),
        ]
        db.add(challenge)
        db.commit()
        db.refresh(challenge)
        return challenge

    return _make_challenge


@pytest.fixture
def creator(make_user):
    return make_user("creator", role=UserRole.CREATOR)


@pytest.fixture
def challenge(make_challenge, creator):
    return make_challenge(creator)
