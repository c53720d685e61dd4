import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Settings are read at import time; keep tests off the dev database and limits
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("AUTH_JWT_SECRET", "test-secret")
os.environ.setdefault("RATE_LIMIT", "10000/minute")

from reservehub.db import Base  # noqa: E402
from reservehub.models import models  # noqa: E402
from reservehub.models.enums import Role, Position  # noqa: E402


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def db_session(engine):
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_user(db_session):
    counter = {"n": 0}

    def _make(first_name="Pat", last_name="Reserve", role=Role.member, position=Position.reserve, email=None):
        counter["n"] += 1
        user = models.User(
            auth_id=f"auth-{counter['n']}",
            email=email or f"{first_name.lower()}.{last_name.lower()}{counter['n']}@example.com",
            first_name=first_name,
            last_name=last_name,
            role=role,
            position=position,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def admin(make_user):
    return make_user("Alex", "Admin", role=Role.admin, position=Position.admin)


@pytest.fixture()
def member(make_user):
    return make_user("Jordan", "Rivera")


class FakeStorage:
    """In-memory stand-in for the object storage provider."""

    def __init__(self):
        self.objects = {}
        self.fail_delete = False

    def upload(self, bucket, key, data, content_type=None):
        self.objects[(bucket, key)] = data if isinstance(data, bytes) else data.read()
        return key

    def get_signed_url(self, bucket, key, ttl_seconds):
        return f"https://storage.test/{bucket}/{key}?ttl={ttl_seconds}"

    def exists(self, bucket, key):
        return (bucket, key) in self.objects

    def delete(self, bucket, key):
        if self.fail_delete:
            raise RuntimeError("storage unavailable")
        self.objects.pop((bucket, key), None)


@pytest.fixture()
def storage():
    return FakeStorage()
