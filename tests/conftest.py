"""Root conftest for all tests.

Shared fixtures: an isolated in-memory database per test, users with
bearer tokens, and a FastAPI TestClient bound to that database.
"""

import os

os.environ.setdefault("AUTH_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ADMIN_EMAIL", "admin@example.com")
os.environ.setdefault("OPENAI_API_KEY", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from breathwork.config.settings import settings
from breathwork.core.security import create_access_token, hash_password
from breathwork.db.models import Base, User


# Enable foreign key constraints for SQLite
@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    if "sqlite" in type(dbapi_connection).__module__:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """Deterministic settings for every test."""
    monkeypatch.setattr(settings, "auth_secret_key", "test-secret-key")
    monkeypatch.setattr(settings, "admin_email", "admin@example.com")
    monkeypatch.setattr(settings, "openai_api_key", "")
    return settings


@pytest.fixture
def db_engine(monkeypatch):
    """
    Provides an isolated in-memory SQLite database for one test.

    The lazy engine and session factory in breathwork.db.session are
    replaced, so every get_session() caller (routers, recorder, music
    library) talks to this database, from any thread.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    monkeypatch.setattr("breathwork.db.session._engine", engine)
    monkeypatch.setattr(
        "breathwork.db.session._SessionLocal",
        sessionmaker(bind=engine, autocommit=False, autoflush=False),
    )

    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """A session on the test database for arranging and asserting rows."""
    session = sessionmaker(bind=db_engine, autocommit=False, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()


def _create_user(db_session, email: str, first_name: str | None = None, password: str = "password123") -> User:
    user = User(email=email, password_hash=hash_password(password), first_name=first_name)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def user(db_session) -> User:
    return _create_user(db_session, "jane@example.com", first_name="Jane")


@pytest.fixture
def admin_user(db_session) -> User:
    return _create_user(db_session, "admin@example.com", first_name="Ada")


@pytest.fixture
def auth_headers(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def admin_headers(admin_user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(admin_user.id)}"}


@pytest.fixture
def client(db_engine):
    from breathwork.main import app

    return TestClient(app)
