import os
import uuid

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef0123456789")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from matricare.core.security import create_access_token
from matricare.core.settings import settings
from matricare.db.session import get_db
from matricare.main import app
from matricare.models import Base
from matricare.services.users import create_user

TEST_PASSWORD = "CorrectHorse-42!"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def api_client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(role: str = "mother", *, full_name: str = "", is_active: bool = True):
        return create_user(
            db,
            email=f"{role.replace(' ', '-')}-{uuid.uuid4().hex[:8]}@example.com",
            password=TEST_PASSWORD,
            full_name=full_name or role.title(),
            role=role,
            is_active=is_active,
        )

    return _make


@pytest.fixture
def headers_for():
    def _headers(user):
        token = create_access_token(
            subject=user.id,
            secret=settings.secret_key,
            alg=settings.jwt_alg,
            expires_minutes=30,
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers
