from collections.abc import Generator
from datetime import timedelta
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from app.api.deps import get_db
from app.core.security import create_access_token
from app.main import app
from app.models import User
from app.tests.helpers import make_engine, make_user


@pytest.fixture(name="engine")
def engine_fixture():
    return make_engine()


@pytest.fixture(name="session")
def session_fixture(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(engine, session: Session) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_db] = lambda: session
    # The lifespan is not entered, so the configured database is never touched.
    with patch("app.api.deps.engine", engine):
        yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user.id, expires_delta=timedelta(minutes=5))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(name="user")
def user_fixture(session: Session) -> User:
    return make_user(session)


@pytest.fixture(name="other_user")
def other_user_fixture(session: Session) -> User:
    return make_user(session, email="rival@example.com")


@pytest.fixture(name="headers")
def headers_fixture(user: User) -> dict[str, str]:
    return auth_headers(user)
