from fastapi.testclient import TestClient
from sqlmodel import Session

from app import crud
from app.core.config import settings
from app.integrations.billing import EVENT_GENERATED_CONTENT
from app.models import UsageEvent, User, UserCreate

API = settings.API_V1_STR


def test_health_check(client: TestClient):
    response = client.get(f"{API}/utils/health-check/")
    assert response.status_code == 200
    assert response.json() is True


def test_login_returns_token(client: TestClient, session: Session):
    crud.create_user(
        session=session, user_create=UserCreate(email="ana@example.com", password="correct-horse")
    )

    response = client.post(
        f"{API}/login/access-token", data={"username": "ana@example.com", "password": "correct-horse"}
    )
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.post(f"{API}/login/test-token", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["email"] == "ana@example.com"


def test_login_with_wrong_password(client: TestClient, session: Session):
    crud.create_user(
        session=session, user_create=UserCreate(email="ana@example.com", password="correct-horse")
    )

    response = client.post(
        f"{API}/login/access-token", data={"username": "ana@example.com", "password": "wrong-horse"}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "BAD_REQUEST"


def test_invalid_token_is_unauthorized(client: TestClient):
    response = client.get(f"{API}/users/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_signup_rejects_duplicate_email(client: TestClient, user: User):
    response = client.post(
        f"{API}/users/signup", json={"email": user.email, "password": "long-enough-pass"}
    )
    assert response.status_code == 409


def test_signup_creates_free_user(client: TestClient):
    response = client.post(
        f"{API}/users/signup", json={"email": "new@example.com", "password": "long-enough-pass"}
    )
    assert response.status_code == 200
    assert response.json()["plan"] == "free"
    assert "hashed_password" not in response.json()


def test_update_me(client: TestClient, headers):
    response = client.patch(f"{API}/users/me", headers=headers, json={"full_name": "Ana Writer"})
    assert response.json()["full_name"] == "Ana Writer"


def test_usage_summary(client: TestClient, session: Session, user: User, headers):
    session.add(UsageEvent(user_id=user.id, event=EVENT_GENERATED_CONTENT))
    session.commit()

    response = client.get(f"{API}/users/me/usage", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["plan"] == "free"
    assert body["monthly"]["generate_content"] == {"used": 1, "limit": 3}
    assert body["fixed"]["agent_slots"] == {"used": 0, "limit": 1}
