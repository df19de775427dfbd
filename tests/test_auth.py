from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from storefront.core.security import create_access_token, hash_password
from storefront.models.user import User, UserRole


def _create_user(db: Session, *, email: str, password: str = "StrongPass1", is_active: bool = True) -> User:
    user = User(
        email=email,
        full_name="Auth User",
        password_hash=hash_password(password),
        role=UserRole.CUSTOMER,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def test_signup_creates_customer_and_returns_token(client: TestClient, db_session: Session):
    response = client.post(
        "/api/auth/signup",
        json={"email": "New.User@Example.com", "password": "StrongPass1", "full_name": "  New User  "},
    )
    assert response.status_code == 201
    payload = response.json()
    assert payload["success"] is True
    assert payload["data"]["token"]

    user = payload["data"]["user"]
    assert user["email"] == "new.user@example.com"
    assert user["full_name"] == "New User"
    assert user["role"] == "customer"
    assert "password_hash" not in user

    stored = db_session.query(User).filter(User.email == "new.user@example.com").one()
    assert stored.password_hash != "StrongPass1"


def test_signup_ignores_requested_admin_role(client: TestClient, db_session: Session):
    response = client.post(
        "/api/auth/signup",
        json={"email": "sneaky@example.com", "password": "StrongPass1", "role": "admin"},
    )
    assert response.status_code == 201
    assert response.json()["data"]["user"]["role"] == "customer"

    stored = db_session.query(User).filter(User.email == "sneaky@example.com").one()
    assert stored.role == UserRole.CUSTOMER


def test_signup_duplicate_email_is_conflict(client: TestClient, db_session: Session):
    _create_user(db_session, email="taken@example.com")

    response = client.post(
        "/api/auth/signup",
        json={"email": "TAKEN@example.com", "password": "StrongPass1"},
    )
    assert response.status_code == 409
    payload = response.json()
    assert payload["success"] is False
    assert payload["message"] == "Email already registered"


def test_signup_weak_password_reports_field_errors(client: TestClient):
    response = client.post(
        "/api/auth/signup",
        json={"email": "weak@example.com", "password": "short"},
    )
    assert response.status_code == 400
    payload = response.json()
    assert payload["message"] == "Validation failed"
    assert any(err["field"] == "password" for err in payload["errors"])


def test_login_returns_token_usable_for_profile(client: TestClient, db_session: Session):
    _create_user(db_session, email="login@example.com")

    response = client.post(
        "/api/auth/login",
        json={"email": "login@example.com", "password": "StrongPass1"},
    )
    assert response.status_code == 200
    token = response.json()["data"]["token"]

    profile = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert profile.status_code == 200
    assert profile.json()["data"]["user"]["email"] == "login@example.com"


def test_login_wrong_password_is_unauthorized(client: TestClient, db_session: Session):
    _create_user(db_session, email="wrongpass@example.com")

    response = client.post(
        "/api/auth/login",
        json={"email": "wrongpass@example.com", "password": "WrongPass1"},
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Incorrect email or password"

    unknown = client.post(
        "/api/auth/login",
        json={"email": "nobody@example.com", "password": "StrongPass1"},
    )
    assert unknown.status_code == 401
    assert unknown.json()["message"] == "Incorrect email or password"


def test_login_inactive_account_is_forbidden(client: TestClient, db_session: Session):
    _create_user(db_session, email="inactive@example.com", is_active=False)

    response = client.post(
        "/api/auth/login",
        json={"email": "inactive@example.com", "password": "StrongPass1"},
    )
    assert response.status_code == 403


def test_profile_requires_valid_bearer_token(client: TestClient, db_session: Session):
    missing = client.get("/api/auth/profile")
    assert missing.status_code == 401
    assert missing.json()["success"] is False

    garbage = client.get("/api/auth/profile", headers={"Authorization": "Bearer not-a-jwt"})
    assert garbage.status_code == 401

    orphan_token = create_access_token({"sub": "99999", "role": "customer"})
    orphan = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {orphan_token}"})
    assert orphan.status_code == 401
