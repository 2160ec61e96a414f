from datetime import timedelta

from backoffice.core.security import decode_access_token
from backoffice.models import UserRole
from backoffice.services import auth_service
from tests.factories import PASSWORD, make_user


# ==================== SERVICE ====================

def test_register_and_authenticate(db):
    user = auth_service.register_user(db, "new@example.com", "hunter22")

    assert user.role == UserRole.USER
    assert user.username == "new@example.com"
    assert auth_service.authenticate_user(db, "new@example.com", "hunter22").id == user.id
    assert auth_service.authenticate_user(db, "new@example.com", "wrong") is None
    assert auth_service.authenticate_user(db, "missing@example.com", "hunter22") is None


def test_token_carries_user_id_and_role(db, admin):
    token = auth_service.create_user_token(admin, expires_delta=timedelta(minutes=5))

    payload = decode_access_token(token)
    assert payload["sub"] == str(admin.id)
    assert payload["role"] == "ADMIN"


def test_role_moves(db, applicant):
    auth_service.promote_to_villager(db, applicant.email)
    assert applicant.role == UserRole.VILLAGER

    auth_service.demote_to_user(db, applicant.email)
    assert applicant.role == UserRole.USER


def test_demote_leaves_admin_alone(db, admin):
    auth_service.demote_to_user(db, admin.email)

    assert admin.role == UserRole.ADMIN


# ==================== ENDPOINTS ====================

def test_register_login_me(client):
    response = client.post("/api/auth/register", json={"email": "web@example.com", "password": "hunter22"})
    assert response.status_code == 201
    assert response.json()["role"] == "USER"

    duplicate = client.post("/api/auth/register", json={"email": "web@example.com", "password": "hunter22"})
    assert duplicate.status_code == 409
    assert duplicate.json()["success"] is False

    login = client.post("/api/auth/login", json={"email": "web@example.com", "password": "hunter22"})
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "web@example.com"


def test_login_with_wrong_password(client, db):
    make_user(db, "known@example.com")

    assert client.post("/api/auth/login", json={"email": "known@example.com", "password": PASSWORD}).status_code == 200
    assert client.post("/api/auth/login", json={"email": "known@example.com", "password": "nope"}).status_code == 401


def test_me_requires_valid_token(client):
    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"}).status_code == 401
