import uuid

import pytest
from fastapi import HTTPException

from app.core.auth import (
    authenticate_websocket,
    authorize,
    resolve_identity,
    resolve_role,
)
from app.models.user import User

API = "/api/v1"


def test_missing_token_is_unauthorized(client):
    assert client.get(f"{API}/users/me").status_code == 401


def test_garbage_token_is_unauthorized(client):
    response = client.get(f"{API}/users/me", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


def test_expired_token_is_unauthorized(client, token_for):
    token = token_for(uuid.uuid4(), "late@nitip.id", expires_in=-60)
    response = client.get(f"{API}/users/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_first_request_provisions_user_profile(client, user_headers, user_id):
    response = client.get(f"{API}/users/me", headers=user_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == str(user_id)
    assert body["role"] == "user"
    assert body["email"] == "budi.attendant@nitip.id"


def test_resolve_role_provisions_once(session):
    identity = uuid.uuid4()

    assert resolve_role(session, identity, "new@nitip.id") == "user"
    assert resolve_role(session, identity, "new@nitip.id") == "user"
    assert session.get(User, identity) is not None


def test_resolve_role_reads_existing_admin(session, admin):
    assert resolve_role(session, admin.id, admin.email) == "admin"


def test_resolve_identity_rejects_non_uuid_sub(session):
    from jose import jwt

    token = jwt.encode({"sub": "not-a-uuid", "email": "x@nitip.id"}, "test-jwt-secret", algorithm="HS256")
    with pytest.raises(HTTPException) as exc:
        resolve_identity(session, token)
    assert exc.value.status_code == 401


def test_authorize():
    user = User(id=uuid.uuid4(), email="u@nitip.id", role="user")
    assert authorize(user, {"user", "admin"})
    assert not authorize(user, {"admin"})
    assert not authorize(None, {"user"})


def test_authenticate_websocket(session, admin, admin_token, user_token):
    assert authenticate_websocket(session, None) is None
    assert authenticate_websocket(session, "garbage") is None
    assert authenticate_websocket(session, user_token, ("admin",)) is None
    assert authenticate_websocket(session, admin_token, ("admin",)).id == admin.id


# -------- Roles --------


def test_user_cannot_list_users(client, user_headers):
    assert client.get(f"{API}/users", headers=user_headers).status_code == 403


def test_admin_lists_users(client, admin_headers, user_headers):
    client.get(f"{API}/users/me", headers=user_headers)

    response = client.get(f"{API}/users", headers=admin_headers)
    assert response.status_code == 200
    assert len(response.json()) == 2


def test_user_cannot_promote_themselves(client, user_headers, user_id):
    client.get(f"{API}/users/me", headers=user_headers)

    response = client.patch(
        f"{API}/users/{user_id}/role",
        json={"role": "admin"},
        headers=user_headers,
    )
    assert response.status_code == 403


def test_admin_promotes_user(client, admin_headers, user_headers, user_id):
    client.get(f"{API}/users/me", headers=user_headers)
    assert client.get(f"{API}/deposits/history", headers=user_headers).status_code == 403

    response = client.patch(
        f"{API}/users/{user_id}/role",
        json={"role": "admin"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["role"] == "admin"

    # Role is re-resolved on every request.
    assert client.get(f"{API}/deposits/history", headers=user_headers).status_code == 200


def test_admin_cannot_demote_themselves(client, admin, admin_headers):
    response = client.patch(
        f"{API}/users/{admin.id}/role",
        json={"role": "user"},
        headers=admin_headers,
    )
    assert response.status_code == 400


def test_unknown_role_is_rejected(client, admin, admin_headers):
    response = client.patch(
        f"{API}/users/{admin.id}/role",
        json={"role": "superuser"},
        headers=admin_headers,
    )
    assert response.status_code == 422


def test_get_unknown_user(client, admin_headers):
    assert client.get(f"{API}/users/{uuid.uuid4()}", headers=admin_headers).status_code == 404
