"""Tests for bearer-token verification."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from jose import jwt

from psyrecord.config import settings
from psyrecord.services.auth import decode_token, get_current_user


def _token(sub, secret=None, audience=None, expires_in=timedelta(hours=1)):
    claims = {
        "sub": str(sub),
        "email": "ana.souza@example.com",
        "aud": audience or settings.AUTH_JWT_AUDIENCE,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(claims, secret or settings.AUTH_JWT_SECRET, algorithm="HS256")


def test_valid_token():
    user_id = uuid.uuid4()
    user = decode_token(_token(user_id))
    assert user.id == user_id
    assert user.email == "ana.souza@example.com"


@pytest.mark.parametrize(
    "token",
    [
        _token(uuid.uuid4(), secret="another-secret"),
        _token(uuid.uuid4(), audience="someone-else"),
        _token(uuid.uuid4(), expires_in=timedelta(hours=-1)),
        _token("not-a-uuid"),
    ],
)
def test_rejected_tokens(token):
    with pytest.raises(HTTPException) as exc_info:
        decode_token(token)
    assert exc_info.value.status_code == 401


def test_missing_secret_is_503(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_JWT_SECRET", "")
    with pytest.raises(HTTPException) as exc_info:
        decode_token("anything")
    assert exc_info.value.status_code == 503


def test_me_endpoint_uses_bearer_token(client):
    client.app.dependency_overrides.pop(get_current_user)
    user_id = uuid.uuid4()

    assert client.get("/api/v1/auth/me").status_code == 401

    response = client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {_token(user_id)}"}
    )
    assert response.status_code == 200
    assert response.json()["id"] == str(user_id)
