"""Tests for authentication endpoints and bearer-token handling."""
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient, ASGITransport
from jose import jwt
from unittest.mock import AsyncMock, patch, MagicMock

from app.core.config import settings
from app.core.security import create_access_token, decode_token, hash_password, verify_password
from app.db.session import get_session
from app.main import app


# ─── Fixtures ─────────────────────────────────────────────────────────────────

class FakeUser:
    """Minimal user stub returned by DB mock."""

    def __init__(self, user_id: uuid.UUID | None = None, is_active: bool = True):
        self.id = user_id or uuid.uuid4()
        self.email = "demo@example.com"
        self.name = "Demo User"
        self.is_active = is_active
        self.deleted_at = None
        self.password_hash = "$2b$12$placeholder"  # verify_password is patched


def _session_returning(user) -> AsyncMock:
    mock_result = MagicMock()
    mock_result.scalar_one_or_none.return_value = user

    mock_session = AsyncMock()
    mock_session.execute = AsyncMock(return_value=mock_result)
    return mock_session


async def _request(mock_session, method: str, url: str, **kwargs):
    async def override_get_session():
        yield mock_session

    app.dependency_overrides[get_session] = override_get_session
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            return await client.request(method, url, **kwargs)
    finally:
        app.dependency_overrides.clear()


# ─── Login Tests ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_login_valid_credentials_returns_jwt():
    """POST /api/v1/auth/login with valid credentials should return an access token for the user."""
    fake_user = FakeUser()

    with patch("app.api.v1.auth.verify_password", return_value=True):
        response = await _request(
            _session_returning(fake_user),
            "POST",
            "/api/v1/auth/login",
            data={"username": "demo@example.com", "password": "changeme123"},
        )

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    payload = decode_token(data["access_token"])
    assert payload["sub"] == str(fake_user.id)
    assert payload["type"] == "access"


@pytest.mark.asyncio
async def test_login_unknown_user_returns_401():
    response = await _request(
        _session_returning(None),
        "POST",
        "/api/v1/auth/login",
        data={"username": "wrong@example.com", "password": "badpass"},
    )
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_login_wrong_password_returns_401():
    with patch("app.api.v1.auth.verify_password", return_value=False):
        response = await _request(
            _session_returning(FakeUser()),
            "POST",
            "/api/v1/auth/login",
            data={"username": "demo@example.com", "password": "nope"},
        )
    assert response.status_code == 401
    assert response.json()["error"] == {
        "code": "UNAUTHORIZED", "message": "Invalid credentials", "details": None
    }


@pytest.mark.asyncio
async def test_login_disabled_account_returns_403():
    with patch("app.api.v1.auth.verify_password", return_value=True):
        response = await _request(
            _session_returning(FakeUser(is_active=False)),
            "POST",
            "/api/v1/auth/login",
            data={"username": "demo@example.com", "password": "changeme123"},
        )
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"


# ─── /me Tests ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_me_with_valid_token_returns_user_without_secrets():
    """GET /api/v1/auth/me with a valid Bearer token should return user data and nothing else."""
    fake_user = FakeUser()
    token = create_access_token(subject=str(fake_user.id))

    response = await _request(
        _session_returning(fake_user),
        "GET",
        "/api/v1/auth/me",
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["email"] == "demo@example.com"
    assert data["id"] == str(fake_user.id)
    assert "password_hash" not in data
    assert "password" not in data


@pytest.mark.asyncio
async def test_me_without_token_returns_401():
    """GET /api/v1/auth/me without Authorization header should return 401."""
    response = await _request(_session_returning(None), "GET", "/api/v1/auth/me")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_me_with_expired_token_returns_401():
    expired = jwt.encode(
        {
            "sub": str(uuid.uuid4()),
            "exp": datetime.now(timezone.utc) - timedelta(minutes=1),
            "type": "access",
        },
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    response = await _request(
        _session_returning(FakeUser()),
        "GET",
        "/api/v1/auth/me",
        headers={"Authorization": f"Bearer {expired}"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_with_wrong_token_type_returns_401():
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "type": "refresh"},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    response = await _request(
        _session_returning(FakeUser()),
        "GET",
        "/api/v1/auth/me",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_for_deactivated_user_returns_401():
    fake_user = FakeUser(is_active=False)
    token = create_access_token(subject=str(fake_user.id))

    response = await _request(
        _session_returning(fake_user),
        "GET",
        "/api/v1/auth/me",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 401


# ─── Password hashing ─────────────────────────────────────────────────────────

def test_password_hash_round_trip():
    hashed = hash_password("changeme123")
    assert hashed != "changeme123"
    assert verify_password("changeme123", hashed)
    assert not verify_password("wrong", hashed)
