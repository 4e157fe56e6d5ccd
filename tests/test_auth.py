"""Tests for JWT handling and the request authentication dependencies."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from app.core import flexible_auth
from app.core.auth import create_access_token, verify_token
from app.core.config import settings
from app.core.flexible_auth import get_current_user, get_current_user_optional


@pytest.fixture(autouse=True)
def secret_key(monkeypatch):
    monkeypatch.setattr(settings, "SECRET_KEY", "test-secret-key")


def _request(authorization=None) -> Request:
    headers = []
    if authorization is not None:
        headers.append((b"authorization", authorization.encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


def _supabase_with_user(monkeypatch, user):
    client = MagicMock()
    query = client.table.return_value.select.return_value.eq.return_value
    query.execute.return_value = MagicMock(data=[user] if user else [])
    monkeypatch.setattr(flexible_auth, "get_supabase_client", lambda: client)
    return client


def test_access_token_round_trip():
    token = create_access_token({"user_id": "u-1", "email": "a@example.com"})

    payload = verify_token(token)

    assert payload["user_id"] == "u-1"
    assert payload["sub"] == "u-1"
    assert payload["aud"] == "authenticated"
    assert payload["type"] == "access"


def test_expired_token_is_rejected():
    token = create_access_token({"user_id": "u-1"}, expires_delta=timedelta(seconds=-5))

    assert verify_token(token) is None


def test_token_signed_with_other_key_is_rejected(monkeypatch):
    token = create_access_token({"user_id": "u-1"})
    monkeypatch.setattr(settings, "SECRET_KEY", "another-key")

    assert verify_token(token) is None


@pytest.mark.asyncio
async def test_get_current_user_requires_header():
    with pytest.raises(HTTPException) as exc_info:
        await get_current_user(_request())

    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_malformed_header_is_rejected():
    with pytest.raises(HTTPException) as exc_info:
        await get_current_user_optional(_request("Token abc"))

    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_optional_user_without_header_is_none():
    assert await get_current_user_optional(_request()) is None


@pytest.mark.asyncio
async def test_valid_token_resolves_user(monkeypatch):
    _supabase_with_user(monkeypatch, {"id": "u-1", "status": "active"})
    token = create_access_token({"user_id": "u-1"})

    user = await get_current_user(_request(f"Bearer {token}"))

    assert user["id"] == "u-1"
    assert user["auth_method"] == "jwt"


@pytest.mark.asyncio
async def test_unknown_user_is_rejected(monkeypatch):
    _supabase_with_user(monkeypatch, None)
    token = create_access_token({"user_id": "u-1"})

    with pytest.raises(HTTPException) as exc_info:
        await get_current_user(_request(f"Bearer {token}"))

    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_suspended_user_is_forbidden(monkeypatch):
    _supabase_with_user(monkeypatch, {"id": "u-1", "status": "suspended"})
    token = create_access_token({"user_id": "u-1"})

    with pytest.raises(HTTPException) as exc_info:
        await get_current_user(_request(f"Bearer {token}"))

    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_invalid_token_is_rejected():
    with pytest.raises(HTTPException) as exc_info:
        await get_current_user(_request("Bearer not-a-jwt"))

    assert exc_info.value.status_code == 401
