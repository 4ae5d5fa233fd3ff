"""
Unit tests for the auth dependencies (get_current_principal, require_authenticated).
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from app.auth import get_current_principal, require_authenticated
from app.models.account import Principal


def _make_request(supabase_client=None):
    """Create a mock FastAPI Request with app.state.supabase set."""
    request = MagicMock()
    request.app.state.supabase = supabase_client
    return request


def _make_credentials(token: str = "valid-token") -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestGetCurrentPrincipal:
    """Tests for the get_current_principal dependency."""

    async def test_no_token_is_anonymous(self):
        """Requests without a Bearer token act as an anonymous principal."""
        request = _make_request(supabase_client=None)

        result = await get_current_principal(request, None)

        assert result.is_authenticated is False
        assert result.id is None

    async def test_valid_token_returns_principal(self):
        """A valid token returns an authenticated Principal."""
        mock_user = MagicMock()
        mock_user.id = "user-123"
        mock_user.email = "test@example.com"

        mock_response = MagicMock()
        mock_response.user = mock_user

        mock_supabase = MagicMock()
        mock_supabase.auth.get_user = AsyncMock(return_value=mock_response)

        request = _make_request(supabase_client=mock_supabase)
        credentials = _make_credentials("valid-token")

        result = await get_current_principal(request, credentials)

        assert isinstance(result, Principal)
        assert result.id == "user-123"
        assert result.email == "test@example.com"
        assert result.is_authenticated is True
        mock_supabase.auth.get_user.assert_awaited_once_with("valid-token")

    async def test_invalid_token_raises_401(self):
        """A token that returns no user raises 401."""
        mock_response = MagicMock()
        mock_response.user = None

        mock_supabase = MagicMock()
        mock_supabase.auth.get_user = AsyncMock(return_value=mock_response)

        request = _make_request(supabase_client=mock_supabase)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_principal(request, _make_credentials("bad-token"))

        assert exc_info.value.status_code == 401

    async def test_expired_token_raises_401(self):
        """A token that causes an exception raises 401."""
        mock_supabase = MagicMock()
        mock_supabase.auth.get_user = AsyncMock(side_effect=Exception("Token expired"))

        request = _make_request(supabase_client=mock_supabase)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_principal(request, _make_credentials("expired-token"))

        assert exc_info.value.status_code == 401

    async def test_token_without_supabase_raises_503(self):
        """A token sent while Supabase is not configured raises 503."""
        request = _make_request(supabase_client=None)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_principal(request, _make_credentials("any-token"))

        assert exc_info.value.status_code == 503


class TestRequireAuthenticated:
    async def test_anonymous_raises_login_required(self):
        with pytest.raises(HTTPException) as exc_info:
            await require_authenticated(Principal.anonymous())

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail["code"] == "login_required"

    async def test_authenticated_passes_through(self):
        principal = Principal(id="user-1", is_authenticated=True)

        assert await require_authenticated(principal) is principal
