"""
Unit tests for SessionService and service wiring.

Tests cover:
- Idempotent logout with best-effort remote revocation
- Token refresh write-back and rejection handling
- ``create_services`` and the controller builders
"""

from __future__ import annotations

import httpx
import pytest

from nimbustalk.controllers import (
    build_login_controller,
    build_registration_controller,
    build_splash_controller,
)
from nimbustalk.gateways.auth_gateway import AuthGateway
from nimbustalk.models.auth_models import AuthFailure, AuthSuccess
from nimbustalk.models.enums import ErrorKind
from nimbustalk.services import create_services
from nimbustalk.services.session_service import SessionService
from tests.conftest import make_backend, make_session


@pytest.fixture
def service(auth_gateway, session_store, logger) -> SessionService:
    return SessionService(auth_gateway, session_store, logger)


# ---------------------------------------------------------------------------
# LOGOUT
# ---------------------------------------------------------------------------

class TestLogout:
    """Tests for ``logout``."""

    @pytest.mark.asyncio
    async def test_logout_revokes_and_clears(self, service, auth_gateway, session_store):
        """Should revoke the stored token and clear the session."""
        session_store.save(make_session())
        result = await service.logout()

        assert result.success
        assert auth_gateway.calls == [("logout", ("access-1",))]
        assert not session_store.is_logged_in()
        assert session_store.load() is None

    @pytest.mark.asyncio
    async def test_logout_is_idempotent(self, service, auth_gateway, session_store):
        """Should succeed repeatedly without a session and skip the remote call."""
        first = await service.logout()
        second = await service.logout()

        assert first.success and second.success
        assert auth_gateway.count("logout") == 0
        assert not session_store.is_logged_in()

    @pytest.mark.asyncio
    async def test_remote_failure_still_clears(self, config, logger, session_store):
        """Should tear down locally even when the backend is unreachable."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable")

        gateway = AuthGateway(make_backend(config, logger, handler), logger)
        session_store.save(make_session())

        result = await SessionService(gateway, session_store, logger).logout()

        assert result.success
        assert not session_store.is_logged_in()


# ---------------------------------------------------------------------------
# REFRESH
# ---------------------------------------------------------------------------

class TestRefresh:
    """Tests for ``refresh_session``."""

    @pytest.mark.asyncio
    async def test_refresh_rotates_tokens_only(self, service, auth_gateway, session_store):
        """Should overwrite the tokens and keep the profile fields."""
        session_store.save(make_session())
        outcome = await service.refresh_session()

        assert isinstance(outcome, AuthSuccess)
        assert auth_gateway.calls == [("refresh_token", ("refresh-1",))]
        stored = session_store.load()
        assert stored is not None
        assert stored.access_token == "access-2"
        assert stored.refresh_token == "refresh-2"
        assert stored.display_name == "User One"

    @pytest.mark.asyncio
    async def test_rejected_refresh_clears(self, service, auth_gateway, session_store):
        """Should clear the session when the refresh token is rejected."""
        session_store.save(make_session())
        auth_gateway.refresh_outcome = AuthFailure(kind=ErrorKind.INVALID_CREDENTIALS)

        outcome = await service.refresh_session()

        assert isinstance(outcome, AuthFailure)
        assert session_store.load() is None

    @pytest.mark.asyncio
    async def test_network_failure_keeps_session(self, service, auth_gateway, session_store):
        """Should keep the session for a later retry on transport failure."""
        session_store.save(make_session())
        auth_gateway.refresh_outcome = AuthFailure(kind=ErrorKind.NETWORK)

        await service.refresh_session()

        stored = session_store.load()
        assert stored is not None
        assert stored.access_token == "access-1"

    @pytest.mark.asyncio
    async def test_no_refresh_token(self, service, auth_gateway):
        """Should report SESSION_EXPIRED without calling the backend."""
        outcome = await service.refresh_session()

        assert isinstance(outcome, AuthFailure)
        assert outcome.kind is ErrorKind.SESSION_EXPIRED
        assert auth_gateway.calls == []


# ---------------------------------------------------------------------------
# WIRING
# ---------------------------------------------------------------------------

class TestWiring:
    """Tests for ``create_services`` and the controller builders."""

    @pytest.mark.asyncio
    async def test_create_services(self, config, logger, preferences, monkeypatch, tmp_path):
        """Should wire every service around the injected infrastructure."""
        monkeypatch.chdir(tmp_path)
        backend = make_backend(config, logger)
        services = create_services(config, preferences=preferences, backend=backend)

        assert services["preferences"] is preferences
        assert services["backend"] is backend
        assert set(services) == {
            "preferences",
            "backend",
            "session_store",
            "theme_preferences",
            "auth_gateway",
            "profile_gateway",
            "session_service",
        }

        registration = build_registration_controller(services, config)
        login = build_login_controller(services)
        splash = build_splash_controller(services, config)
        await splash.check_authentication_status()

        assert splash.authenticated.value is False
        for controller in (registration, login, splash):
            controller.close()
        await backend.aclose()
