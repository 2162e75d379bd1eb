"""
Test configuration and fixtures for pytest.

This module provides shared fixtures used across all tests:
- Explicit ``AppConfig`` pointing at a fake backend
- Silent structured logger (no log file)
- Temporary encrypted preferences store and session store
- Recording fakes for the auth and profile gateways
- Factories for auth outcomes and a stub table API client
"""

from __future__ import annotations

import asyncio
import io
from types import SimpleNamespace
from typing import Any, Callable, Generator, Optional
from uuid import uuid4

import httpx
import pytest

from nimbustalk.config import AppConfig
from nimbustalk.gateways.backend_client import BackendClient
from nimbustalk.gateways.errors import GatewayError
from nimbustalk.logger import StructuredLogger
from nimbustalk.models.auth_models import (
    ActionResult,
    AuthOutcome,
    AuthSuccess,
    RemoteUser,
)
from nimbustalk.models.enums import ErrorKind
from nimbustalk.models.session import Session
from nimbustalk.models.user import Profile
from nimbustalk.services.session_store import SessionStore
from nimbustalk.storage import PreferencesStore

BACKEND_URL = "https://test.supabase.co"
ANON_KEY = "test-anon-key"


# ---------------------------------------------------------------------------
# CONFIG / LOGGING / STORAGE
# ---------------------------------------------------------------------------

@pytest.fixture
def config(tmp_path) -> AppConfig:
    """Configuration with a fake backend and a cheap KDF."""
    return AppConfig(
        SUPABASE_URL=BACKEND_URL,
        SUPABASE_ANON_KEY=ANON_KEY,
        NETWORK_TIMEOUT_S=5.0,
        USERNAME_CHECK_DEBOUNCE_S=0.02,
        SPLASH_MIN_DURATION_S=0.0,
        PREFERENCES_DB_PATH=tmp_path / "prefs.db",
        PREFERENCES_SALT_PATH=tmp_path / "salt",
        PREFERENCES_KDF_ITERATIONS=1_000,
    )


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(log_stream) -> StructuredLogger:
    """Logger writing JSON lines to an in-memory stream only."""
    return StructuredLogger(
        name=f"test.{uuid4().hex}",
        stream=log_stream,
        file_logging=False,
    )


@pytest.fixture
def preferences(tmp_path, logger) -> Generator[PreferencesStore, None, None]:
    store = PreferencesStore(
        db_path=tmp_path / "prefs.db",
        salt_path=tmp_path / "salt",
        logger=logger,
        kdf_iterations=1_000,
    )
    try:
        yield store
    finally:
        store.close()


@pytest.fixture
def session_store(preferences, logger) -> SessionStore:
    return SessionStore(preferences, logger)


def make_session(**overrides: Any) -> Session:
    values: dict[str, Any] = {
        "user_id": "u1",
        "email": "user@test.com",
        "username": "user1",
        "display_name": "User One",
        "access_token": "access-1",
        "refresh_token": "refresh-1",
        "profile_image_url": None,
        "logged_in": True,
    }
    values.update(overrides)
    return Session(**values)


# ---------------------------------------------------------------------------
# AUTH OUTCOME FACTORIES
# ---------------------------------------------------------------------------

def make_auth_success(
    user_id: str = "u1",
    email: str = "user@test.com",
    metadata: Optional[dict[str, Any]] = None,
    access_token: str = "access-1",
    refresh_token: str = "refresh-1",
) -> AuthSuccess:
    return AuthSuccess(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=3600,
        user=RemoteUser(id=user_id, email=email, user_metadata=metadata or {}),
    )


def token_body(
    user_id: str = "u1",
    email: str = "user@test.com",
    metadata: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """JSON body of a successful token/signup response."""
    return {
        "access_token": "access-1",
        "token_type": "bearer",
        "expires_in": 3600,
        "refresh_token": "refresh-1",
        "user": {"id": user_id, "email": email, "user_metadata": metadata or {}},
    }


# ---------------------------------------------------------------------------
# GATEWAY FAKES
# ---------------------------------------------------------------------------

class FakeAuthGateway:
    """Records every call; returns configurable outcomes.

    Set ``gate`` to an ``asyncio.Event`` to hold calls in flight until it
    is set.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.login_outcome: AuthOutcome = make_auth_success()
        self.register_outcome: AuthOutcome = make_auth_success()
        self.refresh_outcome: AuthOutcome = make_auth_success(
            access_token="access-2", refresh_token="refresh-2"
        )
        self.reset_result: ActionResult = ActionResult(success=True)
        self.gate: Optional[asyncio.Event] = None

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    async def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if self.gate is not None:
            await self.gate.wait()

    async def login(self, email: str, password: str) -> AuthOutcome:
        await self._record("login", email, password)
        return self.login_outcome

    async def register(
        self, email: str, password: str, username: str, display_name: str
    ) -> AuthOutcome:
        await self._record("register", email, password, username, display_name)
        return self.register_outcome

    async def logout(self, access_token: str) -> ActionResult:
        await self._record("logout", access_token)
        return ActionResult(success=True)

    async def refresh_token(self, refresh_token: str) -> AuthOutcome:
        await self._record("refresh_token", refresh_token)
        return self.refresh_outcome

    async def forgot_password(self, email: str) -> ActionResult:
        await self._record("forgot_password", email)
        return self.reset_result


class FakeProfileGateway:
    """Availability answers and profiles on demand, with call recording."""

    def __init__(self) -> None:
        self.availability: dict[str, bool] = {}
        self.availability_sequence: list[bool] = []
        self.availability_error: Optional[Exception] = None
        self.availability_calls: list[str] = []
        self.profile: Optional[Profile] = None
        self.profile_error: Optional[GatewayError] = None
        self.profile_calls: list[tuple[str, str]] = []

    async def check_username_availability(self, username: str) -> bool:
        self.availability_calls.append(username)
        await asyncio.sleep(0)
        if self.availability_error is not None:
            raise self.availability_error
        if self.availability_sequence:
            return self.availability_sequence.pop(0)
        return self.availability.get(username, True)

    async def get_user_profile(self, user_id: str, access_token: str) -> Profile:
        self.profile_calls.append((user_id, access_token))
        await asyncio.sleep(0)
        if self.profile_error is not None:
            raise self.profile_error
        if self.profile is None:
            raise GatewayError(ErrorKind.NOT_FOUND, f"No profile for user {user_id}")
        return self.profile


@pytest.fixture
def auth_gateway() -> FakeAuthGateway:
    return FakeAuthGateway()


@pytest.fixture
def profile_gateway() -> FakeProfileGateway:
    return FakeProfileGateway()


# ---------------------------------------------------------------------------
# BACKEND CLIENT HELPERS
# ---------------------------------------------------------------------------

class StubMonitor:
    """Connectivity probe with a fixed answer."""

    def __init__(self, connected: bool = True) -> None:
        self.connected = connected
        self.probes = 0

    async def is_connected(self) -> bool:
        self.probes += 1
        return self.connected


class FakeQuery:
    """Minimal stand-in for a PostgREST request builder chain."""

    def __init__(self, client: "FakeTableClient", target: str) -> None:
        self.client = client
        self.target = target
        self.action: tuple[str, Any] = ("select", "*")
        self.filters: list[tuple[str, Any]] = []

    def select(self, columns: str) -> "FakeQuery":
        self.action = ("select", columns)
        return self

    def update(self, values: dict[str, Any]) -> "FakeQuery":
        self.action = ("update", values)
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append((column, value))
        return self

    def limit(self, count: int) -> "FakeQuery":
        return self

    async def execute(self) -> Any:
        self.client.executed.append(self)
        return self.client.responder(self)


class FakeTableClient:
    def __init__(self, responder: Callable[[FakeQuery], Any]) -> None:
        self.responder = responder
        self.executed: list[FakeQuery] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: dict[str, Any]) -> FakeQuery:
        query = FakeQuery(self, name)
        query.action = ("rpc", params)
        return query


def rows(*items: dict[str, Any]) -> SimpleNamespace:
    """A table API response carrying *items*."""
    return SimpleNamespace(data=list(items))


def make_backend(
    config: AppConfig,
    logger: StructuredLogger,
    handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
    monitor: Optional[StubMonitor] = None,
    tables: Optional[FakeTableClient] = None,
) -> BackendClient:
    """BackendClient over ``httpx.MockTransport`` and an optional fake table client."""
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler or (lambda request: httpx.Response(200, json={}))),
        base_url=config.SUPABASE_URL,
    )

    async def _factory(access_token: Optional[str]) -> Any:
        if tables is None:
            raise AssertionError("table client not configured for this test")
        return tables

    return BackendClient(
        config=config,
        logger=logger,
        monitor=monitor or StubMonitor(True),
        http_client=http_client,
        table_client_factory=_factory,
    )
