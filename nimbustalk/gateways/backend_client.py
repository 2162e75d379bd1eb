"""
Backend Client.

Owns the connections to the hosted backend:

- **Auth REST** (``/auth/v1/...``): one ``httpx.AsyncClient``.  The auth
  gateway needs raw status codes and bodies to normalise errors, so these
  calls go over plain HTTP.
- **Table API** (``/rest/v1/...``): ``supabase`` async clients, created
  lazily.  One anonymous client plus one bound to the current user's
  bearer token; a new token replaces the bound client.

Every call is preceded by a connectivity probe and fails fast with a
``Network`` error when the backend is unreachable.  Transport failures
are mapped to ``GatewayError`` here so gateways only deal with HTTP-level
outcomes.

Usage (dependency injection at app startup)::

    backend = BackendClient(config=config, logger=StructuredLogger(name="backend"))
    auth = AuthGateway(backend=backend, logger=...)
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, Protocol

import httpx
from supabase import AsyncClient, AsyncClientOptions, acreate_client

from nimbustalk.config import AppConfig
from nimbustalk.gateways.errors import GatewayError
from nimbustalk.logger import StructuredLogger
from nimbustalk.models.enums import ErrorKind

TableClientFactory = Callable[[Optional[str]], Awaitable[AsyncClient]]


class ConnectivityProbe(Protocol):
    async def is_connected(self) -> bool: ...


class NetworkMonitor:
    """Pre-flight connectivity probe: a short TCP connect to the backend host."""

    def __init__(self, config: AppConfig, logger: StructuredLogger) -> None:
        self._config = config
        self._logger = logger

    async def is_connected(self) -> bool:
        if not self._config.SUPABASE_URL:
            return False
        url = httpx.URL(self._config.SUPABASE_URL)
        if not url.host:
            return False
        port = url.port or (443 if url.scheme == "https" else 80)
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(url.host, port),
                timeout=self._config.CONNECTIVITY_PROBE_TIMEOUT_S,
            )
        except (OSError, asyncio.TimeoutError) as exc:
            self._logger.warning(
                "Connectivity probe to %s:%d failed: %s", url.host, port, exc,
            )
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as exc:
            self._logger.debug("Connectivity probe socket teardown failed: %s", exc)
        return True


class BackendClient:
    """Connection owner for the auth and table APIs.

    Parameters
    ----------
    config:
        Application configuration (URL, API key, timeouts).
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    monitor:
        Connectivity probe; defaults to ``NetworkMonitor``.
    http_client:
        Pre-built ``httpx.AsyncClient`` (tests pass one with a
        ``MockTransport``).  Its ``base_url`` must be the backend URL.
    table_client_factory:
        Coroutine building a table client for an optional bearer token.
    """

    def __init__(
        self,
        config: AppConfig,
        logger: StructuredLogger,
        monitor: Optional[ConnectivityProbe] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        table_client_factory: Optional[TableClientFactory] = None,
    ) -> None:
        self._config = config
        self._logger = logger
        self._api_key: str = config.SUPABASE_ANON_KEY.get_secret_value()
        self._monitor: ConnectivityProbe = monitor or NetworkMonitor(config, logger)
        self._http: httpx.AsyncClient = http_client or httpx.AsyncClient(
            base_url=config.SUPABASE_URL,
            timeout=httpx.Timeout(config.NETWORK_TIMEOUT_S),
        )
        self._table_client_factory: TableClientFactory = (
            table_client_factory or self._create_table_client
        )
        self._anon_tables: Optional[AsyncClient] = None
        self._user_tables: Optional[tuple[str, AsyncClient]] = None
        self._owned_tables: list[AsyncClient] = []
        self._tables_lock: asyncio.Lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    async def ensure_connected(self) -> None:
        """Raise a ``Network`` ``GatewayError`` unless the backend is reachable."""
        if not self._config.is_backend_configured:
            raise GatewayError(ErrorKind.NETWORK, "Backend URL or API key is not configured")
        if not await self._monitor.is_connected():
            raise GatewayError(ErrorKind.NETWORK, "No internet connection")

    # ------------------------------------------------------------------
    # Auth REST
    # ------------------------------------------------------------------

    def _headers(self, access_token: Optional[str] = None) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def post(
        self,
        path: str,
        payload: Optional[dict[str, Any]] = None,
        *,
        params: Optional[dict[str, str]] = None,
        access_token: Optional[str] = None,
    ) -> httpx.Response:
        """POST JSON to an auth endpoint.

        Returns the response whatever its status; only transport
        failures raise.

        Raises
        ------
        GatewayError
            ``Timeout`` on a timed-out request, ``Network`` when the probe
            fails or the connection cannot be made.
        """
        await self.ensure_connected()
        try:
            return await self._http.post(
                path,
                json=payload if payload is not None else {},
                params=params,
                headers=self._headers(access_token),
            )
        except httpx.TimeoutException as exc:
            raise GatewayError(ErrorKind.TIMEOUT, str(exc) or "Request timed out") from exc
        except httpx.TransportError as exc:
            raise GatewayError(ErrorKind.NETWORK, str(exc) or "Connection failed") from exc

    # ------------------------------------------------------------------
    # Table API
    # ------------------------------------------------------------------

    async def tables(self, access_token: Optional[str] = None) -> AsyncClient:
        """Return a table client, anonymous or bound to *access_token*."""
        await self.ensure_connected()
        async with self._tables_lock:
            if not access_token:
                if self._anon_tables is None:
                    self._anon_tables = await self._table_client_factory(None)
                return self._anon_tables
            if self._user_tables is None or self._user_tables[0] != access_token:
                previous = self._user_tables
                self._user_tables = (access_token, await self._table_client_factory(access_token))
                if previous is not None:
                    await self._release_table_client(previous[1])
            return self._user_tables[1]

    async def _create_table_client(self, access_token: Optional[str]) -> AsyncClient:
        options = AsyncClientOptions(
            postgrest_client_timeout=self._config.NETWORK_TIMEOUT_S,
            auto_refresh_token=False,
            persist_session=False,
        )
        if access_token:
            options.headers["Authorization"] = f"Bearer {access_token}"
        try:
            client = await acreate_client(self._config.SUPABASE_URL, self._api_key, options=options)
        except Exception as exc:
            self._logger.error("Table client initialisation failed: %s", exc, exc_info=True)
            raise GatewayError(ErrorKind.UNKNOWN, str(exc)) from exc
        self._owned_tables.append(client)
        return client

    async def _release_table_client(self, client: AsyncClient) -> None:
        """Close a table client superseded by a newer access token."""
        if client in self._owned_tables:
            self._owned_tables.remove(client)
        await client.postgrest.aclose()
        self._logger.debug("Released table client for a rotated access token.")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Release HTTP connections.  Safe to call more than once."""
        await self._http.aclose()
        for client in self._owned_tables:
            await client.postgrest.aclose()
        self._owned_tables.clear()
        self._anon_tables = None
        self._user_tables = None
        self._logger.info("Backend connections closed.")
