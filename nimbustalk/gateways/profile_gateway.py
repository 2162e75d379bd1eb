"""
Profile Gateway.

Reads and writes rows of the backend ``users`` table through the
``supabase`` table API, and answers username-availability questions for
the registration flow.

Every failure raises ``GatewayError``.  A failed availability check is
therefore never confused with "taken": ``False`` is only returned when
the backend answered with a matching row.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

import httpx
from postgrest.exceptions import APIError
from pydantic import ValidationError
from supabase import AsyncClient

from nimbustalk.config import AppConfig
from nimbustalk.gateways.backend_client import BackendClient
from nimbustalk.gateways.errors import GatewayError, normalize_api_error
from nimbustalk.logger import StructuredLogger
from nimbustalk.models.enums import ErrorKind
from nimbustalk.models.user import UPDATABLE_PROFILE_FIELDS, Profile
from nimbustalk.validation import sanitize_display_name, sanitize_username

Row = dict[str, Any]
QueryBuilder = Callable[[AsyncClient], Awaitable[Any]]


class ProfileGateway:
    """Data access for user profiles.

    Parameters
    ----------
    backend:
        Shared ``BackendClient``.
    config:
        Supplies the table and RPC names.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(
        self,
        backend: BackendClient,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        self._backend = backend
        self._table: str = config.USERS_TABLE
        self._search_rpc: str = config.SEARCH_USERS_RPC
        self._logger = logger

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    async def check_username_availability(self, username: str) -> bool:
        """``True`` iff no row has exactly this (sanitised) username.

        Raises
        ------
        GatewayError
            On any network, backend or parse failure.
        """
        candidate = sanitize_username(username)
        rows = await self._run(
            "check_username_availability",
            lambda client: client.table(self._table)
            .select("id")
            .eq("username", candidate)
            .limit(1)
            .execute(),
        )
        available = len(rows) == 0
        self._logger.debug(
            "Username availability checked.",
            extra={"event": "USERNAME_CHECK", "username": candidate, "available": available},
        )
        return available

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_user_profile(self, user_id: str, access_token: str) -> Profile:
        """Fetch a profile by id.  Zero rows raises ``NotFound``."""
        rows = await self._run(
            "get_user_profile",
            lambda client: client.table(self._table)
            .select("*")
            .eq("id", user_id)
            .limit(1)
            .execute(),
            access_token,
        )
        if not rows:
            raise GatewayError(ErrorKind.NOT_FOUND, f"No profile for user {user_id}")
        return self._to_profile(rows[0])

    async def get_user_by_username(
        self, username: str, access_token: Optional[str] = None
    ) -> Optional[Profile]:
        """Fetch a profile by exact username, or ``None``."""
        candidate = sanitize_username(username)
        rows = await self._run(
            "get_user_by_username",
            lambda client: client.table(self._table)
            .select("*")
            .eq("username", candidate)
            .limit(1)
            .execute(),
            access_token,
        )
        return self._to_profile(rows[0]) if rows else None

    async def search_users(self, query: str, access_token: str) -> list[Profile]:
        """Search users by username or display name via the ``search_users`` RPC."""
        term = query.strip()
        if not term:
            return []
        rows = await self._run(
            "search_users",
            lambda client: client.rpc(self._search_rpc, {"search_term": term}).execute(),
            access_token,
        )
        return [self._to_profile(row) for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def update_user_profile(
        self,
        user_id: str,
        updates: dict[str, Any],
        access_token: str,
    ) -> Profile:
        """Apply *updates* to the user's row and return the updated profile.

        Raises
        ------
        ValueError
            If *updates* is empty or names a column clients may not change.
        GatewayError
            On any backend failure, including ``NotFound``.
        """
        if not updates:
            raise ValueError("No profile fields to update")
        unknown = set(updates) - UPDATABLE_PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {', '.join(sorted(unknown))}")

        values = dict(updates)
        if "username" in values:
            values["username"] = sanitize_username(values["username"])
        if "display_name" in values:
            values["display_name"] = sanitize_display_name(values["display_name"])

        rows = await self._run(
            "update_user_profile",
            lambda client: client.table(self._table)
            .update(values)
            .eq("id", user_id)
            .execute(),
            access_token,
        )
        self._logger.info(
            "Profile updated.",
            extra={"event": "PROFILE_UPDATE", "user_id": user_id, "fields": ",".join(sorted(values))},
        )
        if rows:
            return self._to_profile(rows[0])
        return await self.get_user_profile(user_id, access_token)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _run(
        self,
        operation: str,
        query: QueryBuilder,
        access_token: Optional[str] = None,
    ) -> list[Row]:
        """Execute *query* and return its rows, normalising every failure."""
        try:
            client = await self._backend.tables(access_token)
            response = await query(client)
        except GatewayError:
            raise
        except APIError as exc:
            error = normalize_api_error(exc)
            self._logger.warning(
                "%s failed: %s", operation, error.raw_message,
                extra={"event": "TABLE_API_ERROR", "error_kind": error.kind},
            )
            raise error from exc
        except httpx.TimeoutException as exc:
            raise GatewayError(ErrorKind.TIMEOUT, str(exc) or "Request timed out") from exc
        except httpx.HTTPError as exc:
            raise GatewayError(ErrorKind.NETWORK, str(exc) or "Connection failed") from exc

        data = response.data
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        if isinstance(data, list) and all(isinstance(row, dict) for row in data):
            return data
        self._logger.error("%s returned an unexpected payload shape.", operation)
        raise GatewayError(ErrorKind.UNKNOWN, "Unexpected response from server")

    def _to_profile(self, row: Row) -> Profile:
        try:
            return Profile.model_validate(row)
        except ValidationError as exc:
            self._logger.error("Malformed profile row: %s", exc)
            raise GatewayError(ErrorKind.UNKNOWN, "Malformed profile data") from exc
