"""
Session Service.

Session-level operations that outlive any single screen:

- ``logout``: best-effort remote sign-out, then local teardown.  Never
  raises and is idempotent.
- ``refresh_session``: rotate the token pair with the refresh grant and
  write back only the tokens.
"""

from __future__ import annotations

from nimbustalk.gateways.auth_gateway import AuthGateway
from nimbustalk.logger import StructuredLogger
from nimbustalk.models.auth_models import ActionResult, AuthFailure, AuthOutcome
from nimbustalk.models.enums import ErrorKind
from nimbustalk.services.session_store import SessionStore

# Refresh failures meaning the stored refresh token is dead.
_REJECTED_REFRESH_KINDS: frozenset[ErrorKind] = frozenset({
    ErrorKind.INVALID_CREDENTIALS,
    ErrorKind.SESSION_EXPIRED,
    ErrorKind.INVALID_REQUEST,
    ErrorKind.ACCOUNT_NOT_FOUND,
})


class SessionService:
    """Logout and token refresh on top of the Session Store.

    Parameters
    ----------
    auth_gateway:
        Auth REST operations.
    session_store:
        Owner of the durable session.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(
        self,
        auth_gateway: AuthGateway,
        session_store: SessionStore,
        logger: StructuredLogger,
    ) -> None:
        self._auth = auth_gateway
        self._store = session_store
        self._logger = logger

    async def logout(self) -> ActionResult:
        """Sign out remotely if there is a token, then clear the local session."""
        access_token = (self._store.access_token() or "").strip()
        if access_token:
            await self._auth.logout(access_token)
        else:
            self._logger.debug("No stored access token; skipping remote logout.")

        self._store.clear()
        self._logger.info("Signed out.", extra={"event": "LOGOUT"})
        return ActionResult(success=True)

    async def refresh_session(self) -> AuthOutcome:
        """Rotate the stored token pair.

        On success only the two tokens are overwritten.  If the backend
        rejects the refresh token the session is cleared; transport or
        server failures leave it in place for a later retry.
        """
        refresh_token = (self._store.refresh_token() or "").strip()
        if not refresh_token:
            return AuthFailure(kind=ErrorKind.SESSION_EXPIRED, raw_message="No refresh token stored")

        outcome = await self._auth.refresh_token(refresh_token)
        if isinstance(outcome, AuthFailure):
            if outcome.kind in _REJECTED_REFRESH_KINDS:
                self._logger.warning(
                    "Refresh token rejected (%s); clearing session.", outcome.kind,
                    extra={"event": "SESSION_EXPIRED"},
                )
                self._store.clear()
            return outcome

        self._store.update_access_token(outcome.access_token)
        self._store.update_refresh_token(outcome.refresh_token)
        return outcome
