"""
Auth Gateway.

Translates local auth operations into calls against the backend's auth
REST endpoints and normalises every response.  No method raises: each
returns an ``AuthSuccess``/``AuthFailure`` (or an ``ActionResult`` for
calls that yield no tokens), so callers switch on ``outcome.success``.

Endpoints (relative to the backend URL)::

    POST /auth/v1/signup                          register
    POST /auth/v1/token?grant_type=password       login
    POST /auth/v1/token?grant_type=refresh_token  refresh
    POST /auth/v1/logout                          logout (bearer)
    POST /auth/v1/recover                         password recovery
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import ValidationError

from nimbustalk.gateways.backend_client import BackendClient
from nimbustalk.gateways.errors import GatewayError, normalize_error_response
from nimbustalk.logger import StructuredLogger
from nimbustalk.models.auth_models import (
    ActionResult,
    AuthFailure,
    AuthOutcome,
    AuthSuccess,
    AuthTokenResponse,
    RemoteUser,
)
from nimbustalk.models.enums import ErrorKind

SIGNUP_PATH: str = "/auth/v1/signup"
TOKEN_PATH: str = "/auth/v1/token"
LOGOUT_PATH: str = "/auth/v1/logout"
RECOVER_PATH: str = "/auth/v1/recover"


class AuthGateway:
    """Auth REST operations.

    Parameters
    ----------
    backend:
        Shared ``BackendClient``.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(self, backend: BackendClient, logger: StructuredLogger) -> None:
        self._backend = backend
        self._logger = logger

    # ------------------------------------------------------------------
    # Token-yielding operations
    # ------------------------------------------------------------------

    async def register(
        self,
        email: str,
        password: str,
        username: str,
        display_name: str,
    ) -> AuthOutcome:
        """Create an account with username and display name as user metadata.

        A 2xx body carrying only the user object means the account exists
        but email confirmation is pending; that is reported as
        ``EmailUnverified`` because there is no session to persist.
        """
        payload = {
            "email": email.strip(),
            "password": password,
            "data": {"username": username, "display_name": display_name},
        }
        outcome = await self._request_tokens("REGISTER", SIGNUP_PATH, payload)
        if isinstance(outcome, AuthFailure):
            self._logger.warning(
                "Registration failed.",
                extra={"event": "REGISTER_FAILED", "error_kind": outcome.kind},
            )
        else:
            self._logger.info(
                "Registration succeeded.",
                extra={"event": "REGISTER", "user_id": outcome.user.id if outcome.user else ""},
            )
        return outcome

    async def login(self, email: str, password: str) -> AuthOutcome:
        """Exchange email and password for a token pair."""
        outcome = await self._request_tokens(
            "LOGIN",
            TOKEN_PATH,
            {"email": email.strip(), "password": password},
            params={"grant_type": "password"},
        )
        if isinstance(outcome, AuthFailure):
            self._logger.warning(
                "Login failed.",
                extra={"event": "LOGIN_FAILED", "error_kind": outcome.kind},
            )
        else:
            self._logger.info(
                "Login succeeded.",
                extra={"event": "LOGIN", "user_id": outcome.user.id if outcome.user else ""},
            )
        return outcome

    async def refresh_token(self, refresh_token: str) -> AuthOutcome:
        """Exchange a refresh token for a new pair.  ``user`` is optional here."""
        outcome = await self._request_tokens(
            "REFRESH",
            TOKEN_PATH,
            {"refresh_token": refresh_token},
            params={"grant_type": "refresh_token"},
            require_user=False,
        )
        if isinstance(outcome, AuthFailure):
            self._logger.warning(
                "Token refresh failed.",
                extra={"event": "REFRESH_FAILED", "error_kind": outcome.kind},
            )
        else:
            self._logger.info("Token refreshed.", extra={"event": "REFRESH"})
        return outcome

    # ------------------------------------------------------------------
    # Token-less operations
    # ------------------------------------------------------------------

    async def logout(self, access_token: str) -> ActionResult:
        """Revoke the session server-side.

        Always reports success: the local session is torn down regardless,
        so a failed remote call is only logged.
        """
        try:
            response = await self._backend.post(LOGOUT_PATH, access_token=access_token)
        except GatewayError as exc:
            self._logger.warning(
                "Remote logout failed (%s); continuing with local sign-out.",
                exc.kind,
                extra={"event": "LOGOUT_REMOTE_FAILED"},
            )
        else:
            if not response.is_success:
                self._logger.warning(
                    "Remote logout returned HTTP %d; continuing with local sign-out.",
                    response.status_code,
                    extra={"event": "LOGOUT_REMOTE_FAILED"},
                )
        self._logger.info("Logout completed.", extra={"event": "LOGOUT"})
        return ActionResult(success=True)

    async def forgot_password(self, email: str) -> ActionResult:
        """Ask the backend to send a recovery email.

        Success means the request was accepted for sending, not that an
        email was delivered or that the address is registered.
        """
        try:
            response = await self._backend.post(RECOVER_PATH, {"email": email.strip()})
        except GatewayError as exc:
            return ActionResult(success=False, kind=exc.kind, message=exc.user_message)

        if response.is_success:
            self._logger.info("Password recovery requested.", extra={"event": "PASSWORD_RESET"})
            return ActionResult(success=True, http_status=response.status_code)

        error = normalize_error_response(response.status_code, response.text)
        self._logger.warning(
            "Password recovery request failed.",
            extra={"event": "PASSWORD_RESET_FAILED", "error_kind": error.kind},
        )
        return ActionResult(
            success=False,
            kind=error.kind,
            message=error.user_message,
            http_status=error.http_status,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _request_tokens(
        self,
        operation: str,
        path: str,
        payload: dict[str, Any],
        params: Optional[dict[str, str]] = None,
        require_user: bool = True,
    ) -> AuthOutcome:
        try:
            response = await self._backend.post(path, payload, params=params)
        except GatewayError as exc:
            return exc.to_failure()

        if not response.is_success:
            return normalize_error_response(response.status_code, response.text).to_failure()

        return self._parse_token_response(operation, response, require_user)

    def _parse_token_response(
        self,
        operation: str,
        response: httpx.Response,
        require_user: bool,
    ) -> AuthOutcome:
        try:
            body = AuthTokenResponse.model_validate_json(response.text)
        except ValidationError as exc:
            self._logger.error("%s response could not be parsed: %s", operation, exc)
            return AuthFailure(
                kind=ErrorKind.UNKNOWN,
                raw_message="Unexpected response from server",
                http_status=response.status_code,
            )

        if not body.has_tokens:
            if operation == "REGISTER" and _parse_bare_user(response.text) is not None:
                return AuthFailure(
                    kind=ErrorKind.EMAIL_UNVERIFIED,
                    raw_message="Confirmation email sent",
                    http_status=response.status_code,
                )
            return AuthFailure(
                kind=ErrorKind.UNKNOWN,
                raw_message=f"{operation.title()} response incomplete",
                http_status=response.status_code,
            )

        if require_user and body.user is None:
            return AuthFailure(
                kind=ErrorKind.UNKNOWN,
                raw_message=f"{operation.title()} response incomplete",
                http_status=response.status_code,
            )

        return AuthSuccess(
            access_token=body.access_token or "",
            refresh_token=body.refresh_token or "",
            expires_in=body.expires_in,
            user=body.user,
        )


def _parse_bare_user(body_text: str) -> Optional[RemoteUser]:
    """Signup with confirmation pending returns the user object at top level."""
    try:
        return RemoteUser.model_validate_json(body_text)
    except ValidationError:
        return None
