"""
Authentication Models.

Pydantic models for the auth REST contract: the success body returned by
the token/signup endpoints, the heterogeneous error bodies the backend
emits, and the normalised outcomes the Auth Gateway hands to callers.

The raw error shape never travels past ``nimbustalk.gateways.errors``;
callers only ever see ``AuthFailure`` with an ``ErrorKind``.
"""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from nimbustalk.models.enums import ErrorKind


# ---------------------------------------------------------------------------
# Backend error classification
# ---------------------------------------------------------------------------

# Ordered rules: every substring of a rule must appear (case-insensitive)
# in the inspected text.  First hit wins, so the username duplicate-key
# rule sits before the email one.
BACKEND_ERROR_RULES: tuple[tuple[tuple[str, ...], ErrorKind], ...] = (
    (("invalid_grant",), ErrorKind.INVALID_CREDENTIALS),
    (("invalid_credentials",), ErrorKind.INVALID_CREDENTIALS),
    (("invalid login credentials",), ErrorKind.INVALID_CREDENTIALS),
    (("user_not_found",), ErrorKind.ACCOUNT_NOT_FOUND),
    (("user not found",), ErrorKind.ACCOUNT_NOT_FOUND),
    (("email_not_confirmed",), ErrorKind.EMAIL_UNVERIFIED),
    (("email not confirmed",), ErrorKind.EMAIL_UNVERIFIED),
    (("user_already_registered",), ErrorKind.EMAIL_ALREADY_REGISTERED),
    (("user_already_exists",), ErrorKind.EMAIL_ALREADY_REGISTERED),
    (("already registered",), ErrorKind.EMAIL_ALREADY_REGISTERED),
    (("duplicate key", "username"), ErrorKind.USERNAME_ALREADY_TAKEN),
    (("duplicate key", "email"), ErrorKind.EMAIL_ALREADY_REGISTERED),
    (("password_is_too_weak",), ErrorKind.WEAK_PASSWORD),
    (("weak_password",), ErrorKind.WEAK_PASSWORD),
    (("password should be at least",), ErrorKind.WEAK_PASSWORD),
    (("over_request_rate_limit",), ErrorKind.RATE_LIMITED),
    (("rate limit",), ErrorKind.RATE_LIMITED),
    (("too many requests",), ErrorKind.RATE_LIMITED),
    (("jwt expired",), ErrorKind.SESSION_EXPIRED),
)

STATUS_ERROR_KINDS: dict[int, ErrorKind] = {
    400: ErrorKind.INVALID_REQUEST,
    401: ErrorKind.INVALID_CREDENTIALS,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.CONFLICT,
    422: ErrorKind.INVALID_DATA,
    429: ErrorKind.RATE_LIMITED,
}


class BackendErrorBody(BaseModel):
    """Union of every error shape the backend is known to return.

    Auth endpoints use ``error``/``error_description`` (OAuth style) or
    ``msg``/``error_code``; the table API uses ``message``/``code``.
    """

    error: Optional[str] = None
    error_description: Optional[str] = None
    message: Optional[str] = None
    msg: Optional[str] = None
    error_code: Optional[str] = None
    code: Optional[Union[int, str]] = None

    model_config = {"extra": "ignore"}

    def candidates(self) -> list[str]:
        """Non-blank message fields in matching priority order."""
        ordered = (self.error, self.error_description, self.message, self.msg, self.error_code)
        return [text for text in ordered if text and text.strip()]


# ---------------------------------------------------------------------------
# Success bodies
# ---------------------------------------------------------------------------

class RemoteUser(BaseModel):
    """The ``user`` object of an auth response.

    ``user_metadata`` is free-form; absent profile keys read as ``""``.
    """

    id: str
    email: str = ""
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "ignore"}

    def _metadata_str(self, key: str) -> str:
        value = self.user_metadata.get(key)
        return value.strip() if isinstance(value, str) else ""

    @property
    def username(self) -> str:
        return self._metadata_str("username")

    @property
    def display_name(self) -> str:
        return self._metadata_str("display_name")

    @property
    def avatar_url(self) -> Optional[str]:
        return self._metadata_str("avatar_url") or None

    @property
    def has_embedded_profile(self) -> bool:
        """True when the metadata already carries username and display name."""
        return bool(self.username and self.display_name)


class AuthTokenResponse(BaseModel):
    """Wire shape of the token and signup endpoints."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    token_type: Optional[str] = None
    user: Optional[RemoteUser] = None

    model_config = {"extra": "ignore"}

    @property
    def has_tokens(self) -> bool:
        return bool(self.access_token and self.refresh_token)


# ---------------------------------------------------------------------------
# Normalised outcomes
# ---------------------------------------------------------------------------

class AuthSuccess(BaseModel):
    """Successful auth call.  ``user`` may be absent only after a refresh."""

    success: Literal[True] = True
    access_token: str
    refresh_token: str
    expires_in: Optional[int] = None
    user: Optional[RemoteUser] = None


class AuthFailure(BaseModel):
    """Failed auth call, already normalised.

    Attributes
    ----------
    kind:
        Normalised error category.
    raw_message:
        Backend wording, kept for logs and as a last-resort message.
    http_status:
        HTTP status when the failure came from a response, else ``None``.
    """

    success: Literal[False] = False
    kind: ErrorKind
    raw_message: str = ""
    http_status: Optional[int] = None

    @property
    def message(self) -> str:
        """User-facing text.  Raw wording only when nothing better exists."""
        if self.kind is ErrorKind.UNKNOWN and self.raw_message:
            return self.raw_message
        return self.kind.message


AuthOutcome = Union[AuthSuccess, AuthFailure]


class ActionResult(BaseModel):
    """Outcome of an auth call that yields no tokens (logout, recovery)."""

    success: bool
    kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    http_status: Optional[int] = None
