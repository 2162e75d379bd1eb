"""
Backend Error Normalisation.

Reduces every failure the backend can produce (OAuth-style auth errors,
GoTrue ``msg`` bodies, PostgREST errors, bare text, transport failures)
to a single ``GatewayError`` carrying an ``ErrorKind``.  Nothing past this
module sees the raw error shapes.
"""

from __future__ import annotations

from typing import Optional

from postgrest.exceptions import APIError
from pydantic import ValidationError

from nimbustalk.models.auth_models import (
    BACKEND_ERROR_RULES,
    STATUS_ERROR_KINDS,
    AuthFailure,
    BackendErrorBody,
)
from nimbustalk.models.enums import ErrorKind

# PostgREST / Postgres codes that carry no HTTP status on the client side.
POSTGREST_CODE_KINDS: dict[str, ErrorKind] = {
    "23505": ErrorKind.CONFLICT,       # unique_violation
    "42501": ErrorKind.FORBIDDEN,      # insufficient_privilege
    "PGRST116": ErrorKind.NOT_FOUND,   # single row requested, none found
    "PGRST301": ErrorKind.SESSION_EXPIRED,
}


class GatewayError(Exception):
    """A normalised gateway failure.

    Parameters
    ----------
    kind:
        Normalised error category.
    raw_message:
        Backend or transport wording, for logs and last-resort display.
    http_status:
        HTTP status of the failed response, if there was one.
    """

    def __init__(
        self,
        kind: ErrorKind,
        raw_message: str = "",
        http_status: Optional[int] = None,
    ) -> None:
        super().__init__(raw_message or kind.message)
        self.kind: ErrorKind = kind
        self.raw_message: str = raw_message
        self.http_status: Optional[int] = http_status

    @property
    def user_message(self) -> str:
        if self.kind is ErrorKind.UNKNOWN and self.raw_message:
            return self.raw_message
        return self.kind.message

    def to_failure(self) -> AuthFailure:
        return AuthFailure(
            kind=self.kind,
            raw_message=self.raw_message,
            http_status=self.http_status,
        )

    def __repr__(self) -> str:
        return f"GatewayError(kind={self.kind!s}, http_status={self.http_status!r})"


# ---------------------------------------------------------------------------
# Classification helpers
# ---------------------------------------------------------------------------

def match_error_rules(text: str) -> Optional[ErrorKind]:
    """Return the kind of the first rule whose substrings all occur in *text*."""
    lowered = text.lower()
    for needles, kind in BACKEND_ERROR_RULES:
        if all(needle in lowered for needle in needles):
            return kind
    return None


def status_error_kind(status: Optional[int]) -> ErrorKind:
    if status is None:
        return ErrorKind.UNKNOWN
    if status >= 500:
        return ErrorKind.SERVER_ERROR
    return STATUS_ERROR_KINDS.get(status, ErrorKind.UNKNOWN)


def normalize_error_body(
    body: BackendErrorBody,
    http_status: Optional[int],
    fallback_kind: Optional[ErrorKind] = None,
    raw_text: str = "",
) -> GatewayError:
    """Classify an already-parsed error body.

    Each message field is tried in priority order; when no rule matches,
    the kind falls back to *fallback_kind* or the HTTP status default.
    """
    candidates = body.candidates()
    for text in candidates:
        kind = match_error_rules(text)
        if kind is not None:
            return GatewayError(kind, text, http_status)

    raw = candidates[0] if candidates else raw_text.strip()
    kind = fallback_kind or status_error_kind(http_status)
    return GatewayError(kind, raw, http_status)


def normalize_error_response(http_status: int, body_text: str) -> GatewayError:
    """Normalise a non-2xx HTTP response.

    Parameters
    ----------
    http_status:
        Status code of the response.
    body_text:
        Raw response body.

    Returns
    -------
    GatewayError
        Structured parse first; if the body is not a JSON error object,
        the raw text is scanned for the same substrings; finally the
        status code decides.
    """
    try:
        body = BackendErrorBody.model_validate_json(body_text)
    except ValidationError:
        body = None

    if body is not None:
        return normalize_error_body(body, http_status, raw_text=body_text)

    kind = match_error_rules(body_text)
    if kind is not None:
        return GatewayError(kind, body_text.strip(), http_status)
    return GatewayError(status_error_kind(http_status), body_text.strip(), http_status)


def normalize_api_error(exc: APIError) -> GatewayError:
    """Normalise a table API (PostgREST) error."""
    code = str(exc.code) if exc.code is not None else None
    body = BackendErrorBody(
        message=exc.message if isinstance(exc.message, str) else None,
        msg=exc.details if isinstance(exc.details, str) else None,
        code=code,
    )
    return normalize_error_body(body, None, POSTGREST_CODE_KINDS.get(code or ""))
