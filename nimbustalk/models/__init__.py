from __future__ import annotations

"""
Data Models Package.

Re-exports the models and enumerations used across the package:
    from nimbustalk.models import Session, Profile, AuthSuccess, AuthFailure
    from nimbustalk.models import ErrorKind, ValidationOutcome, LoadingState
"""

from nimbustalk.models.auth_models import (
    ActionResult,
    AuthFailure,
    AuthOutcome,
    AuthSuccess,
    AuthTokenResponse,
    BackendErrorBody,
    RemoteUser,
)
from nimbustalk.models.enums import (
    BootstrapOutcome,
    ErrorKind,
    FieldKind,
    LoadingState,
    ThemeMode,
    UsernameAvailability,
    UserStatus,
    ValidationOutcome,
)
from nimbustalk.models.session import Session, SessionEvent
from nimbustalk.models.user import Profile

__all__ = [
    "ActionResult",
    "AuthFailure",
    "AuthOutcome",
    "AuthSuccess",
    "AuthTokenResponse",
    "BackendErrorBody",
    "RemoteUser",
    "BootstrapOutcome",
    "ErrorKind",
    "FieldKind",
    "LoadingState",
    "ThemeMode",
    "UsernameAvailability",
    "UserStatus",
    "ValidationOutcome",
    "Session",
    "SessionEvent",
    "Profile",
]
