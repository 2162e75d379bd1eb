"""
Shared Enumerations for NimbusTalk Models.

All string enumerations for type-safe state and error values.
StrEnum values compare equal to their string equivalents, so UI code
can switch on either the member or its wire value.
"""

from __future__ import annotations

from enum import StrEnum


class LoadingState(StrEnum):
    """Lifecycle of one submit-triggered network attempt."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class UsernameAvailability(StrEnum):
    """Tri-state result of the debounced availability check.

    ``UNKNOWN`` covers both "not checked yet" and "format invalid", and is
    also what a failed check resolves to; a failure never reads as taken.
    """

    UNKNOWN = "unknown"
    AVAILABLE = "available"
    TAKEN = "taken"


class BootstrapOutcome(StrEnum):
    """Classification of the stored session at launch."""

    NOT_LOGGED_IN = "not_logged_in"
    CORRUPTED = "corrupted"
    AUTHENTICATED = "authenticated"


class UserStatus(StrEnum):
    """Presence status stored on the profile row."""

    ONLINE = "online"
    OFFLINE = "offline"
    AWAY = "away"


class ThemeMode(StrEnum):
    """Persisted theme choice.  Stored as its integer code."""

    SYSTEM = "system"
    LIGHT = "light"
    DARK = "dark"

    @property
    def code(self) -> int:
        return _THEME_CODES[self]

    @classmethod
    def from_code(cls, code: int) -> "ThemeMode":
        for mode, value in _THEME_CODES.items():
            if value == code:
                return mode
        return cls.SYSTEM


_THEME_CODES: dict[ThemeMode, int] = {
    ThemeMode.SYSTEM: 0,
    ThemeMode.LIGHT: 1,
    ThemeMode.DARK: 2,
}


class FieldKind(StrEnum):
    """Form fields understood by the validation rules."""

    EMAIL = "email"
    PASSWORD = "password"
    CONFIRM_PASSWORD = "confirm_password"
    USERNAME = "username"
    DISPLAY_NAME = "display_name"


# ---------------------------------------------------------------------------
# Field validation outcomes
# ---------------------------------------------------------------------------

class ValidationOutcome(StrEnum):
    """Result of validating one field: ``VALID`` or exactly one error kind."""

    VALID = "valid"

    EMAIL_EMPTY = "email_empty"
    EMAIL_INVALID = "email_invalid"
    EMAIL_ALREADY_EXISTS = "email_already_exists"

    PASSWORD_EMPTY = "password_empty"
    PASSWORD_TOO_SHORT = "password_too_short"
    PASSWORD_TOO_LONG = "password_too_long"
    PASSWORD_WEAK = "password_weak"

    CONFIRM_PASSWORD_EMPTY = "confirm_password_empty"
    PASSWORDS_DO_NOT_MATCH = "passwords_do_not_match"

    USERNAME_EMPTY = "username_empty"
    USERNAME_TOO_SHORT = "username_too_short"
    USERNAME_TOO_LONG = "username_too_long"
    USERNAME_INVALID_CHARACTERS = "username_invalid_characters"
    USERNAME_ALREADY_EXISTS = "username_already_exists"

    DISPLAY_NAME_EMPTY = "display_name_empty"
    DISPLAY_NAME_TOO_SHORT = "display_name_too_short"
    DISPLAY_NAME_TOO_LONG = "display_name_too_long"

    @property
    def is_valid(self) -> bool:
        return self is ValidationOutcome.VALID

    @property
    def message(self) -> str:
        """Inline message for the field; empty for ``VALID``."""
        return VALIDATION_MESSAGES[self]


VALIDATION_MESSAGES: dict[ValidationOutcome, str] = {
    ValidationOutcome.VALID: "",
    ValidationOutcome.EMAIL_EMPTY: "Email is required",
    ValidationOutcome.EMAIL_INVALID: "Please enter a valid email address",
    ValidationOutcome.EMAIL_ALREADY_EXISTS: "Email is already registered",
    ValidationOutcome.PASSWORD_EMPTY: "Password is required",
    ValidationOutcome.PASSWORD_TOO_SHORT: "Password must be at least 6 characters",
    ValidationOutcome.PASSWORD_TOO_LONG: "Password must be less than 128 characters",
    ValidationOutcome.PASSWORD_WEAK: "Password should contain letters and numbers",
    ValidationOutcome.CONFIRM_PASSWORD_EMPTY: "Please confirm your password",
    ValidationOutcome.PASSWORDS_DO_NOT_MATCH: "Passwords do not match",
    ValidationOutcome.USERNAME_EMPTY: "Username is required",
    ValidationOutcome.USERNAME_TOO_SHORT: "Username must be at least 3 characters",
    ValidationOutcome.USERNAME_TOO_LONG: "Username must be less than 50 characters",
    ValidationOutcome.USERNAME_INVALID_CHARACTERS: "Username can only contain letters, numbers, and underscores",
    ValidationOutcome.USERNAME_ALREADY_EXISTS: "Username is already taken",
    ValidationOutcome.DISPLAY_NAME_EMPTY: "Display name is required",
    ValidationOutcome.DISPLAY_NAME_TOO_SHORT: "Display name is too short",
    ValidationOutcome.DISPLAY_NAME_TOO_LONG: "Display name must be less than 100 characters",
}


# ---------------------------------------------------------------------------
# Flow-level error taxonomy
# ---------------------------------------------------------------------------

class ErrorKind(StrEnum):
    """Closed, normalised error taxonomy the UI layer switches on.

    Backend wording never leaks past the gateways; every failure is
    reduced to one of these members first.
    """

    FIELD_VALIDATION = "field_validation"
    USERNAME_UNAVAILABLE = "username_unavailable"
    NETWORK = "network"
    TIMEOUT = "timeout"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_NOT_FOUND = "account_not_found"
    EMAIL_UNVERIFIED = "email_unverified"
    EMAIL_ALREADY_REGISTERED = "email_already_registered"
    USERNAME_ALREADY_TAKEN = "username_already_taken"
    WEAK_PASSWORD = "weak_password"
    RATE_LIMITED = "rate_limited"
    SESSION_EXPIRED = "session_expired"
    INVALID_REQUEST = "invalid_request"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID_DATA = "invalid_data"
    SERVER_ERROR = "server_error"
    UNKNOWN = "unknown"

    @property
    def message(self) -> str:
        return ERROR_MESSAGES[self]


ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.FIELD_VALIDATION: "Please fix the errors before proceeding",
    ErrorKind.USERNAME_UNAVAILABLE: "Username is not available",
    ErrorKind.NETWORK: "No internet connection. Please check your network and try again.",
    ErrorKind.TIMEOUT: "The request timed out. Please try again.",
    ErrorKind.INVALID_CREDENTIALS: "Invalid email or password",
    ErrorKind.ACCOUNT_NOT_FOUND: "No account found with this email",
    ErrorKind.EMAIL_UNVERIFIED: "Please verify your email address before signing in",
    ErrorKind.EMAIL_ALREADY_REGISTERED: "An account with this email already exists",
    ErrorKind.USERNAME_ALREADY_TAKEN: "This username is already taken",
    ErrorKind.WEAK_PASSWORD: "Password is too weak. Please choose a stronger password.",
    ErrorKind.RATE_LIMITED: "Too many attempts. Please wait a moment and try again.",
    ErrorKind.SESSION_EXPIRED: "Your session has expired. Please sign in again.",
    ErrorKind.INVALID_REQUEST: "Invalid request. Please check your input.",
    ErrorKind.FORBIDDEN: "You do not have permission to perform this action.",
    ErrorKind.NOT_FOUND: "The requested resource was not found.",
    ErrorKind.CONFLICT: "This record conflicts with existing data.",
    ErrorKind.INVALID_DATA: "The submitted data is invalid.",
    ErrorKind.SERVER_ERROR: "Server error. Please try again later.",
    ErrorKind.UNKNOWN: "Something went wrong. Please try again.",
}
