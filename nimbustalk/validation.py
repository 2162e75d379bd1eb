"""
Form Validation Rules.

Pure functions mapping a raw field value to a ``ValidationOutcome``.
Deterministic, no I/O, safe to call on every keystroke.  Every value is
trimmed before it is checked; usernames are also lowercased.
"""

from __future__ import annotations

import re
from typing import Optional

from nimbustalk.models.enums import FieldKind, ValidationOutcome

EMAIL_PATTERN: re.Pattern[str] = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
USERNAME_PATTERN: re.Pattern[str] = re.compile(r"[a-zA-Z0-9_]+")
_HAS_LETTER: re.Pattern[str] = re.compile(r"[a-zA-Z]")
_HAS_DIGIT: re.Pattern[str] = re.compile(r"[0-9]")

MIN_PASSWORD_LENGTH: int = 6
MAX_PASSWORD_LENGTH: int = 128
MIN_USERNAME_LENGTH: int = 3
MAX_USERNAME_LENGTH: int = 50
DEFAULT_MIN_DISPLAY_NAME_LENGTH: int = 1
MAX_DISPLAY_NAME_LENGTH: int = 100


# ---------------------------------------------------------------------------
# Normalisation helpers
# ---------------------------------------------------------------------------

def clean_input(value: Optional[str]) -> str:
    """Trim surrounding whitespace; ``None`` becomes ``""``."""
    return (value or "").strip()


def sanitize_username(value: Optional[str]) -> str:
    return clean_input(value).lower()


def sanitize_display_name(value: Optional[str]) -> str:
    return clean_input(value)


# ---------------------------------------------------------------------------
# Field rules
# ---------------------------------------------------------------------------

def validate_email(value: Optional[str]) -> ValidationOutcome:
    email = clean_input(value)
    if not email:
        return ValidationOutcome.EMAIL_EMPTY
    if EMAIL_PATTERN.fullmatch(email) is None:
        return ValidationOutcome.EMAIL_INVALID
    return ValidationOutcome.VALID


def validate_password(value: Optional[str]) -> ValidationOutcome:
    password = clean_input(value)
    if not password:
        return ValidationOutcome.PASSWORD_EMPTY
    if len(password) < MIN_PASSWORD_LENGTH:
        return ValidationOutcome.PASSWORD_TOO_SHORT
    if len(password) > MAX_PASSWORD_LENGTH:
        return ValidationOutcome.PASSWORD_TOO_LONG
    if _HAS_LETTER.search(password) is None or _HAS_DIGIT.search(password) is None:
        return ValidationOutcome.PASSWORD_WEAK
    return ValidationOutcome.VALID


def validate_login_password(value: Optional[str]) -> ValidationOutcome:
    """Sign-in only requires a password; the strength rules apply at sign-up."""
    if not clean_input(value):
        return ValidationOutcome.PASSWORD_EMPTY
    return ValidationOutcome.VALID


def validate_confirm_password(
    password: Optional[str], confirm_password: Optional[str]
) -> ValidationOutcome:
    confirm = clean_input(confirm_password)
    if not confirm:
        return ValidationOutcome.CONFIRM_PASSWORD_EMPTY
    if clean_input(password) != confirm:
        return ValidationOutcome.PASSWORDS_DO_NOT_MATCH
    return ValidationOutcome.VALID


def validate_username(value: Optional[str]) -> ValidationOutcome:
    """Format check only.  Availability is a separate asynchronous check."""
    username = sanitize_username(value)
    if not username:
        return ValidationOutcome.USERNAME_EMPTY
    if len(username) < MIN_USERNAME_LENGTH:
        return ValidationOutcome.USERNAME_TOO_SHORT
    if len(username) > MAX_USERNAME_LENGTH:
        return ValidationOutcome.USERNAME_TOO_LONG
    if USERNAME_PATTERN.fullmatch(username) is None:
        return ValidationOutcome.USERNAME_INVALID_CHARACTERS
    return ValidationOutcome.VALID


def validate_display_name(
    value: Optional[str],
    min_length: int = DEFAULT_MIN_DISPLAY_NAME_LENGTH,
) -> ValidationOutcome:
    display_name = clean_input(value)
    if not display_name:
        return ValidationOutcome.DISPLAY_NAME_EMPTY
    if len(display_name) < max(min_length, 1):
        return ValidationOutcome.DISPLAY_NAME_TOO_SHORT
    if len(display_name) > MAX_DISPLAY_NAME_LENGTH:
        return ValidationOutcome.DISPLAY_NAME_TOO_LONG
    return ValidationOutcome.VALID


def validate(
    kind: FieldKind,
    value: Optional[str],
    other: Optional[str] = None,
    *,
    min_display_name_length: int = DEFAULT_MIN_DISPLAY_NAME_LENGTH,
) -> ValidationOutcome:
    """Dispatch to the rule for *kind*.

    Parameters
    ----------
    kind:
        Which field *value* belongs to.
    value:
        Raw field text.
    other:
        For ``CONFIRM_PASSWORD`` only: the password being confirmed.
    min_display_name_length:
        Product-chosen display-name minimum (at least 1).
    """
    if kind is FieldKind.EMAIL:
        return validate_email(value)
    if kind is FieldKind.PASSWORD:
        return validate_password(value)
    if kind is FieldKind.CONFIRM_PASSWORD:
        return validate_confirm_password(other, value)
    if kind is FieldKind.USERNAME:
        return validate_username(value)
    if kind is FieldKind.DISPLAY_NAME:
        return validate_display_name(value, min_display_name_length)
    raise ValueError(f"Unsupported field kind: {kind!r}")


# ---------------------------------------------------------------------------
# Whole-form helpers
# ---------------------------------------------------------------------------

def is_valid_login_form(email: Optional[str], password: Optional[str]) -> bool:
    return (
        validate_email(email).is_valid
        and validate_login_password(password).is_valid
    )


def is_valid_registration_form(
    email: Optional[str],
    username: Optional[str],
    display_name: Optional[str],
    password: Optional[str],
    confirm_password: Optional[str],
    min_display_name_length: int = DEFAULT_MIN_DISPLAY_NAME_LENGTH,
) -> bool:
    """Format validity of every registration field (availability not included)."""
    return all(
        outcome.is_valid
        for outcome in (
            validate_email(email),
            validate_username(username),
            validate_display_name(display_name, min_display_name_length),
            validate_password(password),
            validate_confirm_password(password, confirm_password),
        )
    )
