"""
Unit tests for the form validation rules.

Tests cover:
- Per-field rule ordering (empty, length, pattern)
- Trimming and username lowercasing
- The ``validate`` dispatcher
- Whole-form helpers used by the controllers
"""

from __future__ import annotations

import pytest

from nimbustalk.models.enums import FieldKind, ValidationOutcome
from nimbustalk.validation import (
    EMAIL_PATTERN,
    is_valid_login_form,
    is_valid_registration_form,
    sanitize_username,
    validate,
    validate_confirm_password,
    validate_display_name,
    validate_email,
    validate_login_password,
    validate_password,
    validate_username,
)


# ---------------------------------------------------------------------------
# EMAIL
# ---------------------------------------------------------------------------

class TestEmail:
    """Tests for ``validate_email``."""

    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_blank_is_empty(self, value):
        """Should report EMAIL_EMPTY for blank input."""
        assert validate_email(value) is ValidationOutcome.EMAIL_EMPTY

    @pytest.mark.parametrize(
        "value",
        ["a@b.co", "user@test.com", "first.last+tag@sub.example.org", "  user@test.com  "],
    )
    def test_simple_addresses_are_valid(self, value):
        """Should accept RFC-simple addresses, ignoring surrounding whitespace."""
        assert validate_email(value) is ValidationOutcome.VALID

    @pytest.mark.parametrize(
        "value",
        ["plainaddress", "user@", "@test.com", "user@test", "user@test.c", "us er@test.com"],
    )
    def test_malformed_addresses_are_invalid(self, value):
        """Should report EMAIL_INVALID for anything failing the pattern."""
        assert validate_email(value) is ValidationOutcome.EMAIL_INVALID

    @pytest.mark.parametrize(
        "value",
        ["a@b.co", "x@y", "name@domain.io", "bad@@domain.com", "n@d.c0m", "trailing@dot.com."],
    )
    def test_outcome_agrees_with_pattern(self, value):
        """Should be valid exactly when the whole string matches the pattern."""
        expected = EMAIL_PATTERN.fullmatch(value) is not None
        assert validate_email(value).is_valid is expected


# ---------------------------------------------------------------------------
# PASSWORDS
# ---------------------------------------------------------------------------

class TestPassword:
    """Tests for ``validate_password`` and its login/confirm variants."""

    def test_rule_order(self):
        """Should check emptiness, then length, then letter-and-digit."""
        assert validate_password("") is ValidationOutcome.PASSWORD_EMPTY
        assert validate_password("ab1") is ValidationOutcome.PASSWORD_TOO_SHORT
        assert validate_password("a1" * 65) is ValidationOutcome.PASSWORD_TOO_LONG
        assert validate_password("abcdef") is ValidationOutcome.PASSWORD_WEAK
        assert validate_password("123456") is ValidationOutcome.PASSWORD_WEAK
        assert validate_password("abc123") is ValidationOutcome.VALID

    def test_length_bounds_are_inclusive(self):
        """Should accept exactly 6 and exactly 128 characters."""
        assert validate_password("abc12x") is ValidationOutcome.VALID
        assert validate_password("a" * 127 + "1") is ValidationOutcome.VALID

    def test_surrounding_whitespace_is_trimmed(self):
        """Should measure the trimmed value."""
        assert validate_password("  ab1  ") is ValidationOutcome.PASSWORD_TOO_SHORT

    def test_login_password_only_requires_presence(self):
        """Should accept any non-blank password at sign-in."""
        assert validate_login_password("x") is ValidationOutcome.VALID
        assert validate_login_password("   ") is ValidationOutcome.PASSWORD_EMPTY

    def test_confirm_password(self):
        """Should require a confirmation equal to the password."""
        assert validate_confirm_password("abc123", "") is ValidationOutcome.CONFIRM_PASSWORD_EMPTY
        assert validate_confirm_password("abc123", "abc124") is ValidationOutcome.PASSWORDS_DO_NOT_MATCH
        assert validate_confirm_password("abc123", " abc123 ") is ValidationOutcome.VALID


# ---------------------------------------------------------------------------
# USERNAME / DISPLAY NAME
# ---------------------------------------------------------------------------

class TestUsername:
    """Tests for ``validate_username``."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("", ValidationOutcome.USERNAME_EMPTY),
            ("ab", ValidationOutcome.USERNAME_TOO_SHORT),
            ("a" * 51, ValidationOutcome.USERNAME_TOO_LONG),
            ("bob!", ValidationOutcome.USERNAME_INVALID_CHARACTERS),
            ("bo b", ValidationOutcome.USERNAME_INVALID_CHARACTERS),
            ("bob", ValidationOutcome.VALID),
            ("Bob_99", ValidationOutcome.VALID),
            ("a" * 50, ValidationOutcome.VALID),
        ],
    )
    def test_rules(self, value, expected):
        """Should apply empty, length and character rules in order."""
        assert validate_username(value) is expected

    def test_sanitize_lowercases_and_trims(self):
        """Should produce the canonical stored form."""
        assert sanitize_username("  Bob_99 ") == "bob_99"


class TestDisplayName:
    """Tests for ``validate_display_name``."""

    def test_default_minimum_is_one(self):
        """Should accept a single character by default."""
        assert validate_display_name("B") is ValidationOutcome.VALID
        assert validate_display_name("  ") is ValidationOutcome.DISPLAY_NAME_EMPTY

    def test_configurable_minimum(self):
        """Should honour a product-chosen minimum length."""
        assert validate_display_name("Bo", min_length=3) is ValidationOutcome.DISPLAY_NAME_TOO_SHORT
        assert validate_display_name("Bob", min_length=3) is ValidationOutcome.VALID

    def test_maximum(self):
        """Should reject names over 100 characters."""
        assert validate_display_name("x" * 101) is ValidationOutcome.DISPLAY_NAME_TOO_LONG


# ---------------------------------------------------------------------------
# DISPATCH / FORMS
# ---------------------------------------------------------------------------

class TestDispatch:
    """Tests for ``validate`` and the whole-form helpers."""

    def test_dispatches_each_kind(self):
        """Should route every field kind to its rule."""
        assert validate(FieldKind.EMAIL, "bad") is ValidationOutcome.EMAIL_INVALID
        assert validate(FieldKind.PASSWORD, "abcdef") is ValidationOutcome.PASSWORD_WEAK
        assert validate(FieldKind.USERNAME, "ab") is ValidationOutcome.USERNAME_TOO_SHORT
        assert validate(FieldKind.DISPLAY_NAME, "") is ValidationOutcome.DISPLAY_NAME_EMPTY
        assert (
            validate(FieldKind.DISPLAY_NAME, "Al", min_display_name_length=3)
            is ValidationOutcome.DISPLAY_NAME_TOO_SHORT
        )

    def test_confirm_password_takes_password_as_other(self):
        """Should compare the confirmation against *other*."""
        assert validate(FieldKind.CONFIRM_PASSWORD, "abc123", "abc123") is ValidationOutcome.VALID
        assert (
            validate(FieldKind.CONFIRM_PASSWORD, "abc123", "xyz789")
            is ValidationOutcome.PASSWORDS_DO_NOT_MATCH
        )

    def test_unknown_kind_raises(self):
        """Should refuse a value that is not a FieldKind."""
        with pytest.raises(ValueError):
            validate("nickname", "x")  # type: ignore[arg-type]

    def test_messages(self):
        """Should expose an inline message for every error and none for VALID."""
        assert ValidationOutcome.VALID.message == ""
        assert ValidationOutcome.USERNAME_ALREADY_EXISTS.message == "Username is already taken"
        assert all(o.message for o in ValidationOutcome if o is not ValidationOutcome.VALID)

    def test_login_form(self):
        """Should need a valid email and any password."""
        assert is_valid_login_form("user@test.com", "x")
        assert not is_valid_login_form("user@test.com", "")
        assert not is_valid_login_form("user@", "abc123")

    def test_registration_form(self):
        """Should need every registration field valid."""
        assert is_valid_registration_form("user@test.com", "bob", "Bob", "abc123", "abc123")
        assert not is_valid_registration_form("user@test.com", "bob", "Bob", "abc123", "abc12")
        assert not is_valid_registration_form(
            "user@test.com", "bob", "Bo", "abc123", "abc123", min_display_name_length=3
        )
