"""
Unit tests for PreferencesStore and ThemePreferences.

Tests cover:
- Typed reads and writes, namespaces
- Transactional multi-key writes with deletions
- Encryption at rest and tamper detection
- Persistence across reopen with the same salt
"""

from __future__ import annotations

import sqlite3

from nimbustalk.models.enums import ThemeMode
from nimbustalk.services.theme_preferences import ThemePreferences
from nimbustalk.storage import PreferencesStore


# ---------------------------------------------------------------------------
# READ / WRITE
# ---------------------------------------------------------------------------

class TestPreferencesReadWrite:
    """Tests for typed access."""

    def test_typed_round_trip(self, preferences):
        """Should return each value with its original type."""
        assert preferences.put("ns", "name", "alice")
        assert preferences.put("ns", "flag", True)
        assert preferences.put("ns", "count", 3)

        assert preferences.get_string("ns", "name") == "alice"
        assert preferences.get_bool("ns", "flag") is True
        assert preferences.get_int("ns", "count") == 3

    def test_type_mismatch_uses_default(self, preferences):
        """Should not read a bool as an int or a string as a bool."""
        preferences.put("ns", "flag", True)
        preferences.put("ns", "name", "alice")

        assert preferences.get_int("ns", "flag", default=7) == 7
        assert preferences.get_bool("ns", "name", default=False) is False
        assert preferences.get_string("ns", "flag") is None

    def test_missing_key(self, preferences):
        """Should read absent keys as missing."""
        assert preferences.get("ns", "absent") is None
        assert not preferences.contains("ns", "absent")

    def test_namespaces_are_isolated(self, preferences):
        """Should keep identical keys apart across namespaces."""
        preferences.put("a", "key", "one")
        preferences.put("b", "key", "two")
        preferences.clear_namespace("a")

        assert preferences.get("a", "key") is None
        assert preferences.get_string("b", "key") == "two"


class TestPreferencesTransactions:
    """Tests for ``put_many`` and ``remove``."""

    def test_put_many_with_deletions(self, preferences):
        """Should upsert and delete in one call."""
        preferences.put_many("ns", {"a": "1", "b": "2"})
        assert preferences.put_many("ns", {"a": None, "b": "3", "c": False})

        assert preferences.get("ns", "a") is None
        assert preferences.get_string("ns", "b") == "3"
        assert preferences.get_bool("ns", "c", default=True) is False

    def test_unserialisable_value_writes_nothing(self, preferences):
        """Should reject the whole batch when one value cannot be encoded."""
        preferences.put("ns", "a", "before")
        assert not preferences.put_many("ns", {"a": "after", "b": object()})  # type: ignore[dict-item]
        assert preferences.get_string("ns", "a") == "before"

    def test_remove(self, preferences):
        """Should delete only the named keys."""
        preferences.put_many("ns", {"a": "1", "b": "2"})
        preferences.remove("ns", "a")
        assert preferences.get("ns", "a") is None
        assert preferences.get_string("ns", "b") == "2"


# ---------------------------------------------------------------------------
# ENCRYPTION / DURABILITY
# ---------------------------------------------------------------------------

class TestPreferencesEncryption:
    """Tests for the at-rest format."""

    def test_values_are_not_stored_in_clear(self, preferences, tmp_path):
        """Should never write the plaintext token to the database file."""
        preferences.put("session", "access_token", "super-secret-token")
        conn = sqlite3.connect(str(tmp_path / "prefs.db"))
        try:
            blobs = [row[0] for row in conn.execute("SELECT value FROM preferences")]
        finally:
            conn.close()
        assert blobs
        assert all(b"super-secret-token" not in bytes(blob) for blob in blobs)

    def test_tampered_row_reads_as_missing(self, preferences, tmp_path):
        """Should fail authentication on a modified ciphertext."""
        preferences.put("ns", "key", "value")
        conn = sqlite3.connect(str(tmp_path / "prefs.db"))
        try:
            conn.execute("UPDATE preferences SET value = ? WHERE key = 'key'", (b"garbage!",))
            conn.commit()
        finally:
            conn.close()
        assert preferences.get("ns", "key") is None

    def test_survives_reopen(self, tmp_path, logger):
        """Should read values written by an earlier process with the same salt."""
        first = PreferencesStore(tmp_path / "p.db", tmp_path / "salt", logger, kdf_iterations=1_000)
        first.put("ns", "key", "kept")
        first.close()

        second = PreferencesStore(tmp_path / "p.db", tmp_path / "salt", logger, kdf_iterations=1_000)
        try:
            assert second.get_string("ns", "key") == "kept"
        finally:
            second.close()

    def test_close_is_idempotent(self, tmp_path, logger):
        """Should allow close to be called twice."""
        store = PreferencesStore(tmp_path / "p.db", tmp_path / "salt", logger, kdf_iterations=1_000)
        store.close()
        store.close()


# ---------------------------------------------------------------------------
# THEME
# ---------------------------------------------------------------------------

class TestThemePreferences:
    """Tests for the theme namespace."""

    def test_defaults_to_system(self, preferences):
        """Should report SYSTEM before anything is stored."""
        assert ThemePreferences(preferences).get_theme_mode() is ThemeMode.SYSTEM

    def test_persists_integer_code(self, preferences):
        """Should store the mode as its integer code."""
        theme = ThemePreferences(preferences)
        assert theme.set_theme_mode(ThemeMode.DARK)
        assert theme.get_theme_mode() is ThemeMode.DARK
        assert preferences.get_int("theme", "theme_mode") == 2

    def test_unknown_code_falls_back(self, preferences):
        """Should map an unrecognised code to SYSTEM."""
        preferences.put("theme", "theme_mode", 9)
        assert ThemePreferences(preferences).get_theme_mode() is ThemeMode.SYSTEM
