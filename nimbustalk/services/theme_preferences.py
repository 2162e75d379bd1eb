"""
Theme Preferences.

Stores the user's theme choice in the ``theme`` namespace of the
``PreferencesStore`` as an integer code (0 system, 1 light, 2 dark).
"""

from __future__ import annotations

from nimbustalk.models.enums import ThemeMode
from nimbustalk.storage import PreferencesStore

THEME_NAMESPACE: str = "theme"
KEY_THEME_MODE: str = "theme_mode"


class ThemePreferences:
    def __init__(self, preferences: PreferencesStore) -> None:
        self._prefs = preferences

    def get_theme_mode(self) -> ThemeMode:
        return ThemeMode.from_code(
            self._prefs.get_int(THEME_NAMESPACE, KEY_THEME_MODE, default=ThemeMode.SYSTEM.code)
        )

    def set_theme_mode(self, mode: ThemeMode) -> bool:
        return self._prefs.put(THEME_NAMESPACE, KEY_THEME_MODE, mode.code)
