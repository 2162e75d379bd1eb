"""
Session Store.

Persists and restores the signed-in ``Session`` in the ``session``
namespace of the ``PreferencesStore``.  Pure durable key-value access:
no network calls, no validation.

This is the only state shared between controllers.  Writes are either
whole-record (``save``/``clear``) or explicitly token-scoped
(``update_access_token``/``update_refresh_token``).
"""

from __future__ import annotations

from typing import Optional

from nimbustalk.logger import StructuredLogger
from nimbustalk.models.session import Session
from nimbustalk.storage import PreferencesStore, PreferenceValue

SESSION_NAMESPACE: str = "session"

KEY_USER_ID: str = "user_id"
KEY_EMAIL: str = "email"
KEY_USERNAME: str = "username"
KEY_DISPLAY_NAME: str = "display_name"
KEY_PROFILE_IMAGE_URL: str = "profile_image_url"
KEY_ACCESS_TOKEN: str = "access_token"
KEY_REFRESH_TOKEN: str = "refresh_token"
KEY_IS_LOGGED_IN: str = "is_logged_in"

_SESSION_FIELD_KEYS: tuple[str, ...] = (
    KEY_USER_ID,
    KEY_EMAIL,
    KEY_USERNAME,
    KEY_DISPLAY_NAME,
    KEY_PROFILE_IMAGE_URL,
    KEY_ACCESS_TOKEN,
    KEY_REFRESH_TOKEN,
)


class SessionStore:
    """Owner of the durable session record.

    Parameters
    ----------
    preferences:
        The shared ``PreferencesStore``.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(self, preferences: PreferencesStore, logger: StructuredLogger) -> None:
        self._prefs = preferences
        self._logger = logger

    # ------------------------------------------------------------------
    # Whole-record operations
    # ------------------------------------------------------------------

    def save(self, session: Session) -> bool:
        """Overwrite every session field in one transaction and set the login flag.

        Returns
        -------
        bool
            ``True`` once the write committed.  A failure is logged and
            reported as ``False``; callers continue either way.
        """
        saved = self._prefs.put_many(
            SESSION_NAMESPACE,
            {
                KEY_USER_ID: session.user_id,
                KEY_EMAIL: session.email,
                KEY_USERNAME: session.username,
                KEY_DISPLAY_NAME: session.display_name,
                KEY_PROFILE_IMAGE_URL: session.profile_image_url,
                KEY_ACCESS_TOKEN: session.access_token,
                KEY_REFRESH_TOKEN: session.refresh_token,
                KEY_IS_LOGGED_IN: True,
            },
        )
        if saved:
            self._logger.info(
                "Session saved.",
                extra={"event": "SESSION_SAVED", "user_id": session.user_id},
            )
        return saved

    def load(self) -> Optional[Session]:
        """Rebuild the stored session.

        Returns ``None`` unless user id, email, username and display name
        are all present (an empty string counts as present).
        """
        user_id = self._prefs.get_string(SESSION_NAMESPACE, KEY_USER_ID)
        email = self._prefs.get_string(SESSION_NAMESPACE, KEY_EMAIL)
        username = self._prefs.get_string(SESSION_NAMESPACE, KEY_USERNAME)
        display_name = self._prefs.get_string(SESSION_NAMESPACE, KEY_DISPLAY_NAME)
        if user_id is None or email is None or username is None or display_name is None:
            return None

        return Session(
            user_id=user_id,
            email=email,
            username=username,
            display_name=display_name,
            access_token=self.access_token() or "",
            refresh_token=self.refresh_token() or "",
            profile_image_url=self._prefs.get_string(SESSION_NAMESPACE, KEY_PROFILE_IMAGE_URL),
            logged_in=self.login_flag(),
        )

    def clear(self) -> bool:
        """Remove every session field and set the login flag to ``False``."""
        values: dict[str, Optional[PreferenceValue]] = {key: None for key in _SESSION_FIELD_KEYS}
        values[KEY_IS_LOGGED_IN] = False
        cleared = self._prefs.put_many(SESSION_NAMESPACE, values)
        if cleared:
            self._logger.info("Session cleared.", extra={"event": "SESSION_CLEARED"})
        return cleared

    # ------------------------------------------------------------------
    # Scoped token updates
    # ------------------------------------------------------------------

    def update_access_token(self, token: str) -> bool:
        return self._prefs.put(SESSION_NAMESPACE, KEY_ACCESS_TOKEN, token)

    def update_refresh_token(self, token: str) -> bool:
        return self._prefs.put(SESSION_NAMESPACE, KEY_REFRESH_TOKEN, token)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_logged_in(self) -> bool:
        """Login flag set AND a non-blank access token stored."""
        return self.login_flag() and bool((self.access_token() or "").strip())

    def login_flag(self) -> bool:
        return self._prefs.get_bool(SESSION_NAMESPACE, KEY_IS_LOGGED_IN, default=False)

    def access_token(self) -> Optional[str]:
        return self._prefs.get_string(SESSION_NAMESPACE, KEY_ACCESS_TOKEN)

    def refresh_token(self) -> Optional[str]:
        return self._prefs.get_string(SESSION_NAMESPACE, KEY_REFRESH_TOKEN)

    def user_id(self) -> Optional[str]:
        return self._prefs.get_string(SESSION_NAMESPACE, KEY_USER_ID)
