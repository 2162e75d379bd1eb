"""
Session Models.

``Session`` is the durable authenticated-identity record owned by the
Session Store.  ``SessionEvent`` is the token-free payload a controller
emits once a session has been written.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class Session(BaseModel):
    """Durable record for the signed-in user of this device.

    Attributes
    ----------
    user_id:
        Backend UUID of the user.
    email, username, display_name:
        Profile fields captured at sign-in; may be ``""`` when the backend
        did not provide them.
    access_token, refresh_token:
        Current token pair.  Rotated in place by a token refresh.
    profile_image_url:
        Avatar URL, if known.
    logged_in:
        The persisted login flag.
    """

    user_id: str
    email: str
    username: str
    display_name: str
    access_token: str = ""
    refresh_token: str = ""
    profile_image_url: Optional[str] = None
    logged_in: bool = True


class SessionEvent(BaseModel):
    """One-shot signal emitted after a login or registration persisted a session."""

    user_id: str
    display_name: str = ""

    model_config = {"frozen": True}
