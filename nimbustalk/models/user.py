"""
User Profile Model.

Pydantic model for a row of the backend ``users`` table.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from nimbustalk.models.enums import UserStatus


class Profile(BaseModel):
    """Public profile of a chat user."""

    id: str
    email: str = ""
    username: str = ""
    display_name: str = ""
    avatar_url: Optional[str] = None
    status: UserStatus = UserStatus.OFFLINE
    is_online: bool = False
    last_seen: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True, "extra": "ignore"}

    @property
    def display_name_or_username(self) -> str:
        return self.display_name or self.username


# Columns a client may change through ``update_user_profile``.
UPDATABLE_PROFILE_FIELDS: frozenset[str] = frozenset({
    "username",
    "display_name",
    "avatar_url",
    "status",
    "is_online",
    "last_seen",
})
