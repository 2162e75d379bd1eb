"""
Splash (Bootstrap) Controller.

Decides at launch whether a usable session is stored.  The check is
local-only: the stored access token is not validated against the
backend, so an expired or revoked token still classifies as
authenticated until the first API call rejects it.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from nimbustalk.controllers.base_controller import BaseController
from nimbustalk.controllers.observable import MutableStateValue, StateValue
from nimbustalk.logger import StructuredLogger
from nimbustalk.models.enums import BootstrapOutcome, LoadingState
from nimbustalk.services.session_store import SessionStore


def classify_stored_session(store: SessionStore) -> BootstrapOutcome:
    """Classify the stored session without touching the network.

    A set login flag with a blank access token or user id is treated as
    corrupted; clearing it is left to the caller.
    """
    if not store.login_flag():
        return BootstrapOutcome.NOT_LOGGED_IN
    access_token = (store.access_token() or "").strip()
    user_id = (store.user_id() or "").strip()
    if not access_token or not user_id:
        return BootstrapOutcome.CORRUPTED
    return BootstrapOutcome.AUTHENTICATED


class SplashController(BaseController):
    """Bootstrap flow.

    Parameters
    ----------
    session_store:
        Store to inspect (and clear when corrupted).
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    min_duration_seconds:
        Minimum time the check stays in ``Loading`` so the splash screen
        does not flash.
    """

    def __init__(
        self,
        session_store: SessionStore,
        logger: StructuredLogger,
        min_duration_seconds: float = 0.0,
    ) -> None:
        super().__init__(logger)
        self._store = session_store
        self._min_duration_seconds = min_duration_seconds
        self._authenticated: MutableStateValue[Optional[bool]] = MutableStateValue(None)
        self._outcome: MutableStateValue[Optional[BootstrapOutcome]] = MutableStateValue(None)
        self._check_task: Optional[asyncio.Task[None]] = None

    @property
    def authenticated(self) -> StateValue[Optional[bool]]:
        """``None`` until the check finishes, then ``True``/``False``."""
        return self._authenticated

    @property
    def outcome(self) -> StateValue[Optional[BootstrapOutcome]]:
        return self._outcome

    def check_authentication_status(self) -> asyncio.Task[None]:
        """Start (or restart) the bootstrap check."""
        if self._check_task is not None and not self._check_task.done():
            self._check_task.cancel()
        self._loading_state.set(LoadingState.LOADING)
        self._check_task = self._spawn(self._check(), name="bootstrap_check")
        return self._check_task

    async def _check(self) -> None:
        if self._min_duration_seconds > 0:
            await asyncio.sleep(self._min_duration_seconds)

        outcome = classify_stored_session(self._store)
        if outcome is BootstrapOutcome.CORRUPTED:
            self._logger.warning(
                "Stored session is inconsistent; clearing it.",
                extra={"event": "SESSION_CORRUPTED"},
            )
            self._store.clear()

        self._logger.info("Bootstrap check finished.", extra={"event": "BOOTSTRAP", "outcome": outcome})
        self._outcome.set(outcome)
        self._authenticated.set(outcome is BootstrapOutcome.AUTHENTICATED)
        self._loading_state.set(LoadingState.SUCCESS)
