"""
Base Controllers.

Shared plumbing for the session flows:

- ``BaseController`` owns the loading state, the form-level error and
  success message channels and every asyncio task the controller starts.
  ``close()`` cancels those tasks; a cancelled task never mutates state.
- ``AuthFlowController`` adds the post-authentication step shared by
  login and registration: resolve the profile, persist the ``Session``.

Controllers are driven from a single event loop; the loop is the one
logical "main" context, and every state mutation happens on it.
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine, Optional

from nimbustalk.controllers.observable import MutableStateValue, StateValue
from nimbustalk.gateways.auth_gateway import AuthGateway
from nimbustalk.gateways.errors import GatewayError
from nimbustalk.gateways.profile_gateway import ProfileGateway
from nimbustalk.logger import StructuredLogger
from nimbustalk.models.auth_models import AuthSuccess
from nimbustalk.models.enums import ErrorKind, LoadingState
from nimbustalk.models.session import Session, SessionEvent
from nimbustalk.models.user import Profile
from nimbustalk.services.session_store import SessionStore


class ControllerClosedError(RuntimeError):
    """Raised when work is submitted to a controller after ``close()``."""


class BaseController:
    """Loading state, message channels and task ownership.

    Parameters
    ----------
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(self, logger: StructuredLogger) -> None:
        self._logger = logger
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed: bool = False

        self._loading_state: MutableStateValue[LoadingState] = MutableStateValue(LoadingState.IDLE)
        self._error_message: MutableStateValue[Optional[str]] = MutableStateValue(None)
        self._error_kind: MutableStateValue[Optional[ErrorKind]] = MutableStateValue(None)
        self._success_message: MutableStateValue[Optional[str]] = MutableStateValue(None)

    # -- Observable surface ---------------------------------------------------

    @property
    def loading_state(self) -> StateValue[LoadingState]:
        return self._loading_state

    @property
    def error_message(self) -> StateValue[Optional[str]]:
        return self._error_message

    @property
    def error_kind(self) -> StateValue[Optional[ErrorKind]]:
        return self._error_kind

    @property
    def success_message(self) -> StateValue[Optional[str]]:
        return self._success_message

    @property
    def is_loading(self) -> bool:
        return self._loading_state.value is LoadingState.LOADING

    @property
    def is_closed(self) -> bool:
        return self._closed

    # -- Consumer acknowledgements ---------------------------------------------

    def clear_error(self) -> None:
        """Acknowledge the current error message; it is not cleared automatically."""
        self._error_message.set(None)
        self._error_kind.set(None)

    def clear_success(self) -> None:
        self._success_message.set(None)

    # -- Lifecycle --------------------------------------------------------------

    def close(self) -> None:
        """Cancel every outstanding operation.  Idempotent."""
        if self._closed:
            return
        self._closed = True
        for task in list(self._tasks):
            task.cancel()
        self._logger.debug(
            "%s closed; %d task(s) cancelled.", type(self).__name__, len(self._tasks),
        )

    # -- Helpers for subclasses -------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task[None]:
        """Run *coro* as a task owned by this controller.

        Must be called from the controller's event loop.
        """
        if self._closed:
            coro.close()
            raise ControllerClosedError(f"{type(self).__name__} is closed")
        task = asyncio.get_running_loop().create_task(self._guarded(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guarded(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        try:
            await coro
        except GatewayError as exc:
            self._fail(exc.kind, exc.user_message)
        except Exception as exc:
            self._logger.error("Unexpected error in %s: %s", name, exc, exc_info=True)
            self._fail(ErrorKind.UNKNOWN)

    def _fail(self, kind: ErrorKind, message: Optional[str] = None) -> None:
        """Replace the current message with a flow-level error.

        The previous error is cleared first so an identical repeat still
        reaches subscribers.
        """
        self.clear_error()
        self._success_message.set(None)
        self._error_kind.set(kind)
        self._error_message.set(message or kind.message)
        self._loading_state.set(LoadingState.ERROR)

    def _succeed(self, message: Optional[str]) -> None:
        self._error_message.set(None)
        self._error_kind.set(None)
        self._success_message.set(message)
        self._loading_state.set(LoadingState.SUCCESS)


class AuthFlowController(BaseController):
    """Base for flows that end with a persisted session.

    Parameters
    ----------
    auth_gateway:
        Performs the auth REST calls.
    profile_gateway:
        Resolves the full profile after authentication.
    session_store:
        Receives the resulting ``Session``.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(
        self,
        auth_gateway: AuthGateway,
        profile_gateway: ProfileGateway,
        session_store: SessionStore,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._auth = auth_gateway
        self._profiles = profile_gateway
        self._store = session_store

    async def _establish_session(self, success: AuthSuccess) -> SessionEvent:
        """Persist the session for a successful sign-in or sign-up.

        The profile row is fetched unless the auth response already
        carries username and display name.  A failed fetch is not fatal:
        whatever the auth metadata holds is used instead (absent fields
        become ``""``).
        """
        user = success.user
        if user is None:
            raise GatewayError(ErrorKind.UNKNOWN, "Authentication response incomplete")

        profile: Optional[Profile] = None
        if not user.has_embedded_profile:
            try:
                profile = await self._profiles.get_user_profile(user.id, success.access_token)
            except GatewayError as exc:
                self._logger.warning(
                    "Profile fetch failed after authentication (%s); using auth metadata.",
                    exc.kind,
                    extra={"event": "PROFILE_FALLBACK", "user_id": user.id},
                )

        session = Session(
            user_id=user.id,
            email=(profile.email if profile else "") or user.email,
            username=(profile.username if profile else "") or user.username,
            display_name=(profile.display_name if profile else "") or user.display_name,
            access_token=success.access_token,
            refresh_token=success.refresh_token,
            profile_image_url=(profile.avatar_url if profile else None) or user.avatar_url,
            logged_in=True,
        )
        self._store.save(session)
        return SessionEvent(user_id=session.user_id, display_name=session.display_name)
