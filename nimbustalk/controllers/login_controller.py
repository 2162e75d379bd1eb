"""
Login Controller.

State machine behind the sign-in screen::

    Idle --submit(valid form)--> Loading --> Success | Error --submit--> Loading

A submit while ``Loading`` is ignored, so at most one sign-in attempt is
in flight.  On success the session is persisted and a ``SessionEvent``
is queued on ``login_succeeded``; it stays pending until the screen
consumes it (``reset_login_success`` or ``login_succeeded.consume()``).
"""

from __future__ import annotations

import asyncio
from typing import Optional

from nimbustalk.controllers.base_controller import AuthFlowController
from nimbustalk.controllers.observable import EventQueue, MutableStateValue, StateValue
from nimbustalk.gateways.auth_gateway import AuthGateway
from nimbustalk.gateways.profile_gateway import ProfileGateway
from nimbustalk.logger import StructuredLogger
from nimbustalk.models.auth_models import AuthFailure
from nimbustalk.models.enums import ErrorKind, LoadingState, ValidationOutcome
from nimbustalk.models.session import SessionEvent
from nimbustalk.services.session_store import SessionStore
from nimbustalk.validation import clean_input, validate_email, validate_login_password

PASSWORD_RESET_SENT_MESSAGE: str = (
    "If an account exists for this email, a password reset link has been sent."
)


class LoginController(AuthFlowController):
    """Sign-in flow.

    Parameters
    ----------
    auth_gateway, profile_gateway, session_store, logger:
        See ``AuthFlowController``.
    """

    def __init__(
        self,
        auth_gateway: AuthGateway,
        profile_gateway: ProfileGateway,
        session_store: SessionStore,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(auth_gateway, profile_gateway, session_store, logger)
        self._email: str = ""
        self._password: str = ""
        self._email_outcome: MutableStateValue[ValidationOutcome] = MutableStateValue(ValidationOutcome.VALID)
        self._password_outcome: MutableStateValue[ValidationOutcome] = MutableStateValue(ValidationOutcome.VALID)
        self._form_valid: MutableStateValue[bool] = MutableStateValue(False)
        self._login_succeeded: EventQueue[SessionEvent] = EventQueue()

    # -- Observable surface ---------------------------------------------------

    @property
    def current_email(self) -> str:
        return self._email

    @property
    def current_password(self) -> str:
        return self._password

    @property
    def email_outcome(self) -> StateValue[ValidationOutcome]:
        return self._email_outcome

    @property
    def password_outcome(self) -> StateValue[ValidationOutcome]:
        return self._password_outcome

    @property
    def form_valid(self) -> StateValue[bool]:
        """``isSubmittable``: both fields valid and non-blank."""
        return self._form_valid

    @property
    def login_succeeded(self) -> EventQueue[SessionEvent]:
        return self._login_succeeded

    # -- Input events -----------------------------------------------------------

    def on_email_changed(self, value: str) -> None:
        self._email = value
        self._email_outcome.set(validate_email(value))
        self._recompute_form_valid()

    def on_password_changed(self, value: str) -> None:
        self._password = value
        self._password_outcome.set(validate_login_password(value))
        self._recompute_form_valid()

    def update_form_values(self, email: str, password: str) -> None:
        self.on_email_changed(email)
        self.on_password_changed(password)

    def set_email(self, email: str) -> None:
        """Prefill the email, e.g. when returning from the password-reset screen."""
        self.on_email_changed(email)

    def clear_validation_errors(self) -> None:
        self._email_outcome.set(ValidationOutcome.VALID)
        self._password_outcome.set(ValidationOutcome.VALID)
        self._recompute_form_valid()

    def reset_login_success(self) -> None:
        """Acknowledge every pending login-succeeded event."""
        self._login_succeeded.drain()

    # -- Actions ----------------------------------------------------------------

    def submit(self) -> Optional[asyncio.Task[None]]:
        """Start a sign-in attempt with the current field values.

        Returns
        -------
        asyncio.Task or None
            The running attempt, or ``None`` when nothing was started
            (already loading, or the form is invalid).
        """
        if self.is_loading:
            self._logger.debug("Login submit ignored; an attempt is already in flight.")
            return None

        email = clean_input(self._email)
        password = clean_input(self._password)
        self._email_outcome.set(validate_email(email))
        self._password_outcome.set(validate_login_password(password))
        self._recompute_form_valid()
        if not self._form_valid.value:
            self._fail(ErrorKind.FIELD_VALIDATION)
            return None

        self.clear_error()
        self.clear_success()
        self._loading_state.set(LoadingState.LOADING)
        return self._spawn(self._perform_login(email, password), name="login")

    def request_password_reset(self, email: Optional[str] = None) -> Optional[asyncio.Task[None]]:
        """Ask for a recovery email for *email* (defaults to the current field)."""
        if self.is_loading:
            return None

        target = clean_input(email if email is not None else self._email)
        outcome = validate_email(target)
        if not outcome.is_valid:
            self._email_outcome.set(outcome)
            self._recompute_form_valid()
            self._fail(ErrorKind.FIELD_VALIDATION, outcome.message)
            return None

        self.clear_error()
        self._loading_state.set(LoadingState.LOADING)
        return self._spawn(self._perform_password_reset(target), name="password_reset")

    # -- Internal ---------------------------------------------------------------

    def _recompute_form_valid(self) -> None:
        self._form_valid.set(
            self._email_outcome.value.is_valid
            and self._password_outcome.value.is_valid
            and bool(self._email.strip())
            and bool(self._password.strip())
        )

    async def _perform_login(self, email: str, password: str) -> None:
        outcome = await self._auth.login(email, password)
        if isinstance(outcome, AuthFailure):
            self._fail(outcome.kind, outcome.message)
            return

        event = await self._establish_session(outcome)
        greeting = f"Welcome back, {event.display_name}!" if event.display_name else "Welcome back!"
        self._succeed(greeting)
        self._login_succeeded.emit(event)

    async def _perform_password_reset(self, email: str) -> None:
        result = await self._auth.forgot_password(email)
        if result.success:
            self._succeed(PASSWORD_RESET_SENT_MESSAGE)
        else:
            kind = result.kind or ErrorKind.UNKNOWN
            self._fail(kind, result.message)
