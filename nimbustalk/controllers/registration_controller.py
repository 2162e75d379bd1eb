"""
Registration Controller.

Superset of the login flow with three more fields and an asynchronous
username-availability check.

The availability check is debounced through a single cancellable task
slot plus a generation counter: every username change cancels the
pending check, bumps the generation and schedules a new one.  A result
is applied only if its generation is still current, so only the reply
to the most recent check can touch ``username_availability``.

Submitting requires ``Available`` at submit time, and the username is
re-checked server-side before the sign-up call; if it was taken in the
meantime the flow stops with ``UsernameAlreadyTaken``.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from nimbustalk.controllers.base_controller import AuthFlowController
from nimbustalk.controllers.observable import EventQueue, MutableStateValue, StateValue
from nimbustalk.gateways.auth_gateway import AuthGateway
from nimbustalk.gateways.errors import GatewayError
from nimbustalk.gateways.profile_gateway import ProfileGateway
from nimbustalk.logger import StructuredLogger
from nimbustalk.models.auth_models import AuthFailure
from nimbustalk.models.enums import (
    ErrorKind,
    LoadingState,
    UsernameAvailability,
    ValidationOutcome,
)
from nimbustalk.models.session import SessionEvent
from nimbustalk.services.session_store import SessionStore
from nimbustalk.validation import (
    DEFAULT_MIN_DISPLAY_NAME_LENGTH,
    clean_input,
    sanitize_display_name,
    sanitize_username,
    validate_confirm_password,
    validate_display_name,
    validate_email,
    validate_password,
    validate_username,
)

REGISTRATION_SUCCESS_MESSAGE: str = "Registration successful! Welcome to NimbusTalk!"


class RegistrationController(AuthFlowController):
    """Sign-up flow.

    Parameters
    ----------
    auth_gateway, profile_gateway, session_store, logger:
        See ``AuthFlowController``.
    debounce_seconds:
        Quiet period before an availability check runs.
    min_display_name_length:
        Product-chosen display-name minimum (at least 1).
    """

    def __init__(
        self,
        auth_gateway: AuthGateway,
        profile_gateway: ProfileGateway,
        session_store: SessionStore,
        logger: StructuredLogger,
        debounce_seconds: float = 0.5,
        min_display_name_length: int = DEFAULT_MIN_DISPLAY_NAME_LENGTH,
    ) -> None:
        super().__init__(auth_gateway, profile_gateway, session_store, logger)
        self._debounce_seconds = debounce_seconds
        self._min_display_name_length = min_display_name_length

        self._email: str = ""
        self._username: str = ""
        self._display_name: str = ""
        self._password: str = ""
        self._confirm_password: str = ""

        self._email_outcome = MutableStateValue(ValidationOutcome.VALID)
        self._username_outcome = MutableStateValue(ValidationOutcome.VALID)
        self._display_name_outcome = MutableStateValue(ValidationOutcome.VALID)
        self._password_outcome = MutableStateValue(ValidationOutcome.VALID)
        self._confirm_password_outcome = MutableStateValue(ValidationOutcome.VALID)
        self._availability = MutableStateValue(UsernameAvailability.UNKNOWN)
        self._check_in_flight = MutableStateValue(False)
        self._form_valid = MutableStateValue(False)
        self._registration_succeeded: EventQueue[SessionEvent] = EventQueue()

        self._username_task: Optional[asyncio.Task[None]] = None
        self._username_generation: int = 0

    # -- Observable surface ---------------------------------------------------

    @property
    def current_email(self) -> str:
        return self._email

    @property
    def current_username(self) -> str:
        return self._username

    @property
    def current_display_name(self) -> str:
        return self._display_name

    @property
    def current_password(self) -> str:
        return self._password

    @property
    def current_confirm_password(self) -> str:
        return self._confirm_password

    @property
    def email_outcome(self) -> StateValue[ValidationOutcome]:
        return self._email_outcome

    @property
    def username_outcome(self) -> StateValue[ValidationOutcome]:
        return self._username_outcome

    @property
    def display_name_outcome(self) -> StateValue[ValidationOutcome]:
        return self._display_name_outcome

    @property
    def password_outcome(self) -> StateValue[ValidationOutcome]:
        return self._password_outcome

    @property
    def confirm_password_outcome(self) -> StateValue[ValidationOutcome]:
        return self._confirm_password_outcome

    @property
    def username_availability(self) -> StateValue[UsernameAvailability]:
        return self._availability

    @property
    def username_check_in_flight(self) -> StateValue[bool]:
        return self._check_in_flight

    @property
    def form_valid(self) -> StateValue[bool]:
        """``isSubmittable``: every field valid and non-blank, username available."""
        return self._form_valid

    @property
    def registration_succeeded(self) -> EventQueue[SessionEvent]:
        return self._registration_succeeded

    @property
    def pending_username_check(self) -> Optional[asyncio.Task[None]]:
        """The scheduled or running availability check, if any."""
        return self._username_task

    # -- Input events -----------------------------------------------------------

    def on_email_changed(self, value: str) -> None:
        self._email = value
        self._email_outcome.set(validate_email(value))
        self._recompute_form_valid()

    def on_display_name_changed(self, value: str) -> None:
        self._display_name = value
        self._display_name_outcome.set(
            validate_display_name(value, self._min_display_name_length)
        )
        self._recompute_form_valid()

    def on_password_changed(self, value: str) -> None:
        self._password = value
        self._password_outcome.set(validate_password(value))
        if self._confirm_password:
            self._confirm_password_outcome.set(
                validate_confirm_password(value, self._confirm_password)
            )
        self._recompute_form_valid()

    def on_confirm_password_changed(self, value: str) -> None:
        self._confirm_password = value
        self._confirm_password_outcome.set(validate_confirm_password(self._password, value))
        self._recompute_form_valid()

    def on_username_changed(self, value: str) -> None:
        """Validate the format now; check availability after the debounce delay."""
        self._username = value
        outcome = validate_username(value)
        self._username_outcome.set(outcome)
        self._availability.set(UsernameAvailability.UNKNOWN)
        self._schedule_username_check(outcome)
        self._recompute_form_valid()

    def reset_registration_success(self) -> None:
        """Acknowledge every pending registration-succeeded event."""
        self._registration_succeeded.drain()

    # -- Actions ----------------------------------------------------------------

    def submit(self) -> Optional[asyncio.Task[None]]:
        """Start a sign-up attempt with the current field values.

        Returns
        -------
        asyncio.Task or None
            The running attempt, or ``None`` when nothing was started.
        """
        if self.is_loading:
            self._logger.debug("Registration submit ignored; an attempt is already in flight.")
            return None

        email = clean_input(self._email)
        username = sanitize_username(self._username)
        display_name = sanitize_display_name(self._display_name)
        password = clean_input(self._password)
        confirm_password = clean_input(self._confirm_password)

        self._email_outcome.set(validate_email(email))
        if self._availability.value is not UsernameAvailability.TAKEN:
            self._username_outcome.set(validate_username(username))
        self._display_name_outcome.set(
            validate_display_name(display_name, self._min_display_name_length)
        )
        self._password_outcome.set(validate_password(password))
        self._confirm_password_outcome.set(validate_confirm_password(password, confirm_password))
        self._recompute_form_valid()

        if not self._fields_valid():
            self._fail(ErrorKind.FIELD_VALIDATION)
            return None

        if self._availability.value is not UsernameAvailability.AVAILABLE:
            if not self._check_in_flight.value and (
                self._username_task is None or self._username_task.done()
            ):
                self._schedule_username_check(self._username_outcome.value)
            self._fail(ErrorKind.USERNAME_UNAVAILABLE)
            return None

        # The submit-time re-check supersedes any pending debounced one.
        self._cancel_username_check()
        generation = self._username_generation
        self.clear_error()
        self.clear_success()
        self._loading_state.set(LoadingState.LOADING)
        return self._spawn(
            self._perform_registration(generation, email, username, display_name, password),
            name="register",
        )

    def close(self) -> None:
        self._cancel_username_check()
        super().close()

    # -- Availability check -----------------------------------------------------

    def _cancel_username_check(self) -> None:
        self._username_generation += 1
        if self._username_task is not None and not self._username_task.done():
            self._username_task.cancel()
        self._username_task = None
        self._check_in_flight.set(False)

    def _schedule_username_check(self, outcome: ValidationOutcome) -> None:
        self._cancel_username_check()
        if self._closed or not outcome.is_valid:
            return
        generation = self._username_generation
        self._username_task = self._spawn(
            self._debounced_username_check(generation, sanitize_username(self._username)),
            name="username_check",
        )

    async def _debounced_username_check(self, generation: int, username: str) -> None:
        await asyncio.sleep(self._debounce_seconds)
        if generation != self._username_generation:
            return

        self._check_in_flight.set(True)
        try:
            available = await self._profiles.check_username_availability(username)
        except GatewayError as exc:
            if generation == self._username_generation:
                self._logger.warning(
                    "Username availability check failed (%s).", exc.kind,
                    extra={"event": "USERNAME_CHECK_FAILED"},
                )
                self._availability.set(UsernameAvailability.UNKNOWN)
                self._recompute_form_valid()
            return
        except Exception as exc:
            if generation == self._username_generation:
                self._logger.error(
                    "Username availability check raised unexpectedly: %s", exc,
                    exc_info=True, extra={"event": "USERNAME_CHECK_FAILED"},
                )
                self._availability.set(UsernameAvailability.UNKNOWN)
                self._recompute_form_valid()
            return
        finally:
            if generation == self._username_generation:
                self._check_in_flight.set(False)

        if generation != self._username_generation:
            return
        self._apply_availability(available)

    def _apply_availability(self, available: bool) -> None:
        if available:
            self._availability.set(UsernameAvailability.AVAILABLE)
            self._username_outcome.set(validate_username(self._username))
        else:
            self._availability.set(UsernameAvailability.TAKEN)
            self._username_outcome.set(ValidationOutcome.USERNAME_ALREADY_EXISTS)
        self._recompute_form_valid()

    # -- Internal ---------------------------------------------------------------

    def _fields_valid(self) -> bool:
        outcomes = (
            self._email_outcome.value,
            self._username_outcome.value,
            self._display_name_outcome.value,
            self._password_outcome.value,
            self._confirm_password_outcome.value,
        )
        values = (
            self._email,
            self._username,
            self._display_name,
            self._password,
            self._confirm_password,
        )
        return all(o.is_valid for o in outcomes) and all(v.strip() for v in values)

    def _recompute_form_valid(self) -> None:
        self._form_valid.set(
            self._fields_valid()
            and self._availability.value is UsernameAvailability.AVAILABLE
        )

    async def _perform_registration(
        self,
        generation: int,
        email: str,
        username: str,
        display_name: str,
        password: str,
    ) -> None:
        available = await self._profiles.check_username_availability(username)
        if not available:
            if generation == self._username_generation:
                self._apply_availability(False)
            self._fail(ErrorKind.USERNAME_ALREADY_TAKEN)
            return

        outcome = await self._auth.register(email, password, username, display_name)
        if isinstance(outcome, AuthFailure):
            if outcome.kind is ErrorKind.EMAIL_ALREADY_REGISTERED:
                self._email_outcome.set(ValidationOutcome.EMAIL_ALREADY_EXISTS)
                self._recompute_form_valid()
            elif (
                outcome.kind is ErrorKind.USERNAME_ALREADY_TAKEN
                and generation == self._username_generation
            ):
                self._apply_availability(False)
            self._fail(outcome.kind, outcome.message)
            return

        event = await self._establish_session(outcome)
        self._succeed(REGISTRATION_SUCCESS_MESSAGE)
        self._registration_succeeded.emit(event)
