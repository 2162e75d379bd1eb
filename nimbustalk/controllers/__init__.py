"""
Session Controllers Package.

Per-flow state machines (login, registration, bootstrap) exposing
observable state to a UI collaborator.  The ``build_*`` helpers create a
controller from a ``ServiceContainer`` and the configuration.
"""

from __future__ import annotations

from nimbustalk.config import AppConfig
from nimbustalk.controllers.login_controller import LoginController
from nimbustalk.controllers.registration_controller import RegistrationController
from nimbustalk.controllers.splash_controller import SplashController
from nimbustalk.logger import get_logger
from nimbustalk.services import ServiceContainer


def build_login_controller(services: ServiceContainer) -> LoginController:
    return LoginController(
        auth_gateway=services["auth_gateway"],
        profile_gateway=services["profile_gateway"],
        session_store=services["session_store"],
        logger=get_logger("nimbustalk.login"),
    )


def build_registration_controller(
    services: ServiceContainer, config: AppConfig
) -> RegistrationController:
    return RegistrationController(
        auth_gateway=services["auth_gateway"],
        profile_gateway=services["profile_gateway"],
        session_store=services["session_store"],
        logger=get_logger("nimbustalk.registration"),
        debounce_seconds=config.USERNAME_CHECK_DEBOUNCE_S,
        min_display_name_length=config.MIN_DISPLAY_NAME_LENGTH,
    )


def build_splash_controller(services: ServiceContainer, config: AppConfig) -> SplashController:
    return SplashController(
        session_store=services["session_store"],
        logger=get_logger("nimbustalk.splash"),
        min_duration_seconds=config.SPLASH_MIN_DURATION_S,
    )


__all__ = [
    "LoginController",
    "RegistrationController",
    "SplashController",
    "build_login_controller",
    "build_registration_controller",
    "build_splash_controller",
]
