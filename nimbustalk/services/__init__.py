"""
Services Package.

The ``create_services()`` factory wires the preferences store, backend
connections, gateways and session services together, returning a typed
dict the entry point and controllers consume without knowing the
internal dependency graph.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from nimbustalk.config import AppConfig
from nimbustalk.gateways.auth_gateway import AuthGateway
from nimbustalk.gateways.backend_client import BackendClient
from nimbustalk.gateways.profile_gateway import ProfileGateway
from nimbustalk.logger import get_logger
from nimbustalk.services.session_service import SessionService
from nimbustalk.services.session_store import SessionStore
from nimbustalk.services.theme_preferences import ThemePreferences
from nimbustalk.storage import PreferencesStore


class ServiceContainer(TypedDict):
    """Typed container for the wired infrastructure and services."""

    # --- Infrastructure ---
    preferences: PreferencesStore
    backend: BackendClient

    # --- Local state ---
    session_store: SessionStore
    theme_preferences: ThemePreferences

    # --- Gateways ---
    auth_gateway: AuthGateway
    profile_gateway: ProfileGateway

    # --- Session operations ---
    session_service: SessionService


def create_services(
    config: AppConfig,
    preferences: Optional[PreferencesStore] = None,
    backend: Optional[BackendClient] = None,
) -> ServiceContainer:
    """Wire every service together.

    Parameters
    ----------
    config:
        Application configuration.
    preferences, backend:
        Pre-built infrastructure; created from *config* when omitted.
    """
    if preferences is None:
        preferences = PreferencesStore(
            db_path=config.PREFERENCES_DB_PATH,
            salt_path=config.PREFERENCES_SALT_PATH,
            logger=get_logger("nimbustalk.preferences"),
            kdf_iterations=config.PREFERENCES_KDF_ITERATIONS,
        )
    if backend is None:
        backend = BackendClient(config=config, logger=get_logger("nimbustalk.backend"))

    session_store = SessionStore(preferences, get_logger("nimbustalk.session_store"))
    auth_gateway = AuthGateway(backend, get_logger("nimbustalk.auth"))

    return ServiceContainer(
        preferences=preferences,
        backend=backend,
        session_store=session_store,
        theme_preferences=ThemePreferences(preferences),
        auth_gateway=auth_gateway,
        profile_gateway=ProfileGateway(backend, config, get_logger("nimbustalk.profiles")),
        session_service=SessionService(
            auth_gateway, session_store, get_logger("nimbustalk.session")
        ),
    )
