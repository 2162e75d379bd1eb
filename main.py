"""
NimbusTalk Client Core Entry Point.

Bootstraps the dependency graph via constructor injection, runs the
launch-time session check and reports whether a signed-in session is
available.  Every subsystem is wired here; only the structured logger
falls back to ``get_config()`` for its level and file defaults.

Usage::

    python main.py
"""

from __future__ import annotations

import asyncio
import atexit
import sys

from nimbustalk.config import get_config
from nimbustalk.controllers import build_splash_controller
from nimbustalk.logger import StructuredLogger, get_logger
from nimbustalk.models.enums import BootstrapOutcome
from nimbustalk.services import create_services


async def run() -> int:
    """Wire dependencies, run the bootstrap check and return an exit code."""
    logger: StructuredLogger = get_logger("nimbustalk.main")
    logger.info("Starting NimbusTalk client core...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Services (preferences store, backend, gateways, session ops)
    # ------------------------------------------------------------------
    services = create_services(config)

    # close() is a no-op once the finally block below has run.
    atexit.register(services["preferences"].close)

    # ------------------------------------------------------------------
    # 3. Bootstrap check (local-only)
    # ------------------------------------------------------------------
    splash = build_splash_controller(services, config)
    try:
        await splash.check_authentication_status()
        outcome = splash.outcome.value
        session = services["session_store"].load()
        if outcome is BootstrapOutcome.AUTHENTICATED and session is not None:
            logger.info(
                "Signed in as %s.", session.display_name or session.username or session.email,
                extra={"event": "BOOTSTRAP", "user_id": session.user_id},
            )
        else:
            logger.info("No signed-in session; sign-in required.", extra={"outcome": outcome})
        return 0
    finally:
        splash.close()
        await services["backend"].aclose()
        services["preferences"].close()
        logger.info("NimbusTalk client core shut down.")


def main() -> None:
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass
