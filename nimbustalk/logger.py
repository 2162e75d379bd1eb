"""
Structured JSON Logging Module.

Provides a StructuredLogger factory that produces logging.Logger instances
configured with JSON-formatted output.  Credentials and tokens passed as
structured ``extra`` fields are masked before they reach any handler.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, TextIO, Union


class JSONFormatter(logging.Formatter):
    """Formats log records as structured JSON objects.

    Each log entry contains:
        - timestamp  (ISO-8601, UTC)
        - level      (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        - logger_name
        - message
        - extra      (optional structured fields passed via the `extra` kwarg)
    """

    _STANDARD_ATTRS: frozenset[str] = frozenset(
        logging.LogRecord(
            name="", level=0, pathname="", lineno=0, msg="", args=(), exc_info=None
        ).__dict__.keys()
    ) | {"message", "asctime", "taskName"}

    # Extra keys whose values never leave the process.
    SENSITIVE_KEYS: frozenset[str] = frozenset({
        "password",
        "access_token",
        "refresh_token",
        "apikey",
        "authorization",
    })
    REDACTED: str = "***"

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Union[str, dict[str, str]]] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
        }

        extra_fields: dict[str, str] = {
            key: self.REDACTED if key.lower() in self.SENSITIVE_KEYS else str(value)
            for key, value in record.__dict__.items()
            if key not in self._STANDARD_ATTRS
        }
        if extra_fields:
            entry["extra"] = extra_fields

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            entry["exception"] = record.exc_text

        return json.dumps(entry, ensure_ascii=False)


class StructuredLogger:
    """Injectable logger factory.

    Instantiate this class and pass the resulting object wherever a logger
    is needed.  The underlying ``logging.Logger`` is exposed via the
    ``.logger`` attribute and standard convenience methods are delegated
    directly.

    Usage::

        log = StructuredLogger(name="nimbustalk.auth")
        log.info("Login succeeded", extra={"event": "LOGIN", "user_id": "u1"})

    Parameters
    ----------
    name:
        Logger name.  Reusing a name reuses the configured handlers.
    level:
        Numeric level; defaults to ``LOG_LEVEL`` from the configuration.
    stream:
        Console stream, ``sys.stdout`` by default.
    log_file, max_bytes, backup_count:
        Rotating file handler settings; default to the configuration.
    file_logging:
        ``False`` keeps output on the console stream only.
    """

    def __init__(
        self,
        name: str = "nimbustalk",
        level: Optional[int] = None,
        stream: Union[TextIO, None] = None,
        log_file: Optional[str] = None,
        max_bytes: Optional[int] = None,
        backup_count: Optional[int] = None,
        file_logging: bool = True,
    ) -> None:
        # Lazy import to avoid circular dependency at module level
        from nimbustalk.config import get_config
        _cfg = get_config()

        resolved_level: int = (
            level if level is not None
            else logging.getLevelName(_cfg.LOG_LEVEL.upper())
        )
        if not isinstance(resolved_level, int):
            resolved_level = logging.INFO

        self._logger: logging.Logger = logging.getLogger(name)
        self._logger.setLevel(resolved_level)

        # Prevent duplicate handlers when the same name is reused.
        if not self._logger.handlers:
            formatter = JSONFormatter()

            stream_handler = logging.StreamHandler(stream or sys.stdout)
            stream_handler.setLevel(resolved_level)
            stream_handler.setFormatter(formatter)
            self._logger.addHandler(stream_handler)

            if file_logging:
                self._add_file_handler(
                    log_file or _cfg.LOG_FILE,
                    max_bytes if max_bytes is not None else _cfg.LOG_MAX_BYTES,
                    backup_count if backup_count is not None else _cfg.LOG_BACKUP_COUNT,
                    resolved_level,
                    formatter,
                )

    def _add_file_handler(
        self,
        log_file: str,
        max_bytes: int,
        backup_count: int,
        level: int,
        formatter: logging.Formatter,
    ) -> None:
        # Graceful fallback to console-only on permission errors
        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                filename=str(log_path),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            self._logger.addHandler(file_handler)
        except OSError as exc:
            self._logger.warning(
                "Could not create log file '%s': %s. "
                "Continuing with console logging only.",
                log_file,
                exc,
            )

    # -- Public attribute -----------------------------------------------------

    @property
    def logger(self) -> logging.Logger:
        """Access the underlying ``logging.Logger`` directly."""
        return self._logger

    # -- Convenience delegates ------------------------------------------------

    def debug(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.critical(msg, *args, **kwargs)


def get_logger(name: str = "nimbustalk") -> StructuredLogger:
    """Create and return a ``StructuredLogger`` instance with the given *name*."""
    return StructuredLogger(name=name)
