"""
Leaderboard logging.

Every module logs through ``get_logger(__name__)``. A single stderr handler
sits on the ``leaderboard`` package logger and module loggers propagate to
it, so level and format are set in one place:

- LEADERBOARD_LOG_LEVEL / LEADERBOARD_DEBUG pick the level
- LEADERBOARD_LOG_JSON switches to one JSON object per line

Structured context goes through ``extra=`` and is rendered after the message:

    logger.warning("Filtered out invalid users", extra={"total": 3, "valid": 1})
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from .config import get_settings

PACKAGE_LOGGER = "leaderboard"

# Attributes every LogRecord carries; anything else came from extra=
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", logging.NOTSET, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}

_handler: Optional[logging.Handler] = None
_configured = False


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Fields passed through ``extra=`` on a record."""
    return {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS}


class LeaderboardFormatter(logging.Formatter):
    """
    Renders ``[LEADERBOARD LEVEL] [module] message {context}`` in text mode,
    or a flat JSON object with timestamp, level, logger and message.
    """

    def __init__(self, json_output: bool = False) -> None:
        super().__init__()
        self.json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        context = record_context(record)
        exception = self.formatException(record.exc_info) if record.exc_info else None

        if self.json_output:
            entry: dict[str, Any] = {
                "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(
                    timespec="seconds"
                ),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
                **context,
            }
            if exception:
                entry["exception"] = exception
            return json.dumps(entry, default=str)

        module = record.name.rsplit(".", 1)[-1]
        line = f"[LEADERBOARD {record.levelname}] [{module}] {record.getMessage()}"
        if context:
            line = f"{line} {json.dumps(context, default=str)}"
        if exception:
            line = f"{line}\n{exception}"
        return line


def configure_logging() -> logging.Logger:
    """Attach the stderr handler to the package logger. Idempotent."""
    global _handler, _configured

    settings = get_settings()
    root = logging.getLogger(PACKAGE_LOGGER)
    if _handler is None:
        _handler = logging.StreamHandler(sys.stderr)
        _handler.setFormatter(LeaderboardFormatter(json_output=settings.log_json))
        root.addHandler(_handler)
    root.setLevel(settings.log_level_int)
    root.propagate = False
    _configured = True
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger for a module; configures the package logger on first use."""
    if not _configured:
        configure_logging()
    return logging.getLogger(name)


def reset_logging() -> None:
    """
    Detach the handler and let ``leaderboard.*`` records reach the root logger.

    Used by test fixtures so pytest's caplog sees every record. Later
    ``get_logger`` calls do not reattach the handler; call
    ``configure_logging`` for that.
    """
    global _handler

    manager = logging.Logger.manager
    for name, entry in list(manager.loggerDict.items()):
        if isinstance(entry, logging.Logger) and (
            name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + ".")
        ):
            entry.propagate = True
            entry.setLevel(logging.NOTSET)

    if _handler is not None:
        logging.getLogger(PACKAGE_LOGGER).removeHandler(_handler)
        _handler = None
