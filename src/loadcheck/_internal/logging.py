"""Structured logging setup for loadcheck."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

# Extra record attributes copied into JSON log lines when present.
_CONTEXT_FIELDS = ("scenario", "user_id", "iteration", "label", "status")


class _JsonFormatter(logging.Formatter):
    """One-line JSON log formatter.

    Emits objects with keys timestamp, level, logger, message, plus any
    run context passed through ``extra=``.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Configure and return the root ``loadcheck`` logger.

    Repeated calls only update the level of the existing handler, so the
    CLI and tests can both call it without duplicating output.

    Args:
        level: Logging level (e.g., ``logging.DEBUG``). Defaults to INFO.
        json_format: Emit one JSON object per line instead of plain text.

    Returns:
        The configured ``loadcheck`` logger.
    """
    logger = logging.getLogger("loadcheck")
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``loadcheck`` namespace.

    Args:
        name: Logger name, appended to the ``loadcheck.`` prefix, e.g.
            ``get_logger("engine.runner")``.
    """
    return logging.getLogger(f"loadcheck.{name}")
