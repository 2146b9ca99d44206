"""
Structured logging: timestamp, event_type, wallet, tx_hash.

structlog with ISO timestamps, log level, and consistent keys so a run can be
grepped or aggregated afterwards. Every module should use get_logger() and log
a snake_case event name plus keyword context (wallet, attempt, tx_hash, error).

Rendering is done by structlog; delivery goes through stdlib logging so the
same line reaches the console and, once attach_log_file() is called, the
per-iteration log file.

Uses only Python stdlib logging and structlog; no vesting_batcher imports to avoid circular imports.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

# Default log level from env
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)

# JSON output by default (LOG_FORMAT=json); human-readable with LOG_FORMAT=console
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()

_ROOT_LOGGER_NAME = "vesting_batcher"


def _add_timestamp(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Ensure timestamp is always present (ISO 8601)."""
    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _normalize_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Rename structlog 'event' to event_type for consistency; keep message if present."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    if "message" not in event_dict and "event_type" in event_dict:
        event_dict["message"] = str(event_dict["event_type"])
    return event_dict


def _renderer() -> Any:
    if LOG_FORMAT == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def _stdlib_logger() -> logging.Logger:
    base = logging.getLogger(_ROOT_LOGGER_NAME)
    base.setLevel(LOG_LEVEL_VALUE)
    base.propagate = False
    return base


def configure_structlog() -> None:
    """Configure structlog once at import: JSON, timestamp, level, event_type, console sink."""
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_timestamp,
        _normalize_event,
        _renderer(),
    ]
    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.make_filtering_bound_logger(LOG_LEVEL_VALUE),
        context_class=dict,
        logger_factory=lambda *args: _stdlib_logger(),
        cache_logger_on_first_use=True,
    )
    base = _stdlib_logger()
    if not any(getattr(h, "_vesting_console", False) for h in base.handlers):
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(logging.Formatter("%(message)s"))
        console._vesting_console = True  # type: ignore[attr-defined]
        base.addHandler(console)


# One-time configuration on first import
if not structlog.is_configured():
    configure_structlog()


def attach_log_file(path: str | Path) -> logging.Handler:
    """
    Add a persistent file sink (append mode) next to the console sink.

    Idempotent per path: attaching the same file twice returns the existing handler.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    base = _stdlib_logger()
    resolved = os.path.abspath(path)
    for handler in base.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == resolved:
            return handler
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))
    base.addHandler(handler)
    return handler


def detach_log_file(handler: logging.Handler) -> None:
    """Remove and close a sink returned by attach_log_file()."""
    _stdlib_logger().removeHandler(handler)
    handler.close()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger for the given module name.

    Log with event_type (first arg) and optional wallet, tx_hash, attempt, etc.:
        logger = get_logger(__name__)
        logger.info("batch_submitted", tx_hash=tx_hash, size=10)
    Output (JSON): {"event_type": "batch_submitted", "tx_hash": "...", "size": 10, "timestamp": "...", "level": "info", "logger": "module.name"}
    """
    return structlog.get_logger(name).bind(logger=name)

