"""
Structured logging setup using structlog.

Usage:
    from deep_dive.core.logging import get_logger
    logger = get_logger(__name__)
    logger.info("deep_dive_started", lead_id=42, queries=8)

Never use print() in the engine. Always use this logger.
"""

import logging
import sys
from pathlib import Path
from typing import Any

import structlog
from structlog.types import EventDict, WrappedLogger


def _add_caller_info(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add module name from logger name to every log event."""
    if hasattr(logger, "name"):
        event_dict.setdefault("logger", logger.name)
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "text",
    log_dir: Path | None = None,
) -> None:
    """
    Configure structured logging for the entire application.

    Must be called once at startup (the CLI does this).

    Args:
        log_level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Output format. "json" for production, "text" for development.
        log_dir: Optional directory to write log files. If None, only stderr.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
    )

    for noisy_lib in ["httpx", "httpcore", "openai", "anthropic", "aiohttp", "aiosqlite"]:
        logging.getLogger(noisy_lib).setLevel(logging.WARNING)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.ExceptionRenderer(),
        _add_caller_info,
    ]

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.reset_defaults()
    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_dir / "deep_dive.log")
        file_handler.setLevel(level)
        logging.getLogger().addHandler(file_handler)

        # Append-only record of which leads were researched
        audit_handler = logging.FileHandler(log_dir / "audit.log")
        audit_handler.setLevel(logging.INFO)
        logging.getLogger("deep_dive.audit").addHandler(audit_handler)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structlog logger bound with the given name.

    Example:
        logger = get_logger(__name__)
        logger.info("wave_completed", lead_id=7, wave=1, dossiers=4)
        logger.warning("fetch_failed", url="https://x.com/avery", error="timeout")
    """
    return structlog.stdlib.get_logger(name)


def get_audit_logger() -> structlog.stdlib.BoundLogger:
    """Audit logger recording every deep dive run started or finished."""
    return structlog.stdlib.get_logger("deep_dive.audit")
