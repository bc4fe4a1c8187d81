"""structlog configuration shared by the engine, runner and CLI."""

from __future__ import annotations
import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from .config import Settings, get_settings


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def _configure_structlog(settings: Settings, log_level: int) -> None:
    # records go through stdlib logging; without configure_logging() they only reach
    # whatever handlers the host application installed
    logging.getLogger("nodeflow").setLevel(log_level)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if settings.log_format == "json":
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))
        processors.insert(0, structlog.stdlib.add_logger_name)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.insert(0, structlog.processors.TimeStamper(fmt="%H:%M:%S"))
        processors.append(structlog.dev.ConsoleRenderer(colors=False, pad_event_to=30))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def configure_logging(settings: Optional[Settings] = None, level: Optional[str] = None) -> None:
    """Install stderr (and optional file) handlers, then route structlog through them."""
    settings = settings or get_settings()
    log_level = _level(level or settings.log_level)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))
    logging.basicConfig(format="%(message)s", level=log_level, handlers=handlers, force=True)

    _configure_structlog(settings, log_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    if not structlog.is_configured():
        settings = get_settings()
        _configure_structlog(settings, _level(settings.log_level))
    return structlog.get_logger(name)
