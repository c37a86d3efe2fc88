# logging.py

import logging
import os
from logging.handlers import RotatingFileHandler

import structlog
from sqlalchemy.engine import make_url
from structlog.contextvars import merge_contextvars

from FixtureSeed.config import Settings

# Loggers whose records should reach our handlers rather than their own
PROPAGATED_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio")
REDACTED = "[REDACTED]"


def _json_formatter() -> structlog.stdlib.ProcessorFormatter:
    # Renders structlog events and plain stdlib records alike as one JSON object per line
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.add_log_level,
            merge_contextvars,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=[
            structlog.processors.add_log_level,
            merge_contextvars,
        ],
    )


def _handler_level(name: str | None, default: int) -> int | None:
    """Numeric level for a handler, or None when the handler is switched off."""
    name = (name or "").upper()
    if name == "NONE":
        return None
    return getattr(logging, name, default)


def setup_logging(settings: Settings | None = None) -> None:
    """Route structlog through stdlib logging and install the JSON handlers.

    Without settings, INFO goes to the console only. With settings, the
    console and the rotating file each take their own level; NONE disables one.
    """
    settings = settings or Settings()
    level = getattr(logging, settings.logging_level.upper(), logging.INFO)
    formatter = _json_formatter()
    logging.captureWarnings(True)

    handlers: list[logging.Handler] = []
    console_level = _handler_level(settings.logging_console, level)
    if console_level is not None:
        handlers.append(logging.StreamHandler())
        handlers[-1].setLevel(console_level)

    file_level = _handler_level(settings.logging_file, level)
    if file_level is not None:
        os.makedirs(os.path.dirname(settings.logging_file_path) or ".", exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                settings.logging_file_path,
                maxBytes=settings.logging_max_bytes,
                backupCount=settings.logging_backup_count,
            )
        )
        handlers[-1].setLevel(file_level)

    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in PROPAGATED_LOGGERS:
        lg = logging.getLogger(name)
        lg.handlers = []
        lg.propagate = True

    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def redact_settings(settings: Settings) -> dict:
    """Settings as a dict that is safe to log: the database password is masked."""
    data = settings.model_dump()
    url = make_url(settings.database_url)
    if url.password:
        data["database_url"] = url.set(password=REDACTED).render_as_string(hide_password=False)
    return data
