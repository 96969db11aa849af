"""Structlog configuration with console and file output.

Console output is colored (development) or JSON (production). When file
logging is enabled, every record is also written as JSON to a rotating
``<app>.log`` and errors additionally to ``<app>.error.log``. Request context
(request_id, trace_id, ...) is merged into every event from contextvars.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor


if TYPE_CHECKING:
    from src.config.settings import Settings

from src.core.context import get_context


SENSITIVE_KEYS = frozenset(
    {
        "password",
        "secret",
        "token",
        "api_key",
        "apikey",
        "authorization",
        "credentials",
        "database_url",
        "redis_url",
    }
)

# Values shorter than this are fully masked
_MIN_MASK_LENGTH = 4


def add_context_processor(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Inject request context variables into every log entry."""
    event_dict.update(get_context())
    return event_dict


def filter_sensitive_data(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Mask secrets (passwords, tokens, connection strings) in log events."""

    def mask_value(key: str, value: Any) -> Any:
        if isinstance(value, str) and any(
            sensitive in key.lower() for sensitive in SENSITIVE_KEYS
        ):
            if len(value) > _MIN_MASK_LENGTH:
                return value[:2] + "*" * (len(value) - _MIN_MASK_LENGTH) + value[-2:]
            return "***"
        if isinstance(value, dict):
            return {k: mask_value(k, v) for k, v in value.items()}
        return value

    return {k: mask_value(k, v) for k, v in event_dict.items()}


def build_shared_processors(include_caller_info: bool) -> list[Processor]:
    """Processors applied to both structlog and foreign (stdlib) records."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_context_processor,
        filter_sensitive_data,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if include_caller_info:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            )
        )
    return processors


def setup_file_handler(
    log_path: Path,
    max_bytes: int,
    backup_count: int,
    log_level: str,
    shared_processors: list[Processor],
) -> RotatingFileHandler:
    """Create a rotating JSON file handler.

    Args:
        log_path: Full path of the log file. Parent directories are created.
        max_bytes: Maximum size of each log file in bytes.
        backup_count: Number of rotated files to keep.
        log_level: Minimum level written to this file.
        shared_processors: Pre-chain for records coming from stdlib loggers.
    """
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=str(log_path),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(getattr(logging, log_level.upper()))
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=shared_processors,
        )
    )
    return handler


def configure_structlog(
    settings: "Settings",
    log_dir: Path | str | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        settings: Application settings.
        log_dir: Directory for log files. Defaults to ``settings.log_dir``.
    """
    log_level = settings.log_level
    log_dir = Path(log_dir or settings.log_dir)
    shared_processors = build_shared_processors(settings.log_include_caller_info)

    if settings.log_format == "json":
        console_renderer: Processor = structlog.processors.JSONRenderer()
    else:
        console_renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level.upper()))
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=console_renderer,
            foreign_pre_chain=shared_processors,
        )
    )
    root_logger.addHandler(console_handler)

    if settings.log_to_file:
        root_logger.addHandler(
            setup_file_handler(
                log_path=log_dir / f"{settings.app_name}.log",
                max_bytes=settings.log_file_max_bytes,
                backup_count=settings.log_file_backup_count,
                log_level=log_level,
                shared_processors=shared_processors,
            )
        )
        root_logger.addHandler(
            setup_file_handler(
                log_path=log_dir / f"{settings.app_name}.error.log",
                max_bytes=settings.log_file_max_bytes,
                backup_count=settings.log_file_backup_count,
                log_level="ERROR",
                shared_processors=shared_processors,
            )
        )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Silence noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.database_echo else logging.WARNING
    )
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance."""
    return structlog.get_logger(name)
