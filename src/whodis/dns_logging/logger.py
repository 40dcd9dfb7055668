"""
Structured Logging Framework

structlog on top of the standard library logging module. Events from
structlog loggers and plain ``logging.getLogger(__name__)`` records share one
processor chain and are rendered either for the console or as JSON lines,
with an optional rotating JSON log file next to the console output.
"""

import logging
import logging.handlers
import sys
import traceback
from pathlib import Path
from typing import Any, List, Optional

import structlog

from ..config.schema import LoggingConfig

ROOT_LOGGER_NAME = "whodis"


def _shared_processors() -> List[Any]:
    """Processors applied to both structlog events and stdlib records."""
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]


def _json_processors() -> List[Any]:
    return [
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def _formatter(processors: List[Any]) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=processors,
        foreign_pre_chain=_shared_processors(),
    )


class StructuredLogger:
    """Owns the logging configuration of the process."""

    def __init__(self, config: LoggingConfig):
        self.config = config
        self._configured = False
        self.logger = None

    def _get_processors(self) -> List[Any]:
        """Rendering processors for the console handler."""
        if self.config.format == "json":
            return _json_processors()
        return [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    def configure(self) -> None:
        """Install handlers on the root logger and configure structlog.

        Console output goes to stderr so stdout stays free for command
        output such as the KEY record.
        """
        if self._configured:
            return

        level = logging.getLevelName(self.config.level.upper())
        handlers = [self._console_handler()]
        if self.config.file:
            handlers.append(self._file_handler())

        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.setLevel(level)
        for handler in handlers:
            handler.setLevel(level)
            root_logger.addHandler(handler)

        structlog.configure(
            processors=_shared_processors()
            + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
            wrapper_class=structlog.stdlib.BoundLogger,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._configured = True
        self.logger = structlog.get_logger(ROOT_LOGGER_NAME)

    def _console_handler(self) -> logging.Handler:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(_formatter(self._get_processors()))
        return handler

    def _file_handler(self) -> logging.Handler:
        """Size-rotated file handler, always JSON lines."""
        Path(self.config.file).parent.mkdir(parents=True, exist_ok=True)

        handler = logging.handlers.RotatingFileHandler(
            filename=self.config.file,
            maxBytes=self.config.max_size_mb * 1024 * 1024,
            backupCount=self.config.backup_count,
            encoding="utf-8",
        )
        handler.setFormatter(_formatter(_json_processors()))
        return handler

    def get_logger(self, name: str = ROOT_LOGGER_NAME) -> structlog.stdlib.BoundLogger:
        if not self._configured:
            self.configure()
        return structlog.get_logger(name)


# Process-wide logging setup
_logger_instance: Optional[StructuredLogger] = None


def setup_logging(config: LoggingConfig) -> None:
    """Configure process logging from the [logging] section."""
    global _logger_instance
    _logger_instance = StructuredLogger(config)
    _logger_instance.configure()


def get_logger(name: str = ROOT_LOGGER_NAME) -> structlog.stdlib.BoundLogger:
    """Structured logger bound to name.

    Raises:
        RuntimeError: If setup_logging() has not been called
    """
    if _logger_instance is None:
        raise RuntimeError("Logging not configured. Call setup_logging() first.")
    return _logger_instance.get_logger(name)


def log_exception(
    logger: structlog.stdlib.BoundLogger, message: str, exc: Optional[BaseException] = None
) -> None:
    """Log an error event carrying the exception type, message and traceback.

    Falls back to the exception currently being handled when exc is omitted.
    """
    exc = exc if exc is not None else sys.exc_info()[1]
    if exc is None:
        logger.error(message)
        return

    logger.error(
        message,
        exception_type=type(exc).__name__,
        exception_message=str(exc),
        traceback="".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        ),
    )
