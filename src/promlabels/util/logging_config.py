"""
Logging configuration and utilities.

Records from this package go to the ``promlabels`` logger hierarchy, one
child logger per component. Importing the package attaches only a
``NullHandler``; applications either configure the root logger themselves
or call :func:`configure_default_logging` to get output shaped by
``LoggingConfig``.
"""

import json
import logging
import os
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

PACKAGE_LOGGER = "promlabels"

HUMAN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
HUMAN_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Record attributes copied into the JSON entry under their own names.
_CONTEXT_ATTRIBUTES = ("component", "operation", "event", "metrics")


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One object per line. ``extra_fields`` are merged into the top level;
    an attached ``PromLabelsError`` payload goes under ``error``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        for attribute in _CONTEXT_ATTRIBUTES:
            value = getattr(record, attribute, None)
            if value is not None:
                entry[attribute] = value
        entry.update(getattr(record, "extra_fields", None) or {})

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": self.formatException(record.exc_info),
            }
        if hasattr(record, "error_context"):
            entry["error"] = record.error_context

        return json.dumps(entry, default=str, separators=(",", ":"))


class PromLabelsLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter with automatic component context injection.

    Provides convenience methods for structured logging of operations
    and their failures.
    """

    def __init__(self, logger: logging.Logger, component: str):
        self.component = component
        super().__init__(logger, {"component": component})

    def process(self, msg, kwargs):
        """Add component context to all log records."""
        kwargs.setdefault("extra", {})["component"] = self.component
        return msg, kwargs

    def operation_start(self, operation: str, **context):
        """Log operation start with context."""
        self.debug(
            f"Starting {operation}",
            extra={"operation": operation, "event": "start", "extra_fields": context},
        )

    def operation_success(self, operation: str, duration_ms: float = None, **context):
        """Log successful operation completion."""
        msg = f"Completed {operation}"
        if duration_ms is not None:
            msg += f" in {duration_ms:.2f}ms"

        self.debug(
            msg,
            extra={
                "operation": operation,
                "event": "success",
                "metrics": {"duration_ms": duration_ms} if duration_ms else {},
                "extra_fields": context,
            },
        )

    def operation_error(
        self, operation: str, error: Exception, level: int = logging.ERROR, **context
    ):
        """Log a failed operation; tracebacks are attached from ERROR up."""
        from .errors import PromLabelsError

        extra = {"operation": operation, "event": "error", "extra_fields": context}
        message = error
        if isinstance(error, PromLabelsError):
            extra["error_context"] = error.to_dict()
            message = error.message

        self.log(level, f"Error in {operation}: {message}", exc_info=level >= logging.ERROR, extra=extra)


def _build_handlers(
    log_file: str | Path | None,
    enable_console: bool,
    max_bytes: int,
    backup_count: int,
) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if enable_console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count))
    return handlers


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "human",  # "structured" or "human"
    log_file: str | Path | None = None,
    enable_console: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 3,
    logger_name: str = "",
) -> logging.Logger:
    """
    Install handlers on a logger, replacing the ones it had.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format ("structured" for JSON, "human" for readable)
        log_file: Optional file path for log output, rotated at ``max_bytes``
        enable_console: Whether to write to stderr
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep
        logger_name: Logger to configure; the root logger by default

    Returns:
        The configured logger
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    if log_format == "structured":
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(fmt=HUMAN_FORMAT, datefmt=HUMAN_DATE_FORMAT)

    target = logging.getLogger(logger_name)
    target.handlers.clear()
    target.setLevel(level)

    for handler in _build_handlers(log_file, enable_console, max_bytes, backup_count):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        target.addHandler(handler)
    return target


def get_logger(component: str) -> PromLabelsLoggerAdapter:
    """
    Get a component-specific logger with automatic context injection.

    Args:
        component: Component name for automatic context inclusion

    Returns:
        Logger adapter with structured logging methods
    """
    base_logger = logging.getLogger(f"{PACKAGE_LOGGER}.{component}")
    return PromLabelsLoggerAdapter(base_logger, component)


def configure_default_logging() -> None:
    """Give the package logger output from settings when the host has none.

    Does nothing when the root logger already has handlers, so records keep
    flowing to the application's own configuration. The root logger itself
    is never touched.
    """
    if logging.getLogger().handlers:
        return

    from ..config import get_logging_config
    from .errors import ConfigurationError

    try:
        config = get_logging_config()
    except ConfigurationError:
        # Invalid settings in the environment, fall back to raw variables
        setup_logging(
            log_level=os.getenv("PROMLABELS_LOG_LEVEL", "WARNING"),
            log_format=os.getenv("PROMLABELS_LOG_FORMAT", "human"),
            log_file=os.getenv("PROMLABELS_LOG_FILE"),
            logger_name=PACKAGE_LOGGER,
        )
        return

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        logger_name=PACKAGE_LOGGER,
    )
