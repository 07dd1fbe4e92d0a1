"""
Structured JSON logging with namespace tracking.

Provides replication logging with:
- JSON format for log aggregation
- The namespace currently being processed on every record
- Structured metadata
- Duration tracking for flushes and DDL
"""

import logging
import json
import time
from contextvars import ContextVar
from typing import Optional
from datetime import datetime, timezone

# Namespace ("db.collection") currently being replicated
namespace_ctx: ContextVar[Optional[str]] = ContextVar(
    "namespace", default=None)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs in JSON format with standardized fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        namespace = namespace_ctx.get()
        if namespace:
            log_data["namespace"] = namespace

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Extra fields passed as extra={"extra_fields": {...}}
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class PerformanceTracker:
    """
    Context manager for tracking operation duration.

    Usage:
        with PerformanceTracker("copy_flush", logger, table="users"):
            # ... perform operation
            pass
    """

    def __init__(
        self,
        operation: str,
        logger: logging.Logger,
        log_level: int = logging.INFO,
        **extra_fields,
    ):
        """
        Initialize performance tracker.

        Args:
            operation: Operation name
            logger: Logger instance
            log_level: Log level for completion message
            **extra_fields: Additional structured fields
        """
        self.operation = operation
        self.logger = logger
        self.log_level = log_level
        self.extra_fields = extra_fields
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self):
        """Start timing."""
        self.start_time = time.perf_counter()
        extra = {"operation": self.operation, **self.extra_fields}
        self.logger.debug(
            f"Starting operation: {self.operation}",
            extra={"extra_fields": extra},
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Log completion with duration."""
        self.duration = time.perf_counter() - self.start_time

        extra = {
            "operation": self.operation,
            "duration_ms": round(self.duration * 1000, 2),
            **self.extra_fields,
        }

        if exc_type:
            extra["error"] = str(exc_val)
            extra["error_type"] = exc_type.__name__
            self.logger.error(
                f"Operation failed: {self.operation}",
                extra={"extra_fields": extra},
            )
        else:
            self.logger.log(
                self.log_level,
                f"Operation completed: {self.operation}",
                extra={"extra_fields": extra},
            )


def setup_logging(log_level: str = "INFO", json_format: bool = True):
    """
    Configure application logging.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting if True, standard format if False
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, log_level.upper()))

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # SQLAlchemy engine logging is controlled by Settings.db_echo
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
