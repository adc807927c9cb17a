"""
Structured Logging
==================

JSON-structured logging with correlation ID tracking.

Provides:
- Structured JSON logs (parseable by log aggregators)
- Correlation ID for request tracing
- Contextual loggers for modules
- Performance timing utilities

Usage:
    from casewatch.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("SLA tracking record created", extra={"case_id": "CASE-001"})
"""

import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterator
from contextlib import contextmanager

from pythonjsonlogger import jsonlogger

_SENSITIVE_KEYS = ("password", "token", "api_key", "secret")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    Custom JSON formatter with additional fields.

    Adds:
    - timestamp in ISO format (UTC)
    - correlation_id when available
    - Environment info
    """

    def add_fields(
        self,
        record_dict: dict[str, Any],
        log_record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(record_dict, log_record, message_dict)

        if not record_dict.get("timestamp"):
            record_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

        if hasattr(log_record, "correlation_id"):
            record_dict["correlation_id"] = log_record.correlation_id
        elif "correlation_id" in message_dict:
            record_dict["correlation_id"] = message_dict["correlation_id"]

        record_dict["environment"] = getattr(log_record, "environment", "unknown")

        for key, value in list(record_dict.items()):
            if isinstance(value, str) and any(s in key.lower() for s in _SENSITIVE_KEYS):
                record_dict[key] = "***REDACTED***"


class EnvironmentFilter(logging.Filter):
    """Stamps every record with the deployment environment."""

    def __init__(self, environment: str):
        super().__init__()
        self.environment = environment

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "environment"):
            record.environment = self.environment
        return True


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
) -> None:
    """
    Configure structured JSON logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        environment: Environment name for log context
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))
    handler.addFilter(EnvironmentFilter(environment))
    handler.setFormatter(CustomJsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    ))
    root_logger.addHandler(handler)

    # Silence noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (typically __name__ of the module)
    """
    return logging.getLogger(name)


def get_context_logger(name: str, correlation_id: str | None = None) -> logging.Logger:
    """
    Get a logger with correlation ID for request tracing.

    Args:
        name: Logger name
        correlation_id: Request correlation ID

    Returns:
        logging.Logger: Logger with correlation_id in extra
    """
    logger = get_logger(name)
    if correlation_id:
        logger = logging.LoggerAdapter(logger, {"correlation_id": correlation_id})
    return logger


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any) -> Iterator[Dict[str, Any]]:
    """
    Context manager for measuring and logging operation latency.

    Yields a dict that receives ``latency_ms`` on exit, so callers can
    forward the timing elsewhere.

    Usage:
        with log_latency(logger, "sla_breach_sweep") as timing:
            result = await service.check_and_update_breaches()
        export(timing["latency_ms"])
    """
    timing: Dict[str, Any] = {"operation": operation}
    start = time.perf_counter()
    try:
        yield timing
    finally:
        timing["latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            f"{operation} completed",
            extra={**timing, **extra_context},
        )
