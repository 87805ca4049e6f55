"""
Structured JSON Logging Configuration

This module provides structured logging for the order service: the Kafka
ingestion loop, the lookup API and the startup cache warm-up all log through
the same formatter so a single order can be followed across them.

LOG RECORD SHAPE:
- timestamp, level, service, logger, message
- correlation_id: the order_uid being handled (when known)
- extra: any additional context passed with ``extra={...}``

EXAMPLE OUTPUT:
{
  "timestamp": "2025-01-10T14:30:00.123Z",
  "level": "INFO",
  "service": "order-service",
  "logger": "src.order_service.consumer",
  "correlation_id": "b563feb7b2b84b6test",
  "message": "Order persisted and cached",
  "extra": {"partition": 0, "offset": 42, "attempts": 1}
}
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

# Attributes every LogRecord carries; anything else was passed via extra=
_STANDARD_ATTRS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName", "relativeCreated",
        "thread", "threadName", "exc_info", "exc_text", "stack_info",
        "taskName", "asctime", "correlation_id",
    }
)


# ==============================================================================
# JSON FORMATTER
# ==============================================================================


class JSONFormatter(logging.Formatter):
    """
    Log formatter that renders each record as a single JSON line.

    Fields:
    - timestamp: ISO 8601, UTC, millisecond precision
    - level: DEBUG, INFO, WARNING, ERROR, CRITICAL
    - service: service name given at setup
    - correlation_id: order_uid (if provided)
    - exception: formatted traceback (if exc_info was set)
    - extra: additional context passed to the logger
    """

    def __init__(self, service_name: str = "order-service", include_extra: bool = True):
        """
        Initialize JSON formatter.

        Args:
            service_name: Name of the service (e.g., "order-service")
            include_extra: Whether to include extra fields from log record
        """
        super().__init__()
        self.service_name = service_name
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self._format_timestamp(record.created),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "correlation_id"):
            log_data["correlation_id"] = record.correlation_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            extra_fields = {
                k: v
                for k, v in record.__dict__.items()
                if k not in _STANDARD_ATTRS and not k.startswith("_")
            }
            if extra_fields:
                log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)

    @staticmethod
    def _format_timestamp(created: float) -> str:
        """Format a LogRecord timestamp as ``2025-01-10T14:30:00.123Z``."""
        dt = datetime.fromtimestamp(created, tz=timezone.utc)
        return dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


# ==============================================================================
# PLAIN TEXT FORMATTER (for development)
# ==============================================================================


class PlainTextFormatter(logging.Formatter):
    """
    Human-readable log formatter for local development.

    Format: [2025-01-10 14:30:00] INFO [order-service] Order persisted and cached
    """

    def __init__(self, service_name: str = "order-service"):
        super().__init__(
            fmt=f"[%(asctime)s] %(levelname)s [{service_name}] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


# ==============================================================================
# LOGGER SETUP
# ==============================================================================


def setup_logger(
    name: str,
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
) -> logging.Logger:
    """
    Set up a structured logger writing to stdout.

    Configuring a package-level name (e.g. ``"src"``) makes every module
    logger below it (``logging.getLogger(__name__)``) emit through the same
    handler.

    Args:
        name: Logger name
        service_name: Service identifier written into every record
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: "json" or "text"

    Returns:
        Configured logging.Logger instance

    Example:
        >>> logger = setup_logger("src", "order-service", "INFO", "json")
        >>> logger.info("Cache warmed", extra={"loaded": 120})
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Prevent duplicate handlers if logger already configured
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logger.level)

    if log_format.lower() == "json":
        formatter: logging.Formatter = JSONFormatter(service_name=service_name)
    else:
        formatter = PlainTextFormatter(service_name=service_name)

    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


# ==============================================================================
# CORRELATION ID ADAPTER
# ==============================================================================


class CorrelationAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds correlation_id to every record it emits.

    Example:
        >>> base_logger = logging.getLogger(__name__)
        >>> logger = CorrelationAdapter(base_logger, {"correlation_id": "b563feb7b2b84b6test"})
        >>> logger.info("Persisting order")  # correlation_id automatically included
    """

    def process(self, msg: str, kwargs: dict) -> tuple:
        extra = kwargs.get("extra", {})

        if "correlation_id" in self.extra:
            extra["correlation_id"] = self.extra["correlation_id"]

        kwargs["extra"] = extra
        return msg, kwargs
