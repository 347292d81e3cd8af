import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

from config import settings

# Set by the request middleware, read by RequestIdFilter
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for Google Cloud Logging compatibility.

    Outputs one JSON object per line with fields:
    - severity: Maps Python levels to Cloud Logging severity
    - message: Human-readable message
    - logger: Dotted logger name (strata.<component>)
    - timestamp: ISO 8601 with timezone
    - request_id: From the record or the active request (if any)
    - context: Additional structured data
    """

    SEVERITY_MAP = {
        "DEBUG": "DEBUG",
        "INFO": "INFO",
        "WARNING": "WARNING",
        "ERROR": "ERROR",
        "CRITICAL": "CRITICAL",
    }

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "severity": self.SEVERITY_MAP.get(record.levelname, "DEFAULT"),
            "message": record.getMessage(),
            "logger": record.name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        request_id = getattr(record, "request_id", None)
        if request_id:
            log_entry["request_id"] = request_id

        if hasattr(record, "context"):
            log_entry["context"] = record.context

        if record.exc_info and record.exc_info[0]:
            log_entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class RequestIdFilter(logging.Filter):
    """Attach the current request ID to records that don't carry one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get()
        return True


def setup_logging() -> logging.Logger:
    """Configure structured JSON logging.

    Call once at application startup (in main.py lifespan).
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())
    handler.addFilter(RequestIdFilter())

    root_logger = logging.getLogger("strata")
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    # Cloud SDKs log every request at DEBUG/INFO
    for noisy in ("uvicorn.access", "botocore", "boto3", "urllib3", "google"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger under the 'strata' namespace."""
    return logging.getLogger(f"strata.{name}")
