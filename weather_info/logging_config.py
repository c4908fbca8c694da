"""
Logging configuration for structured JSON logging on stderr.

stdout carries the MCP protocol stream, so nothing may be logged there.
"""
import json
import logging
import os
import socket
import sys

HOST_ID = os.getenv("HOSTNAME") or socket.gethostname()

# Optional structured fields copied from the record when present
STRUCTURED_FIELDS = ("request_id", "tool", "resource", "duration_ms", "status")


class StructuredJSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        # Base log entry
        log_entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "host": HOST_ID,
            "message": record.getMessage(),
        }

        for field in STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        # Add exception info if present
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(log_level: str = "INFO") -> None:
    """Setup structured logging configuration."""
    formatter = StructuredJSONFormatter(datefmt="%Y-%m-%dT%H:%M:%S")

    # Setup root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    root_logger.addHandler(stderr_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("mcp").setLevel(logging.WARNING)


def log_request(
    logger: logging.Logger,
    request_id: str,
    duration_ms: int,
    status: str,
    message: str = "",
    tool: str = None,
    resource: str = None,
) -> None:
    """Log a tool or resource call with structured fields."""
    extra = {
        "request_id": request_id,
        "duration_ms": duration_ms,
        "status": status,
    }
    if tool:
        extra["tool"] = tool
    if resource:
        extra["resource"] = resource

    logger.info(message, extra=extra)
