"""JSON logging for the deskbridge service.

Context is passed per call as ``extra={"context": {...}}``. Values under
secret-looking keys are masked before they reach the log stream.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

SERVICE_NAME = "deskbridge"
SENSITIVE_KEYS = {"token", "api_token", "api_access_token", "session", "session_token", "admin_token"}
PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def mask_token(token: str | None) -> str:
    """Keep only a short prefix of a secret for log lines."""
    if not token:
        return ""
    return f"{token[:4]}***"


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    redacted = {}
    for key, value in context.items():
        if key in SENSITIVE_KEYS and isinstance(value, str) and not value.endswith("***"):
            value = mask_token(value)
        redacted[key] = value
    return redacted


class JSONFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if isinstance(context, dict) and context:
            log_data["context"] = redact_context(context)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Install a single stdout handler on the root logger."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(PLAIN_FORMAT))
    root_logger.addHandler(handler)

    # Client libraries log every request at INFO
    for noisy in ("httpx", "httpcore", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{SERVICE_NAME}.{name}")
