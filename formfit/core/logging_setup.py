from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone

from formfit.core.request_context import get_customer_id, get_request_id

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
# "json" for log shippers, "text" for a local terminal
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()

# Graph API tokens travel as ?access_token=..., vendor keys as Bearer headers
_SECRET_PATTERNS = (
    re.compile(r"(bearer\s+)([A-Za-z0-9._\-]+)", re.IGNORECASE),
    re.compile(r"((?:access_token|verify_token|api_key|token)\s*[:=]\s*)([^\s\",}&]+)", re.IGNORECASE),
)

# extras copied from the LogRecord when a call site passes them
_CONTEXT_FIELDS = ("endpoint", "method", "status_code", "duration_ms", "order_id")


def mask_secrets(value: str) -> str:
    for pattern in _SECRET_PATTERNS:
        value = pattern.sub(r"\1***", value)
    return value


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", None) or get_request_id(),
            "customer_id": getattr(record, "customer_id", None) or get_customer_id(),
            "message": mask_secrets(record.getMessage()),
        }
        entry.update({key: getattr(record, key) for key in _CONTEXT_FIELDS if getattr(record, key, None) is not None})
        if record.exc_info:
            entry["exc_info"] = mask_secrets(self.formatException(record.exc_info))
        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        return mask_secrets(super().format(record))


def configure_logging() -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(TextFormatter() if LOG_FORMAT == "text" else JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(LOG_LEVEL)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(logger_name).setLevel(LOG_LEVEL)
    # httpx logs full request URLs, which carry the page access token
    logging.getLogger("httpx").setLevel(logging.WARNING)
