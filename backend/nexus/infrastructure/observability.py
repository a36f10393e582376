"""Structured Logging — JSON or text output with credential redaction.

Invariants:
    - Every record carries timestamp, level, logger name and message
    - Known extra fields (user_id, provider, domain, reference_id, ...) are
      emitted as top-level JSON keys when present
    - Query-string tokens, bearer credentials and API keys are masked before
      any handler formats the record
    - setup_logging is idempotent: a second call replaces the handler

Design Decisions:
    - Redaction is a logging.Filter on the handler, so third-party loggers
      (httpx, uvicorn) are covered too
"""

import json
import logging
import re
from datetime import datetime, timezone

EXTRA_FIELDS = (
    "user_id", "provider", "domain", "reference_id", "error_code",
    "attempt", "status_code", "path", "phase", "amount", "sequence",
)

REDACTED = "[redacted]"

_HANDLER_NAME = "nexus-root"

_SECRET_PATTERNS = (
    re.compile(
        r"\b((?:access_token|refresh_token|client_secret|fb_exchange_token|"
        r"apikey|secretapikey|code)=)[^&\s\"']+",
        re.IGNORECASE,
    ),
    re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+"),
    re.compile(r"((?:sk|pk|rk)_(?:live|test)_)[A-Za-z0-9]+"),
    re.compile(r"(whsec_)[A-Za-z0-9]+"),
)


def redact(text: str) -> str:
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(lambda m: m.group(1) + REDACTED, text)
    return text


class RedactingFilter(logging.Filter):
    """Rewrites the record's message with credentials masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log[key] = value
        if record.exc_info:
            log["exception"] = redact(self.formatException(record.exc_info))
        return json.dumps(log, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable line with the extra fields appended as key=value."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(name)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = " ".join(
            f"{key}={getattr(record, key)}"
            for key in EXTRA_FIELDS if getattr(record, key, None) is not None
        )
        return f"{line} [{extras}]" if extras else line


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    handler.addFilter(RedactingFilter())
    for existing in list(logging.root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            logging.root.removeHandler(existing)
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
    # httpx logs full request URLs at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
