"""
Logging setup with redaction of health data.

Log records pass through ``SensitiveDataFilter`` before reaching any
handler, so e-mail addresses, phone numbers, dates and tokens never end
up in log output even when a caller formats a record into a message.
"""
import logging
import re

from .config import settings

REDACTED = "[REDACTED]"

SENSITIVE_PATTERNS = [
    re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    re.compile(r"(?:\+33|\b0)[1-9](?:[.\-\s]?\d{2}){4}\b"),
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"),
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(r"\b\d{15}\b"),
    re.compile(r"bearer\s+[A-Za-z0-9._-]+", re.IGNORECASE),
    re.compile(r"\b[A-Za-z0-9]{32,}\b"),
]


def sanitize(message: str) -> str:
    """Replace every sensitive match in ``message``."""
    for pattern in SENSITIVE_PATTERNS:
        message = pattern.sub(REDACTED, message)
    return message


class SensitiveDataFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        record.msg = sanitize(message)
        record.args = None
        return True


def configure_logging(level: str = None) -> None:
    """Configure root logging once and attach the redaction filter."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, SensitiveDataFilter) for f in handler.filters):
            handler.addFilter(SensitiveDataFilter())
