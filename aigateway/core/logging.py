"""Logging setup for the gateway.

Provider error bodies are logged verbatim and some vendors echo request
details back, so every handler carries a filter that masks the configured
provider credentials before anything is written.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from aigateway.core.config import settings

MASK = "***"

# Extra record attributes promoted to top-level JSON keys
GATEWAY_FIELDS = ("provider_id", "error_kind", "fingerprint")


def credential_values() -> list[str]:
    """Configured provider secrets, longest first."""
    values = {
        settings.azure_openai_api_key,
        settings.azure_openai_api_key_2,
        settings.gemini_api_key,
        settings.deepseek_api_key,
    }
    # Very short values would mask ordinary words
    return sorted((v for v in values if len(v) >= 8), key=len, reverse=True)


def redact(text: str, secrets: list[str] | None = None) -> str:
    """Replace every occurrence of a provider secret in ``text``."""
    for secret in credential_values() if secrets is None else secrets:
        text = text.replace(secret, MASK)
    return text


class RedactingFilter(logging.Filter):
    """Masks provider credentials in the rendered log message."""

    def __init__(self, secrets: list[str] | None = None):
        super().__init__()
        self.secrets = credential_values() if secrets is None else secrets

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True
        message = record.getMessage()
        cleaned = redact(message, self.secrets)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with gateway context fields when present."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": "aigateway",
        }
        for attr in GATEWAY_FIELDS:
            value = getattr(record, attr, None)
            if value is not None:
                log_data[attr] = value
        if record.exc_info and record.exc_info[1]:
            log_data["exception"] = redact(self.formatException(record.exc_info))
        return json.dumps(log_data, ensure_ascii=False)


def setup_logging() -> None:
    """Install a single stdout handler on the root logger."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RedactingFilter())
    if settings.log_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    root.addHandler(handler)

    # httpx logs every request URL at INFO; Gemini URLs carry the key
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING if not settings.app_debug else level)
