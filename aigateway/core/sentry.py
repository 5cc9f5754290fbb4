"""Sentry error tracking.

Enabled only when SENTRY_DSN is set. Events pass through the same
credential redaction as log lines before they leave the process.
"""

import logging

from aigateway.core.config import settings
from aigateway.core.logging import credential_values, redact

logger = logging.getLogger(__name__)


def scrub_event(event: dict, hint: dict) -> dict:
    """``before_send`` hook: mask provider secrets in messages and exception text."""
    secrets = credential_values()
    if not secrets:
        return event

    for exc in (event.get("exception") or {}).get("values", []):
        if isinstance(exc.get("value"), str):
            exc["value"] = redact(exc["value"], secrets)

    logentry = event.get("logentry") or {}
    for key in ("message", "formatted"):
        if isinstance(logentry.get(key), str):
            logentry[key] = redact(logentry[key], secrets)

    if isinstance(event.get("message"), str):
        event["message"] = redact(event["message"], secrets)
    return event


def init_sentry() -> None:
    if not settings.sentry_dsn:
        logger.debug("Sentry disabled (no SENTRY_DSN)")
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.app_env,
        release="aigateway@1.0.0",
        traces_sample_rate=0.1 if settings.app_env == "production" else 1.0,
        send_default_pii=False,
        before_send=scrub_event,
        integrations=[FastApiIntegration(transaction_style="endpoint")],
    )
    sentry_sdk.set_tag("provider_order", ",".join(settings.provider_order) or "default")
    logger.info("Sentry initialized (env=%s)", settings.app_env)
