"""
Sentry integration for error tracking.
"""

import logging
from typing import Any

from sentry_sdk import capture_exception, capture_message, get_client, init, set_tag
from sentry_sdk.api import is_initialized
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.types import Event

from .config import Settings
from .logger import get_logger
from .plugins import BasePlugin

logger = get_logger(__name__)

# Exceptions that mostly mean a flaky network, not a bug.
_TRANSIENT_ERRORS = ["RemoteDisconnected", "ProtocolError", "ConnectionError", "TimeoutError", "ConnectTimeout", "ReadTimeout"]


class SentryManager(BasePlugin):
    def __init__(self) -> None:
        self.dsn: str | None = None
        self.environment: str = "development"
        self.shutdown_timeout: int = 5
        self.is_ready: bool = False

    def before_send(self, event: Event, hint: dict[str, Any]) -> Event | None:
        """Drop health checks, SDK-internal noise and transient network errors."""
        if event.get("transaction") == "/health":
            return None

        if event.get("logger") == "sentry_sdk.errors":
            return None

        exception = event.get("exception")
        if exception and exception.get("values"):
            for exc_value in exception["values"]:
                exc_type = exc_value.get("type", "")
                if any(error_type in exc_type for error_type in _TRANSIENT_ERRORS):
                    logger.debug(f"Filtered out transient network error: {exc_type}")
                    return None

        return event

    # -----------------------------
    # Plugin interface implementation
    # -----------------------------
    async def setup(self, settings: Settings) -> bool:
        """Set up Sentry SDK from settings."""
        self.dsn = settings.sentry_dsn
        self.environment = settings.environment
        self.shutdown_timeout = settings.sentry_shutdown_timeout

        if not self.dsn:
            logger.info("Sentry DSN not configured, skipping Sentry setup")
            self.is_ready = True
            return True

        try:
            _ = init(
                dsn=self.dsn,
                integrations=[
                    FastApiIntegration(failed_request_status_codes={400, *range(500, 600)}),
                    SqlalchemyIntegration(),
                    LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
                ],
                traces_sample_rate=settings.sentry_trace_sample_rate,
                profiles_sample_rate=settings.sentry_profiles_sample_rate,
                environment=self.environment,
                before_send=self.before_send,
                # auth payloads carry emails and passwords
                send_default_pii=False,
                shutdown_timeout=self.shutdown_timeout,
                max_breadcrumbs=50,
                attach_stacktrace=True,
                auto_session_tracking=False,
            )
            logger.info("Sentry initialized")
            self.is_ready = True
            return True
        except Exception as e:
            logger.error(f"Failed to initialize Sentry: {e}")
            self.is_ready = False
            return False

    async def teardown(self) -> bool:
        """Flush pending events before shutdown."""
        try:
            client = get_client()
            if client and is_initialized():
                client.flush(timeout=max(1.0, self.shutdown_timeout - 2.0))
                client.close(timeout=2.0)
                logger.info("Sentry client closed gracefully")
        except Exception as e:
            # never block application shutdown on Sentry
            logger.warning(f"Non-critical error during Sentry client shutdown: {e}")
        self.is_ready = False
        return True

    async def check_health(self) -> dict[str, Any]:
        """Check if Sentry is configured and initialized."""
        if not self.is_ready:
            return {"status": False, "configured": bool(self.dsn), "initialized": False, "reason": "Plugin not ready"}
        try:
            set_tag("health_check", True)
            return {"status": True, "configured": bool(self.dsn), "initialized": is_initialized()}
        except Exception as e:
            logger.error(f"Sentry health check failed: {e}")
            return {"status": False, "configured": bool(self.dsn), "initialized": False, "error": str(e)}


async def capture_it(obj: Exception | str) -> None:
    """Capture an exception or message with Sentry, if it is initialized."""
    try:
        if not is_initialized():
            logger.debug("Sentry not initialized, skipping capture")
            return

        if isinstance(obj, Exception):
            _ = capture_exception(obj)
        else:
            _ = capture_message(obj)
    except Exception as e:
        logger.warning(f"Failed to send event to Sentry (non-critical): {e}")
