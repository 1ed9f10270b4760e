from collections import defaultdict
from datetime import datetime
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError

from .config import Settings
from .exceptions import AppError
from .logger import get_logger
from .models import AppResponse
from .plugins import PluginManager
from .sentry import capture_it

###############################################################################

logger = get_logger(__name__)


###############################################################################
# Request and API Utilities
###############################################################################


async def check_all_resources(app: FastAPI, settings: Settings) -> None:
    """
    Check the health of all resources using the plugin manager.
    If latest_status_check is too close to now, skip it -- avoid unnecessary checks.
    """
    right_now = datetime.now()
    if (
        hasattr(app.state, "latest_status_check")
        and (right_now - app.state.latest_status_check).total_seconds() < settings.refresh_interval
    ):
        return

    app.state.latest_status_check = right_now

    plugin_health = await PluginManager.get_instance().check_health()
    app.state.latest_status_info = {
        "db": plugin_health.get("database", {}),
        "sentry": plugin_health.get("sentry", {}),
        "auth": plugin_health.get("auth", {}),
    }


###############################################################################
##  Define all exception  handlers
###############################################################################
async def app_exception_handler(_: Request, exc: AppError) -> AppResponse[Any]:
    """Global exception handler for AppError."""
    ## report to Sentry
    await capture_it(f"Business logic issue: {exc.message}")

    return AppResponse(
        status="error",
        message=exc.message,
        status_code=exc.status_code,
        data=exc.errors if exc.errors else None,
    )


async def custom_validation_exception_handler(_: Request, exc: RequestValidationError) -> AppResponse[Any]:
    """
    Custom global exception handler for Pydantic's RequestValidationError.
    Groups the messages by field so that clients get one entry per input.
    """
    error_details: defaultdict[str, list[str]] = defaultdict(list)
    for error in exc.errors():
        field = ".".join(map(str, error["loc"])) if error["loc"] else "general"
        error_details[field].append(error["msg"])
    logger.error(f"Validation error: {dict(error_details)}")
    return AppResponse(
        status="validation error",
        message="Request validation failed",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        data=[{"field": k, "messages": v} for k, v in error_details.items()],
    )
