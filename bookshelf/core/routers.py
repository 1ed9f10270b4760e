from fastapi import APIRouter, Request

from .logger import get_logger
from .models import AppResponseDict
from .utilities import check_all_resources

logger = get_logger(__name__)

sys_router = APIRouter(tags=["sys"])


###############################################################################
# Endpoints for sys router
###############################################################################
@sys_router.get("/health", response_model=None, tags=["public"])
async def check_health(request: Request) -> AppResponseDict:
    await check_all_resources(request.app, request.app.state.settings)

    latest_status_check = getattr(request.app.state, "latest_status_check", None)
    latest_status_info = getattr(request.app.state, "latest_status_info", {})

    return AppResponseDict(
        data={
            "latest_status_check": latest_status_check.isoformat() if latest_status_check else None,
            "db": latest_status_info.get("db", {}),
            "sentry": latest_status_info.get("sentry", {}),
            "auth": latest_status_info.get("auth", {}),
        },
    )
