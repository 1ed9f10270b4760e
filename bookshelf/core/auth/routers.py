from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from ..logger import get_logger
from .gateway import SessionGateway, get_session_gateway
from .models import AuthResult, RedirectTo
from .services import AuthService
from .utilities import request_origin, url_origin

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def get_auth_service() -> AuthService:
    """Dependency to get the AuthService singleton."""
    return AuthService.get_instance()


def _result_response(result: AuthResult, gateway: SessionGateway) -> JSONResponse:
    response = JSONResponse(result.model_dump(mode="json"))
    gateway.apply_cookies(response)
    return response


def _redirect_response(target: RedirectTo, gateway: SessionGateway) -> RedirectResponse:
    response = RedirectResponse(target.location, status_code=target.status_code)
    gateway.apply_cookies(response)
    return response


###############################################################################
# Form actions
###############################################################################
@router.post("/signup", response_model=AuthResult, tags=["public"])
async def sign_up(
    request: Request,
    username: str | None = Form(default=None),
    email: str | None = Form(default=None),
    password: str | None = Form(default=None),
    gateway: SessionGateway = Depends(get_session_gateway),
    auth_service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Register a new account. The confirmation email links back to the callback."""
    result = await auth_service.sign_up(gateway, username, email, password, origin=request_origin(request))
    return _result_response(result, gateway)


@router.post("/signin", response_model=AuthResult, tags=["public"])
async def sign_in(
    email: str | None = Form(default=None),
    password: str | None = Form(default=None),
    gateway: SessionGateway = Depends(get_session_gateway),
    auth_service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    result = await auth_service.sign_in(gateway, email, password)
    return _result_response(result, gateway)


@router.post("/signout", response_model=None, tags=["public"])
async def sign_out(
    gateway: SessionGateway = Depends(get_session_gateway),
    auth_service: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    target = await auth_service.sign_out(gateway)
    return _redirect_response(target, gateway)


@router.post("/oauth", response_model=None, tags=["public"])
async def sign_in_with_oauth(
    request: Request,
    provider: str | None = Form(default=None),
    gateway: SessionGateway = Depends(get_session_gateway),
    auth_service: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    """Start an OAuth sign in; the browser is sent to the provider's consent page."""
    target = await auth_service.start_oauth(gateway, provider, origin=request_origin(request))
    return _redirect_response(target, gateway)


@router.post("/forgot-password", response_model=AuthResult, tags=["public"])
async def forgot_password(
    request: Request,
    email: str | None = Form(default=None),
    gateway: SessionGateway = Depends(get_session_gateway),
    auth_service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    result = await auth_service.forgot_password(gateway, email, origin=request_origin(request))
    return _result_response(result, gateway)


@router.post("/reset-password", response_model=AuthResult, tags=["public"])
async def reset_password(
    password: str | None = Form(default=None),
    code: str | None = Form(default=None),
    gateway: SessionGateway = Depends(get_session_gateway),
    auth_service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Set a new password using the code from the reset email."""
    result = await auth_service.reset_password(gateway, password, code)
    return _result_response(result, gateway)


###############################################################################
# Session endpoints
###############################################################################
@router.get("/user", response_model=AuthResult)
async def get_user_session(
    gateway: SessionGateway = Depends(get_session_gateway),
    auth_service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    result = await auth_service.get_user_session(gateway)
    return _result_response(result, gateway)


@router.get("/callback", response_model=None, include_in_schema=False)
async def on_callback(
    request: Request,
    code: str | None = Query(default=None),
    next_path: str | None = Query(default=None, alias="next"),
    gateway: SessionGateway = Depends(get_session_gateway),
    auth_service: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    """
    Landing point for OAuth providers and email confirmation links.

    Always answers with a redirect: to ``next`` on success, otherwise to one of
    the error pages.
    """
    target = await auth_service.complete_callback(
        gateway,
        code=code,
        next_path=next_path,
        origin=url_origin(request),
        forwarded_host=request.headers.get("x-forwarded-host"),
    )
    return _redirect_response(target, gateway)
