from typing import Any

from ..config import Settings, default_settings
from ..logger import get_logger
from ..plugins import BasePlugin
from ..sentry import capture_it
from .exceptions import (
    AuthError,
    CodeExchangeError,
    IdentityFetchError,
    ProfileWriteError,
    ProviderError,
    UnexpectedError,
    ValidationError,
)
from .gateway import SessionGateway
from .models import AuthResult, CallbackStep, Identity, RedirectTo
from .reconciler import ProfileReconciler
from .redirects import resolve_redirect
from .utilities import mask_email, normalize_email

logger = get_logger(__name__)


def _require(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required")
    return value


def _require_email(value: str | None) -> str:
    email = normalize_email(_require(value, "email"))
    if email is None:
        raise ValidationError("email is invalid")
    return email


class AuthService(BasePlugin):
    """
    Orchestrates the auth actions: validate input, call the session gateway,
    reconcile the local profile and shape the outcome as an AuthResult or a
    RedirectTo.

    Gateways are request scoped and passed in per call; the service itself only
    holds configuration and the profile reconciler.
    """

    def __init__(self, reconciler: ProfileReconciler | None = None) -> None:
        self._settings: Settings | None = None
        self._reconciler = reconciler
        self._is_setup: bool = False

    @property
    def settings(self) -> Settings:
        return self._settings or default_settings

    @property
    def reconciler(self) -> ProfileReconciler:
        if self._reconciler is None:
            self._reconciler = ProfileReconciler()
        return self._reconciler

    # -----------------------------
    # Plugin interface implementation
    # -----------------------------
    async def setup(self, settings: Settings) -> bool:
        self._settings = settings
        if not settings.supabase_url or not settings.supabase_anon_key:
            logger.warning("Supabase is not configured, auth endpoints will answer 503")
        self._is_setup = True
        logger.info("AuthService setup completed successfully")
        return True

    async def teardown(self) -> bool:
        self._is_setup = False
        logger.info("AuthService teardown completed successfully")
        return True

    async def check_health(self) -> dict[str, Any]:
        if not self._is_setup:
            return {"is_ready": False, "supabase_configured": False}
        return {
            "is_ready": True,
            "supabase_configured": bool(self.settings.supabase_url and self.settings.supabase_anon_key),
            "oauth_providers": list(self.settings.oauth_providers),
        }

    # -----------------------------
    # Helpers
    # -----------------------------
    def _failure(self, action: str, error: AuthError) -> AuthResult:
        logger.warning(f"{action} failed: {error.message}", kind=error.kind.value)
        return AuthResult.failure(error.kind, error.message)

    async def _reconcile(self, identity: Identity) -> None:
        # a missing profile never blocks authentication
        try:
            outcome = await self.reconciler.ensure_profile(identity)
            if outcome.created:
                logger.info(f"Created profile for {mask_email(outcome.email)}")
        except ProfileWriteError as e:
            logger.error(f"Profile reconciliation failed: {e.message}")

    # -----------------------------
    # Single-shot actions
    # -----------------------------
    async def sign_up(
        self,
        gateway: SessionGateway,
        username: str | None,
        email: str | None,
        password: str | None,
        origin: str,
    ) -> AuthResult:
        try:
            username = _require(username, "username").strip()
            email = _require_email(email)
            password = _require(password, "password")
            identity = await gateway.sign_up(
                email, password, username, email_redirect_to=f"{origin}{self.settings.callback_path}"
            )
        except AuthError as e:
            return self._failure("Sign up", e)

        logger.info(f"Signed up {mask_email(email)}")
        return AuthResult.success(identity)

    async def sign_in(self, gateway: SessionGateway, email: str | None, password: str | None) -> AuthResult:
        try:
            email = _require_email(email)
            password = _require(password, "password")
            identity = await gateway.sign_in_with_password(email, password)
        except AuthError as e:
            return self._failure("Sign in", e)

        await self._reconcile(identity)
        logger.info(f"Signed in {mask_email(email)}")
        return AuthResult.success(identity)

    async def sign_out(self, gateway: SessionGateway) -> RedirectTo:
        try:
            await gateway.sign_out()
        except ProviderError as e:
            logger.error(f"Sign out failed: {e.message}")
            return RedirectTo(location=self.settings.error_path)
        return RedirectTo(location=self.settings.login_path)

    async def start_oauth(self, gateway: SessionGateway, provider: str | None, origin: str) -> RedirectTo:
        try:
            provider = _require(provider, "provider").strip().lower()
            if provider not in self.settings.oauth_providers:
                raise ValidationError(f"Unsupported OAuth provider: {provider}")
            url = await gateway.start_oauth(provider, f"{origin}{self.settings.callback_path}")
        except AuthError as e:
            self._failure("OAuth sign in", e)
            return RedirectTo(location=self.settings.error_path)

        logger.debug(f"Redirecting to {provider} for OAuth sign in")
        return RedirectTo(location=url)

    async def forgot_password(self, gateway: SessionGateway, email: str | None, origin: str) -> AuthResult:
        try:
            email = _require_email(email)
            await gateway.request_password_reset(email, f"{origin}{self.settings.reset_password_path}")
        except AuthError as e:
            return self._failure("Forgot password", e)

        logger.info(f"Password reset requested for {mask_email(email)}")
        return AuthResult.success()

    async def reset_password(self, gateway: SessionGateway, password: str | None, code: str | None) -> AuthResult:
        try:
            password = _require(password, "password")
            code = _require(code, "code").strip()
            _ = await gateway.exchange_code_for_session(code)
            await gateway.apply_password_reset(password)
        except AuthError as e:
            return self._failure("Reset password", e)

        # the recovery session only exists to authorize the update
        try:
            await gateway.sign_out()
        except ProviderError as e:
            logger.warning(f"Could not end recovery session after password reset: {e.message}")

        logger.info("Password reset completed")
        return AuthResult.success()

    async def get_user_session(self, gateway: SessionGateway) -> AuthResult:
        try:
            identity = await gateway.get_current_user()
        except IdentityFetchError as e:
            return AuthResult.failure(e.kind, e.message)
        return AuthResult.success(identity)

    # -----------------------------
    # Callback flow
    # -----------------------------
    async def complete_callback(
        self,
        gateway: SessionGateway,
        code: str | None,
        next_path: str | None,
        origin: str,
        forwarded_host: str | None,
    ) -> RedirectTo:
        """
        Finish an OAuth or email-confirmation round trip.

        Exchanges the one-time code for a session, makes sure the user has a
        profile and sends the browser to ``next_path``. Every failure ends on an
        error page; nothing raised here reaches the caller.
        """
        step = CallbackStep.START
        try:
            if not code:
                logger.error("No code in callback URL")
                return self._callback_redirect(origin, self.settings.auth_code_error_path)
            step = CallbackStep.HAVE_CODE

            step = CallbackStep.EXCHANGE_CODE
            try:
                _ = await gateway.exchange_code_for_session(code)
            except CodeExchangeError as e:
                logger.error(f"Session exchange error: {e.message}")
                return self._callback_redirect(origin, self.settings.error_path)

            step = CallbackStep.FETCH_IDENTITY
            try:
                identity = await gateway.get_current_user()
            except IdentityFetchError as e:
                logger.error(f"Could not fetch user: {e.message}")
                return self._callback_redirect(origin, self.settings.error_path)

            step = CallbackStep.RECONCILE_PROFILE
            await self._reconcile(identity)

            step = CallbackStep.COMPUTE_REDIRECT
            location = resolve_redirect(origin, forwarded_host, next_path, self.settings.is_development)

            step = CallbackStep.DONE
            return RedirectTo(location=location, status_code=307)
        except Exception as e:
            error = UnexpectedError(f"Unexpected error in auth callback at step {step.value}: {e}")
            logger.exception(error.message, kind=error.kind.value)
            await capture_it(e)
            return self._callback_redirect(origin, self.settings.error_path)

    def _callback_redirect(self, origin: str, path: str) -> RedirectTo:
        return RedirectTo(location=f"{origin.rstrip('/')}{path}", status_code=307)
