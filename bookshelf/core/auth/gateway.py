"""
Request-scoped access to the identity provider (Supabase Auth).

Every method either returns plain data or raises one of the typed auth errors
with the provider's message, so callers never see SDK exceptions.
"""

from typing import Any, Protocol

from fastapi import Request
from starlette.responses import Response
from supabase import Client, create_client
from supabase.client import ClientOptions
from supabase_auth.errors import AuthError as SupabaseAuthError

from ..config import Settings, default_settings
from ..exceptions import ConfigurationError
from ..logger import get_logger
from .exceptions import (
    CodeExchangeError,
    DuplicateAccountError,
    IdentityFetchError,
    ProviderError,
)
from .models import Identity
from .storage import CookieStorage
from .utilities import mask_email

logger = get_logger(__name__)


class SessionGateway(Protocol):
    async def sign_up(
        self, email: str, password: str, username: str, email_redirect_to: str | None = None
    ) -> Identity: ...

    async def sign_in_with_password(self, email: str, password: str) -> Identity: ...

    async def sign_out(self) -> None: ...

    async def start_oauth(self, provider: str, redirect_to: str) -> str: ...

    async def exchange_code_for_session(self, code: str) -> Identity | None: ...

    async def get_current_user(self) -> Identity: ...

    async def request_password_reset(self, email: str, redirect_to: str) -> None: ...

    async def apply_password_reset(self, new_password: str) -> None: ...

    def apply_cookies(self, response: Response) -> None: ...


class SupabaseSessionGateway:
    """
    SessionGateway over a per-request Supabase client.

    The client runs the PKCE flow and persists both the code verifier and the
    session in ``storage``, so a session established here is visible to the
    next request through its cookies.
    """

    def __init__(self, supabase_url: str, supabase_key: str, storage: CookieStorage) -> None:
        self._storage = storage
        self._has_exchanged_code = False
        self._client: Client = create_client(
            supabase_url,
            supabase_key,
            options=ClientOptions(
                storage=storage,
                flow_type="pkce",
                persist_session=True,
                # one client per request, nothing would run the refresh timer
                auto_refresh_token=False,
            ),
        )

    async def sign_up(
        self, email: str, password: str, username: str, email_redirect_to: str | None = None
    ) -> Identity:
        options: dict[str, Any] = {"data": {"username": username}}
        if email_redirect_to:
            options["email_redirect_to"] = email_redirect_to

        try:
            response = self._client.auth.sign_up({"email": email, "password": password, "options": options})
        except SupabaseAuthError as e:
            logger.warning(f"Sign up rejected for {mask_email(email)}: {e.message}")
            raise ProviderError(e.message) from e

        user = response.user
        if user is None:
            raise ProviderError("Sign up returned no user")
        # an already registered email comes back as a user without identities
        if user.identities is not None and len(user.identities) == 0:
            raise DuplicateAccountError()
        return Identity.from_user(user)

    async def sign_in_with_password(self, email: str, password: str) -> Identity:
        try:
            response = self._client.auth.sign_in_with_password({"email": email, "password": password})
        except SupabaseAuthError as e:
            logger.warning(f"Sign in rejected for {mask_email(email)}: {e.message}")
            raise ProviderError(e.message) from e

        if response.user is None:
            raise ProviderError("Sign in returned no user")
        return Identity.from_user(response.user)

    async def sign_out(self) -> None:
        try:
            self._client.auth.sign_out()
        except SupabaseAuthError as e:
            raise ProviderError(e.message) from e

    async def start_oauth(self, provider: str, redirect_to: str) -> str:
        try:
            response = self._client.auth.sign_in_with_oauth(
                {"provider": provider, "options": {"redirect_to": redirect_to}}  # type: ignore[typeddict-item]
            )
        except SupabaseAuthError as e:
            raise ProviderError(e.message) from e

        if not response.url:
            raise ProviderError(f"No authorization URL returned for provider {provider}")
        return response.url

    async def exchange_code_for_session(self, code: str) -> Identity | None:
        try:
            response = self._client.auth.exchange_code_for_session({"auth_code": code})
        except SupabaseAuthError as e:
            raise CodeExchangeError(e.message) from e

        self._has_exchanged_code = True
        return Identity.from_user(response.user) if response.user else None

    async def get_current_user(self) -> Identity:
        try:
            response = self._client.auth.get_user()
        except SupabaseAuthError as e:
            raise IdentityFetchError(e.message) from e
        except ValueError as e:
            # stored session that does not parse as one
            logger.warning(f"Unreadable session in auth cookie: {e}")
            raise IdentityFetchError() from e

        if response is None or response.user is None:
            raise IdentityFetchError()
        return Identity.from_user(response.user)

    async def request_password_reset(self, email: str, redirect_to: str) -> None:
        try:
            self._client.auth.reset_password_for_email(email, {"redirect_to": redirect_to})
        except SupabaseAuthError as e:
            raise ProviderError(e.message) from e

    async def apply_password_reset(self, new_password: str) -> None:
        if not self._has_exchanged_code:
            raise ProviderError("Auth session missing!")

        try:
            self._client.auth.update_user({"password": new_password})
        except SupabaseAuthError as e:
            raise ProviderError(e.message) from e

    def apply_cookies(self, response: Response) -> None:
        self._storage.apply(response)


def get_session_gateway(request: Request) -> SessionGateway:
    """FastAPI dependency: a fresh gateway bound to the request's cookies."""
    settings: Settings = getattr(request.app.state, "settings", default_settings)
    if not settings.supabase_url or not settings.supabase_anon_key:
        raise ConfigurationError("Supabase URL and anonymous key must be configured.")

    storage = CookieStorage(
        request.cookies,
        secure=not settings.is_development,
        max_age=settings.session_cookie_max_age,
    )
    return SupabaseSessionGateway(settings.supabase_url, settings.supabase_anon_key, storage)
