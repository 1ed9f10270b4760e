from collections.abc import Generator
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from fastapi import FastAPI, Request
import pytest
from starlette.responses import Response
from supabase_auth.errors import AuthApiError

from bookshelf.core.auth.exceptions import (
    CodeExchangeError,
    DuplicateAccountError,
    IdentityFetchError,
    ProviderError,
)
from bookshelf.core.auth.gateway import SupabaseSessionGateway, get_session_gateway
from bookshelf.core.auth.storage import CookieStorage
from bookshelf.core.config import Settings
from bookshelf.core.exceptions import ConfigurationError


def _user(email: str = "reader@example.com", identities: list[dict[str, str]] | None = None) -> SimpleNamespace:
    return SimpleNamespace(
        id="user-1",
        email=email,
        user_metadata={"username": "reader"},
        identities=[{"provider": "email"}] if identities is None else identities,
    )


def _api_error(message: str) -> AuthApiError:
    return AuthApiError(message, 400, None)


class TestSupabaseSessionGateway:
    """Test the Supabase gateway's normalization of SDK responses and errors."""

    @pytest.fixture
    def mock_client(self) -> Generator[MagicMock, None, None]:
        with patch("bookshelf.core.auth.gateway.create_client") as mock_create_client:
            client = MagicMock()
            mock_create_client.return_value = client
            yield client

    @pytest.fixture
    def gateway(self, mock_client: MagicMock) -> SupabaseSessionGateway:
        return SupabaseSessionGateway("https://test.supabase.co", "anon-key", CookieStorage({}))

    def test_client_uses_pkce_and_cookie_storage(self) -> None:
        storage = CookieStorage({})
        with patch("bookshelf.core.auth.gateway.create_client") as mock_create_client:
            _ = SupabaseSessionGateway("https://test.supabase.co", "anon-key", storage)

        args, kwargs = mock_create_client.call_args
        assert args == ("https://test.supabase.co", "anon-key")
        options = kwargs["options"]
        assert options.flow_type == "pkce"
        assert options.storage is storage
        assert options.persist_session is True
        assert options.auto_refresh_token is False

    @pytest.mark.asyncio
    async def test_sign_up_passes_username_and_redirect(
        self, gateway: SupabaseSessionGateway, mock_client: MagicMock
    ) -> None:
        mock_client.auth.sign_up.return_value = SimpleNamespace(user=_user())

        identity = await gateway.sign_up(
            "reader@example.com", "secret", "reader", email_redirect_to="https://app.example/auth/callback"
        )

        assert identity.email == "reader@example.com"
        credentials = mock_client.auth.sign_up.call_args.args[0]
        assert credentials["options"] == {
            "data": {"username": "reader"},
            "email_redirect_to": "https://app.example/auth/callback",
        }

    @pytest.mark.asyncio
    async def test_sign_up_without_identities_is_duplicate(
        self, gateway: SupabaseSessionGateway, mock_client: MagicMock
    ) -> None:
        mock_client.auth.sign_up.return_value = SimpleNamespace(user=_user(identities=[]))

        with pytest.raises(DuplicateAccountError) as exc_info:
            await gateway.sign_up("reader@example.com", "secret", "reader")

        assert exc_info.value.message == "User with this email already exists , Please try with another email"

    @pytest.mark.asyncio
    async def test_sign_up_provider_error_keeps_message(
        self, gateway: SupabaseSessionGateway, mock_client: MagicMock
    ) -> None:
        mock_client.auth.sign_up.side_effect = _api_error("Password should be at least 6 characters")

        with pytest.raises(ProviderError) as exc_info:
            await gateway.sign_up("reader@example.com", "123", "reader")

        assert exc_info.value.message == "Password should be at least 6 characters"

    @pytest.mark.asyncio
    async def test_sign_in_with_password(self, gateway: SupabaseSessionGateway, mock_client: MagicMock) -> None:
        mock_client.auth.sign_in_with_password.return_value = SimpleNamespace(user=_user())

        identity = await gateway.sign_in_with_password("reader@example.com", "secret")

        assert identity.id == "user-1"
        mock_client.auth.sign_in_with_password.assert_called_once_with(
            {"email": "reader@example.com", "password": "secret"}
        )

    @pytest.mark.asyncio
    async def test_sign_in_invalid_credentials(self, gateway: SupabaseSessionGateway, mock_client: MagicMock) -> None:
        mock_client.auth.sign_in_with_password.side_effect = _api_error("Invalid login credentials")

        with pytest.raises(ProviderError, match="Invalid login credentials"):
            await gateway.sign_in_with_password("reader@example.com", "wrong")

    @pytest.mark.asyncio
    async def test_sign_out_error_is_provider_error(
        self, gateway: SupabaseSessionGateway, mock_client: MagicMock
    ) -> None:
        mock_client.auth.sign_out.side_effect = _api_error("network down")

        with pytest.raises(ProviderError):
            await gateway.sign_out()

    @pytest.mark.asyncio
    async def test_start_oauth_returns_url(self, gateway: SupabaseSessionGateway, mock_client: MagicMock) -> None:
        mock_client.auth.sign_in_with_oauth.return_value = SimpleNamespace(
            provider="github", url="https://github.com/login/oauth/authorize?x=1"
        )

        url = await gateway.start_oauth("github", "https://app.example/auth/callback")

        assert url == "https://github.com/login/oauth/authorize?x=1"
        mock_client.auth.sign_in_with_oauth.assert_called_once_with(
            {"provider": "github", "options": {"redirect_to": "https://app.example/auth/callback"}}
        )

    @pytest.mark.asyncio
    async def test_start_oauth_without_url_fails(self, gateway: SupabaseSessionGateway, mock_client: MagicMock) -> None:
        mock_client.auth.sign_in_with_oauth.return_value = SimpleNamespace(provider="github", url=None)

        with pytest.raises(ProviderError):
            await gateway.start_oauth("github", "https://app.example/auth/callback")

    @pytest.mark.asyncio
    async def test_exchange_code(self, gateway: SupabaseSessionGateway, mock_client: MagicMock) -> None:
        mock_client.auth.exchange_code_for_session.return_value = SimpleNamespace(user=_user(), session=object())

        identity = await gateway.exchange_code_for_session("abc")

        assert identity is not None
        mock_client.auth.exchange_code_for_session.assert_called_once_with({"auth_code": "abc"})

    @pytest.mark.asyncio
    async def test_exchange_reused_code_fails(self, gateway: SupabaseSessionGateway, mock_client: MagicMock) -> None:
        mock_client.auth.exchange_code_for_session.side_effect = _api_error("invalid flow state")

        with pytest.raises(CodeExchangeError, match="invalid flow state"):
            await gateway.exchange_code_for_session("abc")

    @pytest.mark.asyncio
    async def test_get_current_user_with_unparsable_session(
        self, gateway: SupabaseSessionGateway, mock_client: MagicMock
    ) -> None:
        mock_client.auth.get_user.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")

        with pytest.raises(IdentityFetchError):
            await gateway.get_current_user()

    @pytest.mark.asyncio
    async def test_get_current_user_without_session(
        self, gateway: SupabaseSessionGateway, mock_client: MagicMock
    ) -> None:
        mock_client.auth.get_user.return_value = None

        with pytest.raises(IdentityFetchError):
            await gateway.get_current_user()

    @pytest.mark.asyncio
    async def test_get_current_user(self, gateway: SupabaseSessionGateway, mock_client: MagicMock) -> None:
        mock_client.auth.get_user.return_value = SimpleNamespace(user=_user())

        identity = await gateway.get_current_user()

        assert identity.email == "reader@example.com"

    @pytest.mark.asyncio
    async def test_request_password_reset(self, gateway: SupabaseSessionGateway, mock_client: MagicMock) -> None:
        await gateway.request_password_reset("reader@example.com", "https://app.example/reset-password")

        mock_client.auth.reset_password_for_email.assert_called_once_with(
            "reader@example.com", {"redirect_to": "https://app.example/reset-password"}
        )

    @pytest.mark.asyncio
    async def test_password_reset_requires_code_exchange(
        self, gateway: SupabaseSessionGateway, mock_client: MagicMock
    ) -> None:
        with pytest.raises(ProviderError):
            await gateway.apply_password_reset("new-secret")
        mock_client.auth.update_user.assert_not_called()

    @pytest.mark.asyncio
    async def test_password_reset_after_code_exchange(
        self, gateway: SupabaseSessionGateway, mock_client: MagicMock
    ) -> None:
        mock_client.auth.exchange_code_for_session.return_value = SimpleNamespace(user=_user(), session=object())
        _ = await gateway.exchange_code_for_session("abc")

        await gateway.apply_password_reset("new-secret")

        mock_client.auth.update_user.assert_called_once_with({"password": "new-secret"})

    def test_apply_cookies_copies_storage_writes(self) -> None:
        storage = CookieStorage({}, secure=False)
        with patch("bookshelf.core.auth.gateway.create_client"):
            gateway = SupabaseSessionGateway("https://test.supabase.co", "anon-key", storage)
        storage.set_item("sb-auth-token", "session")
        response = Response()

        gateway.apply_cookies(response)

        assert response.headers["set-cookie"].startswith("sb-auth-token=")


class TestGetSessionGateway:
    """Test the request-scoped gateway dependency."""

    def _request(self, settings: Settings, cookies: str = "") -> Request:
        app = FastAPI()
        app.state.settings = settings
        headers = [(b"cookie", cookies.encode())] if cookies else []
        return Request({"type": "http", "app": app, "headers": headers, "method": "GET", "path": "/"})

    def test_missing_supabase_settings_raise_configuration_error(self) -> None:
        request = self._request(Settings(supabase_url=None, supabase_anon_key=None))

        with pytest.raises(ConfigurationError):
            get_session_gateway(request)

    def test_builds_gateway_from_request_cookies(self, test_settings: Settings) -> None:
        request = self._request(test_settings, cookies="sb-auth-token=session-value")

        with patch("bookshelf.core.auth.gateway.create_client") as mock_create_client:
            gateway = get_session_gateway(request)

        assert isinstance(gateway, SupabaseSessionGateway)
        storage = mock_create_client.call_args.kwargs["options"].storage
        assert storage.get_item("sb-auth-token") == "session-value"
        # development settings: cookies are not marked Secure
        assert storage.secure is False
