from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from unittest.mock import patch

from fakes import FakeSessionGateway
import pytest
from pytest import FixtureRequest
import pytest_asyncio

# Import ALL models to ensure they are registered with SQLModel metadata
from bookshelf.core.auth.schemas import UserProfile  # noqa: F401
from bookshelf.core.config import Settings
from bookshelf.core.database import DatabaseManager, DBSession
from bookshelf.core.plugins import BasePlugin


@pytest.fixture(autouse=True)
def disable_sentry_for_non_sentry_tests(request: FixtureRequest) -> Generator[None, None, None]:
    """
    Auto-used fixture to disable Sentry during non-Sentry tests so nothing is
    ever sent from a test run.
    """
    if "sentry" not in request.module.__name__:
        with (
            patch("bookshelf.core.sentry.init") as mock_init,
            patch("bookshelf.core.sentry.capture_exception") as mock_capture_exception,
            patch("bookshelf.core.sentry.capture_message") as mock_capture_message,
            patch("bookshelf.core.sentry.is_initialized", return_value=False),
        ):
            mock_init.return_value = None
            mock_capture_exception.return_value = None
            mock_capture_message.return_value = None
            yield
    else:
        yield


@pytest.fixture(autouse=True)
def reset_plugin_singletons() -> Generator[None, None, None]:
    """Each test starts with fresh plugin singletons."""
    BasePlugin.clear_instances()
    yield
    BasePlugin.clear_instances()


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """
    Settings for tests: a file-backed SQLite database (so concurrent sessions
    really share it) and a dummy Supabase project.
    """
    return Settings(
        environment="development",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        supabase_url="https://test-project.supabase.co",
        supabase_anon_key="test-anon-key",
        sentry_dsn=None,
    )


@pytest_asyncio.fixture
async def db_manager(test_settings: Settings) -> AsyncGenerator[DatabaseManager, None]:
    """Initialize database manager with test settings for each test."""
    # Create a new instance for each test to avoid singleton issues
    manager = DatabaseManager()
    _ = await manager.setup(test_settings)
    await manager.init_db_models()

    yield manager

    _ = await manager.teardown()


@pytest_asyncio.fixture
async def db_session(db_manager: DatabaseManager) -> AsyncGenerator[DBSession, None]:
    """Create a test database session."""
    session = db_manager.create_session()
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture
def fake_gateway() -> FakeSessionGateway:
    return FakeSessionGateway()
