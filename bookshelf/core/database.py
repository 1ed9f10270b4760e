from abc import ABC
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, TypedDict, cast

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from .config import Settings
from .exceptions import DBError
from .logger import get_logger
from .plugins import BasePlugin

###############################################################################

logger = get_logger(__name__)

DBSession = AsyncSession


class EngineKwargs(TypedDict, total=False):
    echo: bool
    future: bool
    connect_args: dict[str, bool]
    pool_size: int
    max_overflow: int


###############################################################################
# Database Manager
###############################################################################


class DatabaseManager(BasePlugin):
    """
    Owns the async engine and session factory and hides them from client code.
    Works with any SQLAlchemy async driver (aiosqlite, asyncpg, ...).
    """

    def __init__(self) -> None:
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[DBSession] | None = None
        self.is_ready: bool = False

    def _make_engine(self, url: str, pool_size: int, max_overflow: int, echo: bool) -> AsyncEngine:
        engine_kwargs: EngineKwargs = {"echo": echo, "future": True}

        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs["pool_size"] = pool_size
            engine_kwargs["max_overflow"] = max_overflow

        return create_async_engine(url, **engine_kwargs)

    @property
    def dialect_name(self) -> str:
        """Name of the backing SQL dialect, e.g. 'sqlite' or 'postgresql'."""
        if self.engine is None:
            raise DBError("Database not initialized. Call setup first.")
        return self.engine.dialect.name

    def create_session(self) -> DBSession:
        """Create a new database session. Client code should use this instead of direct access."""
        if self.session_factory is None:
            raise DBError("Database not initialized. Call setup first.")
        return self.session_factory()

    # -----------------------------
    # Session management
    # -----------------------------
    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[DBSession, None]:
        """
        Get a managed database session with automatic cleanup.

        Example:
            async with db_manager.get_session() as session:
                result = await session.exec(select(UserProfile))
                profiles = result.all()
        """
        session = self.create_session()
        try:
            yield session
        finally:
            await session.close()

    @asynccontextmanager
    async def get_transaction(self) -> AsyncGenerator[DBSession, None]:
        """
        Get a transactional database session with automatic commit/rollback.

        Example:
            async with db_manager.get_transaction() as session:
                session.add(UserProfile(email="reader@example.com", username="reader"))
                # Auto-commits on success, auto-rollbacks on exception
        """
        session = self.create_session()
        try:
            async with session.begin():
                yield session
        except Exception as exp:
            msg = f"Transaction failed: {exp}"
            logger.error(msg)
            raise DBError(msg) from exp
        finally:
            await session.close()

    async def init_db_models(self, drop_all: bool = False) -> None:
        """Create all registered tables."""
        if self.engine is None:
            raise DBError("Database not initialized. Call setup first.")

        try:
            async with self.engine.begin() as conn:
                if drop_all:
                    logger.warning("Dropping all tables...")
                    await conn.run_sync(SQLModel.metadata.drop_all)

                logger.info("Creating all tables...")
                await conn.run_sync(SQLModel.metadata.create_all)
        except Exception as exp:
            msg = f"Failed to initialize database models: {exp}"
            logger.error(msg)
            raise DBError(msg) from exp

    # -----------------------------
    # Plugin interface implementation
    # -----------------------------
    async def setup(self, settings: Settings) -> bool:
        """Initialize the engine and sessionmaker from settings."""
        if not settings.database_url:
            logger.info("Database URL not configured, skipping database setup")
            self.is_ready = True
            return True

        try:
            self.engine = self._make_engine(
                settings.database_url,
                settings.database_pool_size,
                settings.database_max_overflow,
                settings.database_echo,
            )
            self.session_factory = async_sessionmaker(self.engine, class_=DBSession, expire_on_commit=False)
            logger.info("DB engine initialized", dialect=self.engine.dialect.name)
            self.is_ready = True
            return True
        except Exception as exp:
            self.is_ready = False
            logger.error(f"Failed to initialize database: {exp}")
            return False

    async def teardown(self) -> bool:
        """Dispose the engine to cleanup connections."""
        try:
            if self.engine:
                await self.engine.dispose()
                logger.info("DB engine disposed")
            self.engine = None
            self.session_factory = None
            self.is_ready = False
            return True
        except Exception as exp:
            logger.error(f"Failed to dispose database connections: {exp}")
            return False

    async def check_health(self) -> dict[str, Any]:
        """Check database connectivity."""
        if not self.is_ready:
            return {"is_ready": False, "schema": None, "response": False, "reason": "Plugin not ready"}
        if self.engine is None:
            return {"is_ready": True, "schema": None, "response": False, "reason": "Database not configured"}

        results: dict[str, Any] = {"is_ready": True, "schema": self.engine.dialect.name}
        try:
            async with self.engine.connect() as conn:
                row = await conn.execute(text("SELECT 1 as result"))
                results["response"] = bool(row.scalar_one())
        except Exception as exp:
            logger.exception(f"Health check failed for DB: {exp}")
            results["response"] = False
        return results


################################################################################
# Base Repository Class
################################################################################


class BaseRepository(ABC):
    """
    Base repository providing session handling on top of DatabaseManager.
    All repository classes should inherit from this to get standard functionality.
    """

    def __init__(self, db_manager: DatabaseManager | None = None) -> None:
        """
        Initialize repository with database manager.
        If db_manager is None, uses the singleton instance.
        """
        self.db_manager = db_manager or DatabaseManager.get_instance()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[DBSession, None]:
        """Managed session, closed on exit."""
        async with self.db_manager.get_session() as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[DBSession, None]:
        """Transactional session, committed on success and rolled back on error."""
        async with self.db_manager.get_transaction() as session:
            yield session

    def table_name(self, model_class: type[SQLModel]) -> str:
        """
        Get the table name from a SQLModel class.

        Example:
            >>> repo.table_name(UserProfile)
            'USER_PROFILE'
        """
        if not hasattr(model_class, "__tablename__"):
            raise ValueError(f"Model {model_class.__name__} does not have a __tablename__ attribute")
        return cast(str, model_class.__tablename__)
