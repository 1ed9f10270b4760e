from __future__ import annotations

import asyncio
from collections.abc import Iterable
from logging.config import fileConfig
import re
from typing import Any

from alembic import context
from alembic.runtime.migration import MigrationContext
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config
from sqlmodel import SQLModel

# Import all models so Alembic can detect them
import bookshelf.core.auth.schemas  # noqa: F401
from bookshelf.core.config import default_settings

# Alembic Config object
config = context.config

# Logging configuration from alembic.ini
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Fall back to the application's DATABASE_URL when alembic.ini has none
if not config.get_main_option("sqlalchemy.url") and default_settings.database_url:
    config.set_main_option("sqlalchemy.url", default_settings.database_url)

# Target metadata for 'autogenerate'
target_metadata = SQLModel.metadata


# --------------------- Post-process migration scripts -----------------------
def process_revision_directives(
    context: MigrationContext,
    revision: str | Iterable[str | None] | Iterable[str],
    directives: list[Any],
) -> None:
    """Replace sqlmodel's AutoString with plain sa.String in generated scripts."""
    if not directives:
        return

    script = directives[0]
    doc: str = getattr(script, "doc", "")
    script.doc = re.sub(r"sqlmodel\.sql\.sqltypes\.AutoString", "sa.String", doc)


# --------------------- Migration runners ------------------------------------
def run_migrations_offline() -> None:
    """Run migrations in offline mode (no DB connection)."""
    url = config.get_main_option("sqlalchemy.url")
    if url is None:
        raise ValueError("sqlalchemy.url not found in configuration")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        process_revision_directives=process_revision_directives,
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_with_connection(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        # sqlite needs batch mode to alter tables
        render_as_batch=connection.dialect.name == "sqlite",
        process_revision_directives=process_revision_directives,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Run migrations in online mode over the application's async driver."""
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section) or {},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(_run_with_connection)

    await connectable.dispose()


# --------------------- Entrypoint -------------------------------------------

if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
