"""Alembic async env — autogenerate against portal.domain models.

``legacy_documents`` is owned by the system that predates grouped submissions;
migrations here never create, alter or drop it.
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.ext.asyncio import create_async_engine

from portal.core.config import settings
from portal.db.base import Base

# Load all ORM models so Alembic can detect them
import portal.domain  # noqa: F401

EXTERNAL_TABLES = frozenset({"legacy_documents"})

config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def include_object(obj, name, type_, reflected, compare_to) -> bool:
    if type_ == "table":
        return name not in EXTERNAL_TABLES
    table = getattr(obj, "table", None)
    return table is None or table.name not in EXTERNAL_TABLES


def _options() -> dict:
    return {
        "target_metadata": target_metadata,
        "include_object": include_object,
        "render_as_batch": True,  # required for SQLite ALTER support
        "compare_type": True,
    }


def run_migrations_offline() -> None:
    context.configure(
        url=settings.database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(settings.database_url)
    async with engine.connect() as connection:
        await connection.run_sync(
            lambda sync_conn: context.configure(connection=sync_conn, **_options())
        )
        async with connection.begin():
            await connection.run_sync(lambda _: context.run_migrations())
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
