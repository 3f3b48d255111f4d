"""
ScanAlert migrations run against DATABASE_URL from scanalert.config.

alembic.ini carries logging setup only. Both PostgreSQL (asyncpg) and SQLite
(aiosqlite) URLs work; SQLite gets batch mode so ALTERs are emulated by
table copies.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection, make_url
from sqlalchemy.ext.asyncio import create_async_engine

from scanalert.config import settings
from scanalert.database import Base
from scanalert.models import scan_record, student  # noqa: F401

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name)

DATABASE_URL = make_url(settings.database_url)


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=Base.metadata,
        compare_type=True,
        render_as_batch=DATABASE_URL.get_backend_name() == "sqlite",
        **kwargs,
    )


def emit_sql() -> None:
    """`alembic upgrade head --sql`: print DDL for a DBA to apply."""
    _configure(
        url=DATABASE_URL.render_as_string(hide_password=False),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _apply(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def apply_to_database() -> None:
    engine = create_async_engine(DATABASE_URL, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_apply)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    emit_sql()
else:
    asyncio.run(apply_to_database())
