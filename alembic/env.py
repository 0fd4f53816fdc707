"""
Alembic Environment
====================
Configured for async SQLAlchemy (asyncpg on Postgres, aiosqlite locally).

The database URL comes from core.database.resolve_database_url():
  - DATABASE_URL env var  →  PostgreSQL
  - fallback              →  SQLite in data/ (DB_NAME, default baseline_monitor.db)

Run migrations:
  alembic revision --autogenerate -m "describe change"
  alembic upgrade head
"""

import asyncio
import os
import sys
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

# ── Make src/ modules importable ─────────────────────────────────────────────
# Alembic runs from the project root, so we add src/ to sys.path so that
# "from core.models import Base" resolves correctly.
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from core.database import resolve_database_url  # noqa: E402  (must come after sys.path tweak)
from core.models import Base  # noqa: E402

# ── Alembic config ────────────────────────────────────────────────────────────
config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


# ── Offline mode (generate SQL without connecting) ────────────────────────────
def run_migrations_offline() -> None:
    context.configure(
        url=resolve_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


# ── Online mode (connect and run) ─────────────────────────────────────────────
def do_run_migrations(connection):
    context.configure(connection=connection, target_metadata=target_metadata, render_as_batch=True)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    cfg_section = config.get_section(config.config_ini_section, {})
    cfg_section["sqlalchemy.url"] = resolve_database_url()

    connectable = async_engine_from_config(
        cfg_section,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


# ── Entry point ───────────────────────────────────────────────────────────────
if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
