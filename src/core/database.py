"""
Database Setup
==============
Supports two backends:

  • PostgreSQL (production / team): set DATABASE_URL env var.
    Hosting providers often emit the legacy "postgres://" scheme; we rewrite
    it to "postgresql+asyncpg://" automatically.

  • SQLite (local development): used when DATABASE_URL is absent.
    No extra setup needed; the file lives in data/baseline_monitor.db.
"""

import os
import logging

from dotenv import load_dotenv
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker

from core.models import Base

logger = logging.getLogger("baseline_monitor")

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
DATA_DIR = os.path.join(PROJECT_ROOT, "data")

load_dotenv(dotenv_path=os.path.join(PROJECT_ROOT, ".env"))


# ── Resolve connection URL ─────────────────────────────────────────────────────

def resolve_database_url() -> str:
    raw = os.environ.get("DATABASE_URL", "")
    if raw:
        if raw.startswith("postgres://"):
            raw = raw.replace("postgres://", "postgresql+asyncpg://", 1)
        elif raw.startswith("postgresql://") and "+asyncpg" not in raw:
            raw = raw.replace("postgresql://", "postgresql+asyncpg://", 1)
        return raw

    db_name = os.environ.get("DB_NAME", "baseline_monitor.db")
    return f"sqlite+aiosqlite:///{os.path.join(DATA_DIR, db_name)}"


DB_URL = resolve_database_url()


# ── Engine & Session Factory ───────────────────────────────────────────────────

def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(url: str) -> AsyncEngine:
    engine_kwargs: dict = {"echo": False}

    if url.startswith("postgresql"):
        engine_kwargs.update({
            "pool_size": 5,
            "max_overflow": 10,
            "pool_pre_ping": True,   # detect stale connections before handing them out
        })

    engine = create_async_engine(url, **engine_kwargs)
    if url.startswith("sqlite"):
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def make_session_factory(engine: AsyncEngine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


engine = make_engine(DB_URL)
AsyncSessionLocal = make_session_factory(engine)


# ── DB Initialisation ──────────────────────────────────────────────────────────

async def init_db(target: AsyncEngine = None):
    """
    Create all tables (safe no-op if they already exist).

    For SQLite only: ensure the database file's directory exists.
    For PostgreSQL: use Alembic for any subsequent schema migrations.
    """
    target = target or engine
    if target.url.get_backend_name() == "sqlite":
        db_path = target.url.database
        if db_path and db_path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
        logger.info(f"🗄️  Database backend: SQLite → {db_path}")
    else:
        logger.info("🐘 Database backend: PostgreSQL (DATABASE_URL detected)")

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("✅ Database tables verified / created.")
