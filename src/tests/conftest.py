import os
import sys

import httpx
import pytest
import pytest_asyncio

# Make src/ importable when pytest is run from anywhere
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import SettingsConfig  # noqa: E402
from core.database import init_db, make_engine, make_session_factory  # noqa: E402


@pytest_asyncio.fixture
async def engine(tmp_path):
    db_engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'test_monitor.db'}")
    await init_db(db_engine)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def settings():
    return SettingsConfig.model_validate({
        "name": "monitor-tests",
        "settings": {
            "baseline": {"required_successful_probes": 2},
            "run": {"timeout_seconds": 1},
            "output": {"format": "console", "save_results": False},
        },
    })


@pytest.fixture
def make_client():
    """Builds an AsyncClient whose requests are answered by `handler`."""
    def _make(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make
