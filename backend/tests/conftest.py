import os

# must be set before janus_events.config is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["WEBHOOK_USERNAME"] = ""
os.environ["WEBHOOK_PASSWORD"] = ""

import pytest
import pytest_asyncio

from janus_events.database import build_engine, build_session_maker, init_db
from janus_events.services.sink import MemorySink, SqlAlchemySink

MEMORY_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def engine():
    engine = build_engine(MEMORY_URL)
    await init_db(engine, include_optional=True)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def engine_without_optional():
    engine = build_engine(MEMORY_URL)
    await init_db(engine, include_optional=False)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
def sql_sink(session_maker):
    return SqlAlchemySink(session_maker)


@pytest.fixture
def memory_sink():
    return MemorySink()
