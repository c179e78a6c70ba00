from __future__ import annotations

# ruff: noqa: E402
import os
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

os.environ.setdefault("MEDSIM_DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("MEDSIM_SKIP_MIGRATIONS", "1")
os.environ.setdefault("MEDSIM_PERSIST_STATS", "false")

from medsim_api.app import create_app
from medsim_api.config.settings import Settings, get_settings
from medsim_api.db import Base
from medsim_api.services.inference import SchedulerConfig
from medsim_api.services.persistence import InMemoryStatsStore
from tests.utils import RecordingSleep, ScriptedInferenceClient, always_failing

get_settings.cache_clear()


@pytest.fixture()
def database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'medsim-test.db'}"


@pytest_asyncio.fixture()
async def engine(database_url: str) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(database_url, connect_args={"check_same_thread": False})
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_maker(engine: AsyncEngine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture()
def settings(database_url: str) -> Settings:
    return Settings(
        database_url=database_url,
        environment="test",
        log_level="INFO",
        persist_stats=False,
        gemini_api_key=None,
        inference_batch_wait_seconds=0.0,
        inference_initial_delay_seconds=0.0,
    )


@pytest.fixture()
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def failing_client() -> ScriptedInferenceClient:
    return ScriptedInferenceClient(always_failing)


@pytest.fixture()
def scheduler_config() -> SchedulerConfig:
    return SchedulerConfig(batch_size=10, batch_wait=0.0, max_retries=3, initial_delay=1.0)


@pytest.fixture()
def app(settings: Settings, failing_client: ScriptedInferenceClient):
    return create_app(
        settings,
        inference_client=failing_client,
        stats_store=InMemoryStatsStore(),
    )


@pytest_asyncio.fixture()
async def client(app) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with (
        LifespanManager(app),
        AsyncClient(transport=transport, base_url="http://test") as async_client,
    ):
        yield async_client
