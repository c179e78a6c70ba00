from __future__ import annotations

import pytest

from medsim_api.db.models import UserStats
from medsim_api.db.repositories.stats import UserStatsRepository
from medsim_api.domain.schemas.sessions import PerformanceStats
from medsim_api.services.persistence import InMemoryStatsStore, SqlAlchemyStatsStore

pytestmark = pytest.mark.asyncio


async def test_sqlalchemy_store_round_trips_counters(session_maker) -> None:
    store = SqlAlchemyStatsStore(session_maker)

    assert await store.load("u1") is None

    await store.persist("u1", PerformanceStats(total_cases=1, correct_diagnoses=1))
    await store.persist("u1", PerformanceStats(total_cases=2, correct_diagnoses=1, correct_triages=2))

    loaded = await store.load("u1")
    assert loaded == PerformanceStats(total_cases=2, correct_diagnoses=1, correct_triages=2)
    assert loaded.average_score == 75.0


async def test_repository_upsert_creates_single_row(session_maker) -> None:
    async with session_maker() as session:
        repo = UserStatsRepository(session)
        await repo.upsert(user_id="u9", total_cases=1, correct_diagnoses=0, correct_triages=1)
        await repo.upsert(user_id="u9", total_cases=3, correct_diagnoses=2, correct_triages=1)
        await session.commit()

    async with session_maker() as session:
        record = await session.get(UserStats, "u9")
        assert record is not None
        assert (record.total_cases, record.correct_diagnoses, record.correct_triages) == (3, 2, 1)
        assert record.created_at is not None


async def test_in_memory_store() -> None:
    store = InMemoryStatsStore()
    stats = PerformanceStats(total_cases=1)

    await store.persist("u1", stats)

    assert await store.load("u1") is stats
    assert await store.load("u2") is None
