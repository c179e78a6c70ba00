"""Durable storage of per-user performance counters."""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from medsim_api.db.repositories.stats import UserStatsRepository
from medsim_api.domain.schemas.sessions import PerformanceStats

logger = logging.getLogger(__name__)


class StatsStore(Protocol):
    async def load(self, user_id: str) -> PerformanceStats | None: ...

    async def persist(self, user_id: str, stats: PerformanceStats) -> None: ...


class InMemoryStatsStore:
    """Process-local store used when no database is configured."""

    def __init__(self) -> None:
        self._stats: dict[str, PerformanceStats] = {}

    async def load(self, user_id: str) -> PerformanceStats | None:
        return self._stats.get(user_id)

    async def persist(self, user_id: str, stats: PerformanceStats) -> None:
        self._stats[user_id] = stats


class SqlAlchemyStatsStore:
    """Stores counters in the ``user_stats`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def load(self, user_id: str) -> PerformanceStats | None:
        async with self._session_factory() as session:
            record = await UserStatsRepository(session).get(user_id)
            if record is None:
                return None
            return PerformanceStats(
                total_cases=record.total_cases,
                correct_diagnoses=record.correct_diagnoses,
                correct_triages=record.correct_triages,
            )

    async def persist(self, user_id: str, stats: PerformanceStats) -> None:
        async with self._session_factory() as session:
            await UserStatsRepository(session).upsert(
                user_id=user_id,
                total_cases=stats.total_cases,
                correct_diagnoses=stats.correct_diagnoses,
                correct_triages=stats.correct_triages,
            )
            await session.commit()
        logger.debug(
            "Persisted user stats",
            extra={"user_id": user_id, "total_cases": stats.total_cases},
        )


__all__ = ["InMemoryStatsStore", "SqlAlchemyStatsStore", "StatsStore"]
