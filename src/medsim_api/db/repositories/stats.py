from __future__ import annotations

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from medsim_api.db.models import UserStats


class UserStatsRepository:
    """Data access helper for per-user performance counters."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, user_id: str) -> UserStats | None:
        stmt: Select[tuple[UserStats]] = select(UserStats).where(UserStats.user_id == user_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(
        self,
        *,
        user_id: str,
        total_cases: int,
        correct_diagnoses: int,
        correct_triages: int,
    ) -> UserStats:
        entity = await self.get(user_id)
        if entity is None:
            entity = UserStats(user_id=user_id)
            self._session.add(entity)
        entity.total_cases = total_cases
        entity.correct_diagnoses = correct_diagnoses
        entity.correct_triages = correct_triages
        await self._session.flush()
        return entity


__all__ = ["UserStatsRepository"]
