"""Per-user case lifecycle: Idle -> Generating -> CaseActive -> Evaluating -> Idle."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from medsim_api.core.errors import SessionStateError
from medsim_api.domain.enums import Difficulty, UserLevel
from medsim_api.domain.schemas.cases import ClinicalCase
from medsim_api.domain.schemas.sessions import (
    CaseActive,
    Evaluating,
    EvaluationOutcome,
    Generating,
    Idle,
    PerformanceStats,
    SessionState,
    SessionSummary,
)
from medsim_api.services.cases.pipeline import CasePipeline
from medsim_api.services.persistence import StatsStore

logger = logging.getLogger(__name__)

NO_ACTIVE_CASE = "No active case. Start one with /practice first."


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(slots=True)
class CaseSession:
    user_id: str
    level: UserLevel = UserLevel.STUDENT
    state: SessionState = field(default_factory=Idle)
    stats: PerformanceStats = field(default_factory=PerformanceStats)
    stats_loaded: bool = True

    @property
    def active_case(self) -> ClinicalCase | None:
        if isinstance(self.state, (CaseActive, Evaluating)):
            return self.state.case
        return None

    @property
    def case_started_at(self) -> datetime | None:
        if isinstance(self.state, (CaseActive, Evaluating)):
            return self.state.started_at
        return None

    def summary(self) -> SessionSummary:
        case = self.active_case
        return SessionSummary(
            user_id=self.user_id,
            level=self.level,
            state=_state_name(self.state),
            case_id=case.id if case else None,
            case_started_at=self.case_started_at,
            stats=self.stats,
        )


class CaseSessionManager:
    """Owns every user's session and serialises its transitions.

    State checks and the transitions that follow them happen without an
    ``await`` in between, so the event loop keeps them atomic per session.
    A pipeline result that arrives after the user cancelled is dropped.
    """

    def __init__(
        self,
        *,
        pipeline: CasePipeline,
        stats_store: StatsStore | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._pipeline = pipeline
        self._stats_store = stats_store
        self._clock = clock
        self._sessions: dict[str, CaseSession] = {}
        self._loading: dict[str, asyncio.Task[CaseSession]] = {}

    async def session(self, user_id: str) -> CaseSession:
        """Return the user's session, creating it (and loading stats) on first use."""
        existing = self._sessions.get(user_id)
        if existing is not None:
            return existing
        task = self._loading.get(user_id)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._create_session(user_id))
            self._loading[user_id] = task
        return await asyncio.shield(task)

    async def request_case(
        self, user_id: str, difficulty: Difficulty | None = None
    ) -> CaseActive | None:
        """Start a new case. Returns ``None`` if the session was cancelled meanwhile."""
        session = await self.session(user_id)
        if not isinstance(session.state, Idle):
            raise SessionStateError(_busy_message(session.state))

        tier = difficulty or session.level.default_difficulty
        pending = Generating(difficulty=tier)
        session.state = pending
        try:
            generated = await self._pipeline.generate_case(tier)
        except BaseException:
            if session.state is pending:
                session.state = Idle()
            raise

        if session.state is not pending:
            logger.info(
                "Discarding generated case for a session that moved on",
                extra={"user_id": user_id, "case_id": generated.case.id},
            )
            return None

        active = CaseActive(case=generated.case, started_at=self._clock(), source=generated.source)
        session.state = active
        logger.info(
            "Case started",
            extra={
                "user_id": user_id,
                "case_id": generated.case.id,
                "difficulty": tier.value,
                "source": generated.source.value,
            },
        )
        return active

    async def cancel(self, user_id: str) -> ClinicalCase | None:
        """Drop the active or pending case without touching statistics."""
        session = await self.session(user_id)
        state = session.state
        if isinstance(state, Idle):
            raise SessionStateError(NO_ACTIVE_CASE)
        session.state = Idle()
        logger.info("Case cancelled", extra={"user_id": user_id, "state": _state_name(state)})
        return state.case if isinstance(state, (CaseActive, Evaluating)) else None

    async def submit(self, user_id: str, response: str) -> EvaluationOutcome | None:
        """Evaluate a diagnostic response and close the case.

        Returns ``None`` when the session was cancelled while the evaluation
        was in flight; the late result is ignored.
        """
        session = await self.session(user_id)
        state = session.state
        if not isinstance(state, CaseActive):
            raise SessionStateError(
                NO_ACTIVE_CASE if isinstance(state, Idle) else _busy_message(state)
            )

        evaluating = Evaluating(case=state.case, started_at=state.started_at)
        session.state = evaluating
        level = session.level
        try:
            evaluation, education = await asyncio.gather(
                self._pipeline.evaluate_response(state.case, response, level),
                self._pipeline.educational_content(state.case, level),
            )
        except BaseException:
            if session.state is evaluating:
                session.state = state
            raise

        if session.state is not evaluating:
            logger.info(
                "Discarding evaluation for a session that moved on",
                extra={"user_id": user_id, "case_id": state.case.id},
            )
            return None

        session.stats = session.stats.record(
            correct_diagnosis=evaluation.correct_diagnosis,
            correct_triage=evaluation.correct_triage,
        )
        session.state = Idle()
        logger.info(
            "Case completed",
            extra={
                "user_id": user_id,
                "case_id": state.case.id,
                "correct_diagnosis": evaluation.correct_diagnosis,
                "correct_triage": evaluation.correct_triage,
                "evaluation_source": evaluation.source.value,
                "average_score": session.stats.average_score,
            },
        )
        await self._persist(session)
        return EvaluationOutcome(
            evaluation=evaluation,
            educational_content=education,
            expected_diagnosis=state.case.expected_diagnoses.primary,
            stats=session.stats,
        )

    async def hints(self, user_id: str) -> list[str]:
        session = await self.session(user_id)
        state = session.state
        if not isinstance(state, CaseActive):
            raise SessionStateError(
                NO_ACTIVE_CASE if isinstance(state, Idle) else _busy_message(state)
            )
        return await self._pipeline.hints(state.case)

    async def set_level(self, user_id: str, level: UserLevel) -> CaseSession:
        session = await self.session(user_id)
        session.level = level
        return session

    async def stats(self, user_id: str) -> PerformanceStats:
        session = await self.session(user_id)
        return session.stats

    async def _create_session(self, user_id: str) -> CaseSession:
        try:
            session = CaseSession(user_id=user_id)
            if self._stats_store is not None:
                try:
                    stored = await self._stats_store.load(user_id)
                except Exception as exc:  # noqa: BLE001
                    session.stats_loaded = False
                    logger.warning(
                        "Unable to load stored stats; counting in memory until a load succeeds",
                        extra={"user_id": user_id, "error": str(exc)},
                    )
                else:
                    if stored is not None:
                        session.stats = stored
            self._sessions[user_id] = session
            return session
        finally:
            self._loading.pop(user_id, None)

    async def _persist(self, session: CaseSession) -> None:
        if self._stats_store is None:
            return
        if not session.stats_loaded:
            try:
                stored = await self._stats_store.load(session.user_id)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Stored stats still unavailable; not persisting",
                    extra={"user_id": session.user_id, "error": str(exc)},
                )
                return
            if stored is not None:
                session.stats = stored.combined(session.stats)
            session.stats_loaded = True
        try:
            await self._stats_store.persist(session.user_id, session.stats)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Unable to persist stats",
                extra={"user_id": session.user_id, "error": str(exc)},
            )


def _state_name(state: SessionState) -> str:
    return {
        Idle: "idle",
        Generating: "generating",
        CaseActive: "case_active",
        Evaluating: "evaluating",
    }[type(state)]


def _busy_message(state: SessionState) -> str:
    if isinstance(state, Generating):
        return "Your case is still being prepared. Please wait or /cancel it."
    if isinstance(state, Evaluating):
        return "Your previous response is still being evaluated."
    return "You already have an active case. Answer it or /cancel it first."


__all__ = ["CaseSession", "CaseSessionManager", "NO_ACTIVE_CASE"]
