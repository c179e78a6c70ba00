from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import Field, computed_field

from medsim_api.domain.enums import CaseSource, Difficulty, UserLevel
from medsim_api.domain.schemas.base import BaseSchema
from medsim_api.domain.schemas.cases import ClinicalCase

DIAGNOSIS_MARKER = "correct diagnosis"
TRIAGE_MARKER = "appropriate triage"


class PerformanceStats(BaseSchema):
    total_cases: int = Field(0, ge=0)
    correct_diagnoses: int = Field(0, ge=0)
    correct_triages: int = Field(0, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def average_score(self) -> float:
        if self.total_cases == 0:
            return 0.0
        return (self.correct_diagnoses + self.correct_triages) / (self.total_cases * 2) * 100

    def record(self, *, correct_diagnosis: bool, correct_triage: bool) -> PerformanceStats:
        """Return the counters after one more completed case."""
        return PerformanceStats(
            total_cases=self.total_cases + 1,
            correct_diagnoses=self.correct_diagnoses + int(correct_diagnosis),
            correct_triages=self.correct_triages + int(correct_triage),
        )

    def combined(self, other: PerformanceStats) -> PerformanceStats:
        return PerformanceStats(
            total_cases=self.total_cases + other.total_cases,
            correct_diagnoses=self.correct_diagnoses + other.correct_diagnoses,
            correct_triages=self.correct_triages + other.correct_triages,
        )


class CaseEvaluation(BaseSchema):
    text: str
    correct_diagnosis: bool
    correct_triage: bool
    source: CaseSource

    @classmethod
    def from_text(cls, text: str, *, source: CaseSource) -> CaseEvaluation:
        lowered = text.lower()
        return cls(
            text=text,
            correct_diagnosis=DIAGNOSIS_MARKER in lowered,
            correct_triage=TRIAGE_MARKER in lowered,
            source=source,
        )


class EvaluationOutcome(BaseSchema):
    evaluation: CaseEvaluation
    educational_content: str
    expected_diagnosis: str
    stats: PerformanceStats


@dataclass(frozen=True, slots=True)
class Idle:
    """No case is active."""


@dataclass(frozen=True, slots=True)
class Generating:
    """A case is being produced for the session."""

    difficulty: Difficulty


@dataclass(frozen=True, slots=True)
class CaseActive:
    """A case has been presented and awaits a diagnostic response."""

    case: ClinicalCase
    started_at: datetime
    source: CaseSource


@dataclass(frozen=True, slots=True)
class Evaluating:
    """A response was submitted and its evaluation is in flight."""

    case: ClinicalCase
    started_at: datetime


SessionState = Idle | Generating | CaseActive | Evaluating


class SessionSummary(BaseSchema):
    user_id: str
    level: UserLevel
    state: str
    case_id: str | None = None
    case_started_at: datetime | None = None
    stats: PerformanceStats


__all__ = [
    "CaseActive",
    "CaseEvaluation",
    "DIAGNOSIS_MARKER",
    "Evaluating",
    "EvaluationOutcome",
    "Generating",
    "Idle",
    "PerformanceStats",
    "SessionState",
    "SessionSummary",
    "TRIAGE_MARKER",
]
