"""Case generation and evaluation on top of the inference scheduler.

Every public coroutine here returns usable content: provider failures,
timeouts and invalid payloads are converted into deterministic fallbacks so a
learner never hits a dead end.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass
from typing import Callable

from medsim_api.config.settings import Settings
from medsim_api.core.errors import CaseValidationError, InferenceFailure
from medsim_api.domain.enums import CaseSource, Difficulty, UserLevel
from medsim_api.domain.schemas.cases import ClinicalCase
from medsim_api.domain.schemas.sessions import CaseEvaluation
from medsim_api.services.cases.fallback import FallbackCaseBank
from medsim_api.services.cases.prompts import (
    build_case_prompt,
    build_education_prompt,
    build_evaluation_prompt,
    build_hint_prompt,
)
from medsim_api.services.cases.validator import CaseValidator, parse_case_text
from medsim_api.services.inference.scheduler import InferenceScheduler

logger = logging.getLogger(__name__)

MAX_HINTS = 5
_BULLET_PREFIX = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")
_WORD = re.compile(r"[a-z0-9]+")


@dataclass(frozen=True, slots=True)
class PipelineConfiguration:
    """Overall wall-clock budgets, layered above the scheduler's own retries."""

    generation_timeout: float = 30.0
    evaluation_timeout: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings) -> PipelineConfiguration:
        return cls(
            generation_timeout=settings.case_generation_timeout_seconds,
            evaluation_timeout=settings.evaluation_timeout_seconds,
        )


@dataclass(frozen=True, slots=True)
class GeneratedCase:
    case: ClinicalCase
    source: CaseSource


def _new_case_reference() -> str:
    return uuid.uuid4().hex[:12]


class CasePipeline:
    """Turns scheduler results into cases, evaluations, hints and teaching text."""

    def __init__(
        self,
        *,
        scheduler: InferenceScheduler,
        validator: CaseValidator | None = None,
        fallback_bank: FallbackCaseBank | None = None,
        config: PipelineConfiguration | None = None,
        case_reference: Callable[[], str] = _new_case_reference,
    ) -> None:
        self._scheduler = scheduler
        self._validator = validator or CaseValidator()
        self._fallback_bank = fallback_bank or FallbackCaseBank(self._validator)
        self._config = config or PipelineConfiguration()
        self._case_reference = case_reference

    async def generate_case(self, difficulty: Difficulty) -> GeneratedCase:
        """Produce a validated case, or the fallback case for ``difficulty``."""
        reference = self._case_reference()
        prompt = f"{build_case_prompt(difficulty)}\nCase reference: {reference}"
        try:
            text = await self._scheduler.request(prompt, timeout=self._config.generation_timeout)
            payload = parse_case_text(text)
            payload.setdefault("difficulty", difficulty.value)
            case = self._validator.validate(payload)
        except asyncio.TimeoutError:
            reason = f"timed out after {self._config.generation_timeout}s"
        except InferenceFailure as exc:
            reason = f"inference failed: {exc}"
        except CaseValidationError as exc:
            reason = f"invalid case: {exc.rule}"
        else:
            logger.info(
                "Generated case accepted",
                extra={"case_id": case.id, "difficulty": difficulty.value, "reference": reference},
            )
            return GeneratedCase(case=case, source=CaseSource.GENERATED)

        logger.warning(
            "Case generation fell back to the case bank",
            extra={"difficulty": difficulty.value, "reason": reason, "reference": reference},
        )
        return GeneratedCase(case=self._fallback_bank.get(difficulty), source=CaseSource.FALLBACK)

    async def evaluate_response(
        self,
        case: ClinicalCase,
        response: str,
        level: UserLevel,
    ) -> CaseEvaluation:
        """Grade ``response``; falls back to a template evaluation on provider failure."""
        prompt = build_evaluation_prompt(case, response, level)
        try:
            text = await self._scheduler.request(prompt, timeout=self._config.evaluation_timeout)
        except (asyncio.TimeoutError, InferenceFailure) as exc:
            logger.warning(
                "Evaluation fell back to template",
                extra={"case_id": case.id, "reason": str(exc) or type(exc).__name__},
            )
            return template_evaluation(case, response)
        return CaseEvaluation.from_text(text, source=CaseSource.GENERATED)

    async def hints(self, case: ClinicalCase) -> list[str]:
        try:
            text = await self._scheduler.request(
                build_hint_prompt(case), timeout=self._config.generation_timeout
            )
        except (asyncio.TimeoutError, InferenceFailure) as exc:
            logger.warning(
                "Hint generation fell back to case summary",
                extra={"case_id": case.id, "reason": str(exc) or type(exc).__name__},
            )
            return template_hints(case)
        hints = [
            _BULLET_PREFIX.sub("", line).strip() for line in text.splitlines() if line.strip()
        ]
        hints = [hint for hint in hints if hint][:MAX_HINTS]
        return hints or template_hints(case)

    async def educational_content(self, case: ClinicalCase, level: UserLevel) -> str:
        topic = case.expected_diagnoses.primary
        try:
            return await self._scheduler.request(
                build_education_prompt(topic, level), timeout=self._config.evaluation_timeout
            )
        except (asyncio.TimeoutError, InferenceFailure) as exc:
            logger.warning(
                "Educational content fell back to case teaching points",
                extra={"case_id": case.id, "reason": str(exc) or type(exc).__name__},
            )
            return template_education(case)


def template_evaluation(case: ClinicalCase, response: str) -> CaseEvaluation:
    """Deterministic evaluation built only from the case and the learner's text."""
    primary = case.expected_diagnoses.primary
    diagnosis_matched = mentions_diagnosis(response, primary)
    triage_matched = mentions_triage_level(response, case.triage_level)

    lines = ["Automated feedback (the AI evaluator is currently unavailable).", ""]
    if diagnosis_matched:
        lines.append(f"Your primary diagnosis is the correct diagnosis: {primary}.")
    else:
        lines.append(f"Expected primary diagnosis: {primary}.")
    if triage_matched:
        lines.append(f"ESI level {case.triage_level} is the appropriate triage for this patient.")
    else:
        lines.append(f"Expected triage level: ESI {case.triage_level}.")
    lines.append("")
    lines.append("Differential diagnoses to consider:")
    lines.extend(f"- {item}" for item in case.expected_diagnoses.differential)
    lines.append("")
    lines.append("Key learning points:")
    lines.extend(f"- {point}" for point in case.educational_points)
    return CaseEvaluation.from_text("\n".join(lines), source=CaseSource.FALLBACK)


def template_hints(case: ClinicalCase) -> list[str]:
    vitals = case.vitals
    hints = [
        f"Focus on the chief complaint: {case.chief_complaint}.",
        (
            f"Look closely at the vital signs: BP {vitals.blood_pressure}, HR {vitals.heart_rate}, "
            f"RR {vitals.respiratory_rate}, SpO2 {vitals.oxygen_saturation}%."
        ),
        f"Key examination finding: {case.physical_exam[0]}.",
    ]
    if case.history.past_medical:
        hints.append(f"Relevant history: {', '.join(case.history.past_medical)}.")
    return hints


def template_education(case: ClinicalCase) -> str:
    lines = [f"Key learning points for {case.expected_diagnoses.primary}:"]
    lines.extend(f"- {point}" for point in case.educational_points)
    return "\n".join(lines)


def mentions_diagnosis(response: str, diagnosis: str) -> bool:
    """True when every significant word of ``diagnosis`` appears in ``response``."""
    response_words = set(_WORD.findall(response.lower()))
    diagnosis_words = [word for word in _WORD.findall(diagnosis.lower()) if len(word) > 3]
    if not diagnosis_words:
        return diagnosis.lower().strip() in response.lower()
    return all(word in response_words for word in diagnosis_words)


def mentions_triage_level(response: str, level: int) -> bool:
    pattern = re.compile(rf"\b(?:triage|esi|level)\b[^0-9\n]{{0,15}}\b{level}\b", re.IGNORECASE)
    return pattern.search(response) is not None


__all__ = [
    "CasePipeline",
    "GeneratedCase",
    "PipelineConfiguration",
    "mentions_diagnosis",
    "mentions_triage_level",
    "template_education",
    "template_evaluation",
    "template_hints",
]
