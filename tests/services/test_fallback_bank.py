from __future__ import annotations

import pytest

from medsim_api.domain.enums import Difficulty
from medsim_api.services.cases import FallbackCaseBank


@pytest.fixture(scope="module")
def bank() -> FallbackCaseBank:
    return FallbackCaseBank()


@pytest.mark.parametrize(
    "difficulty, diagnosis, triage",
    [
        (Difficulty.BASIC, "Anxiety-induced chest pain", 3),
        (Difficulty.INTERMEDIATE, "COVID-19 pneumonia", 2),
        (Difficulty.ADVANCED, "Acute mesenteric ischaemia", 1),
    ],
)
def test_every_tier_has_a_valid_case(
    bank: FallbackCaseBank, difficulty: Difficulty, diagnosis: str, triage: int
) -> None:
    case = bank.get(difficulty)

    assert case.difficulty is difficulty
    assert case.expected_diagnoses.primary == diagnosis
    assert case.triage_level == triage
    assert case.id.startswith(f"fallback-{difficulty.value}")


def test_get_accepts_string_values(bank: FallbackCaseBank) -> None:
    assert bank.get("advanced") is bank.get(Difficulty.ADVANCED)


def test_unknown_difficulty_falls_back_to_basic(bank: FallbackCaseBank) -> None:
    assert bank.get("nightmare") is bank.get(Difficulty.BASIC)
