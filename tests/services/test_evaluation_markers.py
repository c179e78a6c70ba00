from __future__ import annotations

import pytest

from medsim_api.domain.enums import Difficulty
from medsim_api.services.cases import FallbackCaseBank
from medsim_api.services.cases.pipeline import (
    mentions_diagnosis,
    mentions_triage_level,
    template_evaluation,
)


def test_template_evaluation_without_match_has_no_markers() -> None:
    case = FallbackCaseBank().get(Difficulty.ADVANCED)

    evaluation = template_evaluation(case, "Gastroenteritis, ESI 4")

    assert evaluation.correct_diagnosis is False
    assert evaluation.correct_triage is False
    assert "Acute mesenteric ischaemia" in evaluation.text


@pytest.mark.parametrize(
    "response, expected",
    [
        ("Acute appendicitis", True),
        ("appendicitis, acute presentation", True),
        ("Appendiceal abscess", False),
        ("", False),
    ],
)
def test_mentions_diagnosis(response: str, expected: bool) -> None:
    assert mentions_diagnosis(response, "Acute appendicitis") is expected


@pytest.mark.parametrize(
    "response, expected",
    [
        ("Triage level 2", True),
        ("ESI: 2", True),
        ("triage 3", False),
        ("Give 2 litres of fluid", False),
    ],
)
def test_mentions_triage_level(response: str, expected: bool) -> None:
    assert mentions_triage_level(response, 2) is expected
