"""Schema checks applied to provider-generated cases before a session sees them."""

from __future__ import annotations

import json
import re
import uuid
from typing import Any, Mapping

from pydantic import ValidationError

from medsim_api.core.errors import CaseValidationError
from medsim_api.domain.enums import Difficulty
from medsim_api.domain.schemas.cases import ClinicalCase

_FENCE_PATTERN = re.compile(r"^```[a-zA-Z]*\s*(?P<body>.*?)\s*```$", re.DOTALL)

# (parent, key) pairs in camelCase; snake_case spellings are accepted too.
REQUIRED_FIELDS: tuple[tuple[str | None, str], ...] = (
    (None, "demographics"),
    ("demographics", "age"),
    ("demographics", "gender"),
    (None, "vitals"),
    ("vitals", "bloodPressure"),
    ("vitals", "heartRate"),
    ("vitals", "respiratoryRate"),
    ("vitals", "temperature"),
    ("vitals", "oxygenSaturation"),
    (None, "chiefComplaint"),
    (None, "presentingSymptoms"),
    (None, "history"),
    ("history", "presentIllness"),
    ("history", "pastMedical"),
    ("history", "medications"),
    (None, "physicalExam"),
    (None, "expectedDiagnoses"),
    ("expectedDiagnoses", "primary"),
    ("expectedDiagnoses", "differential"),
    (None, "triageLevel"),
    (None, "educationalPoints"),
    (None, "difficulty"),
)

NUMERIC_FIELDS: tuple[tuple[str, str], ...] = (
    ("demographics", "age"),
    ("vitals", "heartRate"),
    ("vitals", "respiratoryRate"),
    ("vitals", "temperature"),
    ("vitals", "oxygenSaturation"),
)

TEXT_FIELDS: tuple[tuple[str | None, str], ...] = (
    ("demographics", "gender"),
    ("vitals", "bloodPressure"),
    (None, "chiefComplaint"),
    ("history", "presentIllness"),
    ("expectedDiagnoses", "primary"),
)

NON_EMPTY_LIST_FIELDS: tuple[tuple[str | None, str], ...] = (
    (None, "presentingSymptoms"),
    (None, "physicalExam"),
    ("expectedDiagnoses", "differential"),
    (None, "educationalPoints"),
)

LIST_FIELDS: tuple[tuple[str | None, str], ...] = (
    ("history", "pastMedical"),
    ("history", "medications"),
)

TRIAGE_RANGE = (1, 5)


class CaseValidator:
    """Validate a raw case payload and build an immutable :class:`ClinicalCase`.

    Checks run in a fixed order (required fields, then types and ranges, then
    the difficulty enum) and stop at the first violation.
    """

    def validate(self, payload: Mapping[str, Any]) -> ClinicalCase:
        if not isinstance(payload, Mapping):
            raise CaseValidationError("Case payload must be a JSON object.")

        for parent, key in REQUIRED_FIELDS:
            self._require(payload, parent, key)

        for parent, key in TEXT_FIELDS:
            value = _lookup(_section(payload, parent), key)
            if not isinstance(value, str):
                raise CaseValidationError(f"Field '{_path(parent, key)}' must be a string.")

        for parent, key in NUMERIC_FIELDS:
            value = _lookup(_section(payload, parent), key)
            if not _is_number(value):
                raise CaseValidationError(f"Field '{_path(parent, key)}' must be numeric.")

        triage = _lookup(payload, "triageLevel")
        if not isinstance(triage, int) or isinstance(triage, bool):
            raise CaseValidationError("Field 'triageLevel' must be an integer.")
        low, high = TRIAGE_RANGE
        if not low <= triage <= high:
            raise CaseValidationError(
                f"Field 'triageLevel' must be between {low} and {high} (got {triage})."
            )

        for parent, key in NON_EMPTY_LIST_FIELDS:
            value = _lookup(_section(payload, parent), key)
            if not isinstance(value, list) or not value:
                raise CaseValidationError(f"Field '{_path(parent, key)}' must be a non-empty list.")

        for parent, key in LIST_FIELDS:
            value = _lookup(_section(payload, parent), key)
            if not isinstance(value, list):
                raise CaseValidationError(f"Field '{_path(parent, key)}' must be a list.")

        difficulty = _lookup(payload, "difficulty")
        allowed = {member.value for member in Difficulty}
        if difficulty not in allowed:
            raise CaseValidationError(
                f"Field 'difficulty' must be one of {sorted(allowed)} (got {difficulty!r})."
            )

        normalised = dict(payload)
        identifier = normalised.get("id")
        if identifier is None or (isinstance(identifier, str) and not identifier.strip()):
            normalised["id"] = f"case-{uuid.uuid4().hex[:12]}"
        else:
            normalised["id"] = str(identifier)

        try:
            return ClinicalCase.model_validate(normalised)
        except ValidationError as exc:
            first = exc.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ()))
            raise CaseValidationError(f"Field '{location}' is invalid: {first.get('msg')}") from exc

    @staticmethod
    def _require(payload: Mapping[str, Any], parent: str | None, key: str) -> None:
        section = payload
        if parent is not None:
            candidate = _lookup(payload, parent)
            if not isinstance(candidate, Mapping):
                raise CaseValidationError(f"Field '{parent}' must be an object.")
            section = candidate
        value = _lookup(section, key)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise CaseValidationError(f"Missing required field: {_path(parent, key)}")


def parse_case_text(text: str) -> dict[str, Any]:
    """Decode the JSON object embedded in a provider response."""
    stripped = text.strip()
    fenced = _FENCE_PATTERN.match(stripped)
    if fenced:
        stripped = fenced.group("body")
    if not stripped.startswith("{"):
        start, end = stripped.find("{"), stripped.rfind("}")
        if start == -1 or end <= start:
            raise CaseValidationError("Case response did not contain a JSON object.")
        stripped = stripped[start : end + 1]
    try:
        parsed = json.loads(stripped)
    except json.JSONDecodeError as exc:
        raise CaseValidationError(f"Case response was not valid JSON: {exc.msg}.") from exc
    if not isinstance(parsed, dict):
        raise CaseValidationError("Case payload must be a JSON object.")
    return parsed


def _lookup(section: Mapping[str, Any], key: str) -> Any:
    if key in section:
        return section[key]
    return section.get(_to_snake(key))


def _section(payload: Mapping[str, Any], parent: str | None) -> Mapping[str, Any]:
    if parent is None:
        return payload
    return _lookup(payload, parent)


def _to_snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _path(parent: str | None, key: str) -> str:
    return f"{parent}.{key}" if parent else key


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


__all__ = ["CaseValidator", "TRIAGE_RANGE", "parse_case_text"]
