from __future__ import annotations

from pydantic import Field

from medsim_api.domain.enums import Difficulty
from medsim_api.domain.schemas.base import CamelSchema


class Demographics(CamelSchema):
    age: int | float = Field(..., description="Patient age in years.")
    gender: str
    ethnicity: str | None = None


class Vitals(CamelSchema):
    blood_pressure: str = Field(..., description="Systolic/diastolic in mmHg.")
    heart_rate: int | float
    respiratory_rate: int | float
    temperature: int | float = Field(..., description="Core temperature in degrees Celsius.")
    oxygen_saturation: int | float
    gcs: int | None = Field(default=None, ge=3, le=15)


class History(CamelSchema):
    present_illness: str
    past_medical: list[str]
    medications: list[str]
    allergies: list[str] = Field(default_factory=list)
    social_history: str | None = None


class LabValue(CamelSchema):
    value: float | str
    unit: str = ""
    reference: str | None = None


class ExpectedDiagnoses(CamelSchema):
    primary: str
    differential: list[str] = Field(..., min_length=1)


class ClinicalCase(CamelSchema):
    """Validated, immutable emergency department case."""

    id: str
    difficulty: Difficulty
    demographics: Demographics
    vitals: Vitals
    chief_complaint: str
    presenting_symptoms: list[str] = Field(..., min_length=1)
    history: History
    physical_exam: list[str] = Field(..., min_length=1)
    lab_results: dict[str, LabValue] = Field(default_factory=dict)
    imaging: list[str] = Field(default_factory=list)
    expected_diagnoses: ExpectedDiagnoses
    triage_level: int = Field(..., ge=1, le=5)
    educational_points: list[str] = Field(..., min_length=1)


__all__ = [
    "ClinicalCase",
    "Demographics",
    "ExpectedDiagnoses",
    "History",
    "LabValue",
    "Vitals",
]
