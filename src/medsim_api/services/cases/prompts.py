from __future__ import annotations

import json

from medsim_api.domain.enums import Difficulty, UserLevel
from medsim_api.domain.schemas.cases import ClinicalCase
from medsim_api.domain.schemas.sessions import DIAGNOSIS_MARKER, TRIAGE_MARKER

CLINICAL_EDUCATOR_SYSTEM_PROMPT = """
You are MedSim's senior emergency medicine educator. You write synthetic but realistic emergency department cases and give precise, supportive feedback to learners.

Core objectives:
- Model presentations, vital signs and laboratory values on patterns seen in large ED cohorts such as MIMIC-IV, while never reproducing a real patient.
- Keep every case internally consistent: vitals, examination, results and the expected diagnosis must agree.
- Teach clinical reasoning: recognition of red flags, differential diagnosis, triage and first-hour management.

Safety and integrity:
- Never fabricate laboratory reference ranges; favour well-established values.
- Name the guideline body when a recommendation depends on it.
""".strip()

CASE_SCHEMA_EXAMPLE = {
    "id": "unique_case_id",
    "difficulty": "basic | intermediate | advanced",
    "demographics": {"age": 0, "gender": "male | female", "ethnicity": "optional string"},
    "vitals": {
        "bloodPressure": "systolic/diastolic",
        "heartRate": 0,
        "respiratoryRate": 0,
        "temperature": 0.0,
        "oxygenSaturation": 0,
        "gcs": "optional integer 3-15",
    },
    "chiefComplaint": "string",
    "presentingSymptoms": ["symptom"],
    "history": {
        "presentIllness": "string",
        "pastMedical": ["condition"],
        "medications": ["medication"],
        "allergies": ["allergy"],
        "socialHistory": "string",
    },
    "physicalExam": ["finding"],
    "labResults": {"test_name": {"value": 0, "unit": "string", "reference": "optional range"}},
    "imaging": ["finding"],
    "expectedDiagnoses": {"primary": "string", "differential": ["diagnosis"]},
    "triageLevel": "integer 1-5",
    "educationalPoints": ["point"],
}

_DIFFICULTY_GUIDANCE = {
    Difficulty.BASIC: "a common presentation with a clear classic picture",
    Difficulty.INTERMEDIATE: "a more complex pathology with relevant comorbidities",
    Difficulty.ADVANCED: "a rare condition, an atypical presentation or an evolving complication",
}


def build_case_prompt(difficulty: Difficulty) -> str:
    """Prompt asking for one complete case as a JSON object."""
    lines = [
        "Generate a realistic emergency department case.",
        f"Difficulty: {difficulty.value} ({_DIFFICULTY_GUIDANCE[difficulty]}).",
        "Requirements:",
        "1. Use realistic vital signs and laboratory values.",
        "2. Create synthetic patient demographics.",
        "3. Include appropriate diagnostic considerations and teaching points.",
        "4. Use the Emergency Severity Index (1 = most urgent, 5 = least urgent) for triageLevel.",
        f'5. Set "difficulty" to "{difficulty.value}".',
        "Return only a JSON object with exactly this structure:",
        json.dumps(CASE_SCHEMA_EXAMPLE, indent=2),
    ]
    return "\n".join(lines)


def build_evaluation_prompt(case: ClinicalCase, response: str, level: UserLevel) -> str:
    """Prompt asking the provider to grade a learner's diagnostic response."""
    case_json = json.dumps(case.model_dump(mode="json", by_alias=True), indent=2)
    return "\n".join(
        [
            f"You are evaluating a {level.value}'s response to an emergency department case.",
            "",
            "Case details:",
            case_json,
            "",
            "Learner response:",
            response.strip(),
            "",
            "Provide a detailed analysis covering diagnostic accuracy, clinical reasoning, "
            "management plan and educational feedback.",
            f'If and only if the learner\'s primary diagnosis matches the expected one, write the exact phrase "{DIAGNOSIS_MARKER}".',
            f'If and only if the learner\'s triage level matches, write the exact phrase "{TRIAGE_MARKER}".',
            "Never use either phrase in a negative sentence.",
            f"Adapt depth and tone to a {level.value} level learner.",
        ]
    )


def build_hint_prompt(case: ClinicalCase) -> str:
    """Prompt asking for short hints that do not reveal the diagnosis."""
    case_json = json.dumps(
        case.model_dump(mode="json", by_alias=True, exclude={"expected_diagnoses", "educational_points"}),
        indent=2,
    )
    return "\n".join(
        [
            "Give three short diagnostic hints for the following emergency department case.",
            "Do not name the diagnosis. Return one hint per line with no numbering.",
            "",
            case_json,
        ]
    )


def build_education_prompt(topic: str, level: UserLevel) -> str:
    """Prompt asking for teaching content about a diagnosis."""
    return "\n".join(
        [
            f'Create concise educational content about "{topic}" for a {level.value} level learner.',
            "Include key concepts, clinical presentation, diagnostic approach, management principles, "
            "clinical pearls and common pitfalls.",
            "Keep it under 300 words and use plain text with short headings.",
        ]
    )


__all__ = [
    "CASE_SCHEMA_EXAMPLE",
    "CLINICAL_EDUCATOR_SYSTEM_PROMPT",
    "build_case_prompt",
    "build_education_prompt",
    "build_evaluation_prompt",
    "build_hint_prompt",
]
