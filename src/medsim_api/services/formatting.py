"""Plain-text renderers for chat replies."""

from __future__ import annotations

from medsim_api.domain.enums import CaseSource, UserLevel
from medsim_api.domain.schemas.cases import ClinicalCase
from medsim_api.domain.schemas.sessions import EvaluationOutcome, PerformanceStats

WELCOME_TEXT = """Welcome to MedSim, the emergency medicine training assistant.

Practice with synthetic emergency department cases and receive feedback on your clinical decision-making.

Commands:
/practice [basic|intermediate|advanced] - start a new case
/hint - get hints for the current case
/cancel - drop the current case
/stats (or /progress) - view your performance statistics
/level [student|resident|attending] - set your training level
/list - see how cases are tailored to each level
/help - show instructions"""

HELP_TEXT = """MedSim help

1. Use /practice to start a case (optionally choose basic, intermediate or advanced).
2. Review the presentation, vital signs, history and examination.
3. Reply with your primary diagnosis, key differentials, triage level (1-5) and initial management.
4. Read the feedback and the teaching notes.

Without a difficulty, /practice picks one from your training level:
student -> basic, resident -> intermediate, attending -> advanced.
Change the level with /level or by replying 1 (student), 2 (resident) or 3 (attending).

Use /hint if you are stuck and /cancel to drop a case without affecting your statistics."""


def format_case(case: ClinicalCase, *, source: CaseSource | None = None) -> str:
    vitals = case.vitals
    history = case.history
    lines = [
        f"New emergency department case ({case.difficulty.value})",
        "",
        f"Patient: {_number(case.demographics.age)}y/o {case.demographics.gender}",
        f"Chief complaint: {case.chief_complaint}",
        "",
        "Vitals:",
        f"- BP: {vitals.blood_pressure}",
        f"- HR: {_number(vitals.heart_rate)}",
        f"- RR: {_number(vitals.respiratory_rate)}",
        f"- Temp: {_number(vitals.temperature)}°C",
        f"- SpO2: {_number(vitals.oxygen_saturation)}%",
    ]
    if vitals.gcs is not None:
        lines.append(f"- GCS: {vitals.gcs}")
    lines += ["", "Presenting symptoms:", *(f"- {item}" for item in case.presenting_symptoms)]
    lines += ["", "History of present illness:", history.present_illness]
    if history.past_medical:
        lines += ["", "Past medical history:", *(f"- {item}" for item in history.past_medical)]
    if history.medications:
        lines += ["", "Medications:", *(f"- {item}" for item in history.medications)]
    if history.allergies:
        lines += ["", f"Allergies: {', '.join(history.allergies)}"]
    lines += ["", "Physical exam:", *(f"- {item}" for item in case.physical_exam)]
    if case.lab_results:
        lines += ["", "Laboratory results:"]
        for name, lab in case.lab_results.items():
            value = _number(lab.value) if not isinstance(lab.value, str) else lab.value
            reference = f" (ref {lab.reference})" if lab.reference else ""
            lines.append(f"- {name}: {value} {lab.unit}".rstrip() + reference)
    if case.imaging:
        lines += ["", "Imaging:", *(f"- {item}" for item in case.imaging)]
    lines += [
        "",
        "Please provide:",
        "1. Primary diagnosis",
        "2. Key differential diagnoses",
        "3. Triage level (1-5)",
        "4. Initial management plan",
    ]
    if source is CaseSource.FALLBACK:
        lines += ["", "(Served from the offline case bank.)"]
    return "\n".join(lines)


def format_evaluation(outcome: EvaluationOutcome) -> list[str]:
    verdict = (
        "Correct diagnosis!" if outcome.evaluation.correct_diagnosis else "Not quite correct."
    )
    return [
        f"{verdict}\n\n{outcome.evaluation.text}\n\nExpected diagnosis: {outcome.expected_diagnosis}",
        f"Additional educational content:\n\n{outcome.educational_content}",
        "Ready for another case? Use /practice to start a new one.",
    ]


def format_stats(stats: PerformanceStats) -> str:
    return "\n".join(
        [
            "Your performance statistics",
            "",
            f"Total cases: {stats.total_cases}",
            f"Correct diagnoses: {stats.correct_diagnoses}",
            f"Correct triage: {stats.correct_triages}",
            f"Average score: {stats.average_score:.1f}%",
        ]
    )


def format_hints(hints: list[str]) -> str:
    return "Diagnostic hints:\n\n" + "\n".join(f"- {hint}" for hint in hints)


def format_levels(current: UserLevel) -> str:
    return "\n".join(
        [
            "MedSim generates a fresh emergency department case for every request.",
            "",
            "Cases are tailored to your training level:",
            "- Student: basic cases focusing on common presentations",
            "- Resident: intermediate cases with more complex pathologies",
            "- Attending: advanced cases with rare conditions and complications",
            "",
            f"Your current level: {current.value}",
            "",
            "Use /practice to start a new case.",
            "Use /level to change your training level.",
        ]
    )


def _number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


__all__ = [
    "HELP_TEXT",
    "WELCOME_TEXT",
    "format_case",
    "format_evaluation",
    "format_hints",
    "format_levels",
    "format_stats",
]
