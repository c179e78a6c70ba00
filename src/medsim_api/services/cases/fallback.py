"""Pre-authored cases served when generation cannot produce a valid one."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping

from medsim_api.domain.enums import Difficulty
from medsim_api.domain.schemas.cases import ClinicalCase
from medsim_api.services.cases.validator import CaseValidator

FALLBACK_CASE_PAYLOADS: Mapping[Difficulty, Mapping[str, Any]] = MappingProxyType(
    {
        Difficulty.BASIC: {
            "id": "fallback-basic-chest-pain",
            "difficulty": "basic",
            "demographics": {"age": 28, "gender": "male"},
            "vitals": {
                "bloodPressure": "125/75",
                "heartRate": 88,
                "respiratoryRate": 16,
                "temperature": 37.0,
                "oxygenSaturation": 98,
                "gcs": 15,
            },
            "chiefComplaint": "Sudden onset chest pain for 2 hours",
            "presentingSymptoms": [
                "Sharp central chest tightness",
                "Palpitations",
                "Tingling in both hands",
                "Feeling of impending doom",
            ],
            "history": {
                "presentIllness": (
                    "Pain began at work after a stressful meeting, non-radiating, not exertional, "
                    "no associated diaphoresis. Similar shorter episodes over the past month."
                ),
                "pastMedical": ["Generalised anxiety disorder"],
                "medications": [],
                "allergies": [],
                "socialHistory": "Non-smoker, drinks 4 cups of coffee daily.",
            },
            "physicalExam": [
                "Anxious, hyperventilating young man",
                "Chest wall non-tender, heart sounds normal without murmur",
                "Lungs clear bilaterally",
                "Calves soft and non-tender",
            ],
            "labResults": {
                "wbc": {"value": 7.5, "unit": "x10^9/L", "reference": "4.0-11.0"},
                "hemoglobin": {"value": 14.2, "unit": "g/dL", "reference": "13.5-17.5"},
                "troponin": {"value": 0.02, "unit": "ng/mL", "reference": "<0.04"},
                "ck_mb": {"value": 2.1, "unit": "ng/mL", "reference": "<5.0"},
            },
            "imaging": ["ECG: sinus rhythm, no ST changes", "Chest X-ray: normal"],
            "expectedDiagnoses": {
                "primary": "Anxiety-induced chest pain",
                "differential": [
                    "Acute coronary syndrome",
                    "Pulmonary embolism",
                    "Spontaneous pneumothorax",
                ],
            },
            "triageLevel": 3,
            "educationalPoints": [
                "Anxiety is a diagnosis of exclusion: rule out ACS, PE and pneumothorax first.",
                "A normal ECG and troponin do not exclude ACS; use serial testing and risk scores.",
                "Hyperventilation explains perioral and distal paraesthesia.",
            ],
        },
        Difficulty.INTERMEDIATE: {
            "id": "fallback-intermediate-dyspnea",
            "difficulty": "intermediate",
            "demographics": {"age": 45, "gender": "female"},
            "vitals": {
                "bloodPressure": "142/88",
                "heartRate": 102,
                "respiratoryRate": 24,
                "temperature": 37.8,
                "oxygenSaturation": 92,
            },
            "chiefComplaint": "Progressive shortness of breath over 3 days",
            "presentingSymptoms": ["Dyspnoea on exertion", "Dry cough", "Fever", "Myalgia", "Anosmia"],
            "history": {
                "presentIllness": (
                    "Symptoms began 6 days ago with fever and myalgia; breathlessness has worsened "
                    "over the last 3 days. Household contact recently tested positive for SARS-CoV-2."
                ),
                "pastMedical": ["Type 2 diabetes mellitus", "Obesity"],
                "medications": ["Metformin 1 g twice daily"],
                "allergies": ["Penicillin"],
                "socialHistory": "Teacher, never smoker.",
            },
            "physicalExam": [
                "Mild respiratory distress, speaking full sentences",
                "Bibasal fine crackles",
                "No peripheral oedema",
            ],
            "labResults": {
                "wbc": {"value": 12.5, "unit": "x10^9/L", "reference": "4.0-11.0"},
                "sodium": {"value": 138, "unit": "mmol/L", "reference": "135-145"},
                "creatinine": {"value": 1.1, "unit": "mg/dL", "reference": "0.6-1.1"},
                "troponin": {"value": 0.01, "unit": "ng/mL", "reference": "<0.04"},
            },
            "imaging": ["Chest X-ray: bilateral peripheral patchy opacities"],
            "expectedDiagnoses": {
                "primary": "COVID-19 pneumonia",
                "differential": [
                    "Community-acquired bacterial pneumonia",
                    "Pulmonary embolism",
                    "Acute heart failure",
                ],
            },
            "triageLevel": 2,
            "educationalPoints": [
                "Hypoxaemia below 94% on room air defines at least moderate COVID-19 pneumonia.",
                "Dexamethasone benefits patients who require supplemental oxygen.",
                "Keep pulmonary embolism in the differential given the prothrombotic state.",
            ],
        },
        Difficulty.ADVANCED: {
            "id": "fallback-advanced-abdominal-pain",
            "difficulty": "advanced",
            "demographics": {"age": 62, "gender": "male"},
            "vitals": {
                "bloodPressure": "85/55",
                "heartRate": 125,
                "respiratoryRate": 22,
                "temperature": 38.5,
                "oxygenSaturation": 95,
                "gcs": 14,
            },
            "chiefComplaint": "Severe abdominal pain and vomiting",
            "presentingSymptoms": [
                "Diffuse abdominal pain out of proportion to examination",
                "Repeated vomiting",
                "One episode of bloody stool",
            ],
            "history": {
                "presentIllness": (
                    "Sudden severe periumbilical pain 6 hours ago, followed by vomiting and a "
                    "maroon stool. Pain is unrelieved by paracetamol."
                ),
                "pastMedical": ["Atrial fibrillation", "Hypertension", "Peripheral vascular disease"],
                "medications": ["Bisoprolol 5 mg daily", "Ramipril 5 mg daily"],
                "allergies": [],
                "socialHistory": "Stopped anticoagulation two months ago; 40 pack-year smoker.",
            },
            "physicalExam": [
                "Irregularly irregular pulse",
                "Abdomen soft with mild diffuse tenderness, no guarding",
                "Hypoactive bowel sounds",
                "Cool peripheries, capillary refill 4 seconds",
            ],
            "labResults": {
                "wbc": {"value": 18.5, "unit": "x10^9/L", "reference": "4.0-11.0"},
                "hemoglobin": {"value": 10.2, "unit": "g/dL", "reference": "13.5-17.5"},
                "potassium": {"value": 5.2, "unit": "mmol/L", "reference": "3.5-5.0"},
                "creatinine": {"value": 2.1, "unit": "mg/dL", "reference": "0.7-1.3"},
                "lactate": {"value": 5.8, "unit": "mmol/L", "reference": "<2.0"},
            },
            "imaging": ["CT angiography pending"],
            "expectedDiagnoses": {
                "primary": "Acute mesenteric ischaemia",
                "differential": [
                    "Perforated viscus",
                    "Acute pancreatitis",
                    "Ruptured abdominal aortic aneurysm",
                    "Septic shock from intra-abdominal source",
                ],
            },
            "triageLevel": 1,
            "educationalPoints": [
                "Pain out of proportion to examination with AF suggests embolic mesenteric ischaemia.",
                "A raised lactate is a late marker; a normal value does not exclude ischaemia.",
                "CT angiography and early surgical and interventional consultation save bowel.",
            ],
        },
    }
)


class FallbackCaseBank:
    """One validated case per difficulty tier. ``get`` never fails."""

    def __init__(self, validator: CaseValidator | None = None) -> None:
        validator = validator or CaseValidator()
        self._cases: dict[Difficulty, ClinicalCase] = {
            difficulty: validator.validate(payload)
            for difficulty, payload in FALLBACK_CASE_PAYLOADS.items()
        }

    def get(self, difficulty: Difficulty | str) -> ClinicalCase:
        try:
            tier = Difficulty(difficulty)
        except ValueError:
            tier = Difficulty.BASIC
        return self._cases[tier]


__all__ = ["FALLBACK_CASE_PAYLOADS", "FallbackCaseBank"]
