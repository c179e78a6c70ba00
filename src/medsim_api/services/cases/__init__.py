from __future__ import annotations

from .fallback import FallbackCaseBank
from .pipeline import CasePipeline, GeneratedCase, PipelineConfiguration
from .prompts import CLINICAL_EDUCATOR_SYSTEM_PROMPT
from .validator import CaseValidator, parse_case_text

__all__ = [
    "CLINICAL_EDUCATOR_SYSTEM_PROMPT",
    "CasePipeline",
    "CaseValidator",
    "FallbackCaseBank",
    "GeneratedCase",
    "PipelineConfiguration",
    "parse_case_text",
]
