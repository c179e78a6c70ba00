from __future__ import annotations

from .cache import CacheEntry, ResponseCache, normalize_prompt
from .clients import (
    GeminiInferenceClient,
    GenerationConfig,
    InferenceClient,
    UnconfiguredInferenceClient,
)
from .scheduler import (
    InferenceRequest,
    InferenceScheduler,
    RequestStatus,
    SchedulerConfig,
    SchedulerState,
)

__all__ = [
    "CacheEntry",
    "GeminiInferenceClient",
    "GenerationConfig",
    "InferenceClient",
    "InferenceRequest",
    "InferenceScheduler",
    "RequestStatus",
    "ResponseCache",
    "SchedulerConfig",
    "SchedulerState",
    "UnconfiguredInferenceClient",
    "normalize_prompt",
]
