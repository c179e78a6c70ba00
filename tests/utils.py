from __future__ import annotations

import asyncio
import copy
import inspect
import json
from typing import Any, Awaitable, Callable

from medsim_api.core.errors import InferenceFailure
from medsim_api.services.cases import CasePipeline
from medsim_api.services.inference import InferenceScheduler, ResponseCache, SchedulerConfig

Handler = Callable[[str], "str | Awaitable[str]"]

_APPENDICITIS_CASE: dict[str, Any] = {
    "id": "generated-appendicitis",
    "difficulty": "basic",
    "demographics": {"age": 19, "gender": "female"},
    "vitals": {
        "bloodPressure": "118/72",
        "heartRate": 104,
        "respiratoryRate": 18,
        "temperature": 38.1,
        "oxygenSaturation": 99,
    },
    "chiefComplaint": "Right lower quadrant pain since last night",
    "presentingSymptoms": ["Periumbilical pain migrating to the right iliac fossa", "Anorexia"],
    "history": {
        "presentIllness": "Pain started around the umbilicus 14 hours ago and moved to the RLQ.",
        "pastMedical": [],
        "medications": [],
        "allergies": [],
    },
    "physicalExam": ["Tenderness at McBurney's point", "Positive Rovsing sign"],
    "labResults": {"wbc": {"value": 14.2, "unit": "x10^9/L", "reference": "4.0-11.0"}},
    "imaging": ["Ultrasound: non-compressible appendix, 9 mm"],
    "expectedDiagnoses": {
        "primary": "Acute appendicitis",
        "differential": ["Ovarian torsion", "Ectopic pregnancy", "Mesenteric adenitis"],
    },
    "triageLevel": 3,
    "educationalPoints": ["Always check a pregnancy test in abdominal pain of childbearing age."],
}


def build_case_payload(**overrides: Any) -> dict[str, Any]:
    """Return a fresh, valid camelCase case payload with top-level overrides applied."""
    payload = copy.deepcopy(_APPENDICITIS_CASE)
    for key, value in overrides.items():
        if value is None:
            payload.pop(key, None)
        else:
            payload[key] = value
    return payload


def case_json(**overrides: Any) -> str:
    return json.dumps(build_case_payload(**overrides))


class ScriptedInferenceClient:
    """Inference client whose answers come from a handler; records every prompt."""

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def invoke(self, prompt: str) -> str:
        self.calls.append(prompt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            result = self.handler(prompt)
            if inspect.isawaitable(result):
                result = await result
            return result
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True


def always_failing(prompt: str) -> str:
    raise InferenceFailure("provider unavailable", cause=ConnectionError("refused"))


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records delays and only yields once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_pipeline(
    client: ScriptedInferenceClient,
    sleep: RecordingSleep,
    scheduler_config: SchedulerConfig | None = None,
    **pipeline_kwargs: Any,
) -> CasePipeline:
    scheduler = InferenceScheduler(
        client=client,
        cache=ResponseCache(),
        config=scheduler_config or SchedulerConfig(batch_wait=0.0),
        sleep=sleep,
    )
    return CasePipeline(scheduler=scheduler, **pipeline_kwargs)


async def settle(condition: Callable[[], bool], attempts: int = 50) -> None:
    """Spin the event loop until ``condition`` holds."""
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


__all__ = [
    "FakeClock",
    "RecordingSleep",
    "ScriptedInferenceClient",
    "always_failing",
    "build_case_payload",
    "case_json",
    "make_pipeline",
    "settle",
]
