from __future__ import annotations

import asyncio
import gc
from typing import Any

import pytest

from medsim_api.core.errors import InferenceFailure
from medsim_api.services.inference import (
    InferenceScheduler,
    ResponseCache,
    SchedulerConfig,
    SchedulerState,
)
from tests.utils import RecordingSleep, ScriptedInferenceClient, always_failing, settle

pytestmark = pytest.mark.asyncio


def _build(
    client: ScriptedInferenceClient,
    sleep: RecordingSleep,
    config: SchedulerConfig,
    cache: ResponseCache | None = None,
) -> InferenceScheduler:
    return InferenceScheduler(
        client=client,
        cache=cache if cache is not None else ResponseCache(),
        config=config,
        sleep=sleep,
    )


async def test_cache_hit_resolves_without_calling_the_client(
    sleep: RecordingSleep, scheduler_config: SchedulerConfig
) -> None:
    client = ScriptedInferenceClient(lambda prompt: "fresh")
    cache = ResponseCache()
    cache.store("cached prompt", "cached answer")
    scheduler = _build(client, sleep, scheduler_config, cache)

    future = scheduler.enqueue("cached prompt")

    assert future.done()
    assert future.result() == "cached answer"
    assert client.calls == []
    assert scheduler.state is SchedulerState.IDLE


async def test_repeated_prompt_within_ttl_calls_provider_once(
    sleep: RecordingSleep, scheduler_config: SchedulerConfig
) -> None:
    client = ScriptedInferenceClient(lambda prompt: f"answer to {prompt}")
    scheduler = _build(client, sleep, scheduler_config)

    first = await scheduler.request("What is the triage level?")
    second = await scheduler.request("What  is the triage level?")

    assert first == second == "answer to What is the triage level?"
    assert len(client.calls) == 1


async def test_requests_dispatch_in_enqueue_order_in_bounded_batches(sleep: RecordingSleep) -> None:
    client = ScriptedInferenceClient(lambda prompt: prompt.upper())
    scheduler = _build(client, sleep, SchedulerConfig(batch_size=2, batch_wait=0.5))

    prompts = [f"prompt-{index}" for index in range(5)]
    futures = [scheduler.enqueue(prompt) for prompt in prompts]
    results = await asyncio.gather(*futures)

    assert results == [prompt.upper() for prompt in prompts]
    assert client.calls == prompts
    assert client.max_in_flight == 2
    # three batches, so two pauses between them
    assert sleep.delays == [0.5, 0.5]


async def test_exhausted_retries_reject_with_the_last_failure(
    sleep: RecordingSleep, scheduler_config: SchedulerConfig
) -> None:
    attempts: list[int] = []

    def handler(prompt: str) -> str:
        attempts.append(len(attempts) + 1)
        raise InferenceFailure(f"attempt {len(attempts)} failed")

    client = ScriptedInferenceClient(handler)
    scheduler = _build(client, sleep, scheduler_config)

    with pytest.raises(InferenceFailure, match="attempt 3 failed"):
        await scheduler.request("flaky prompt")

    assert len(client.calls) == 3
    assert sleep.delays == [1.0, 2.0]
    await settle(lambda: scheduler.state is SchedulerState.IDLE)
    assert len(client.calls) == 3


async def test_retry_succeeds_and_populates_cache(
    sleep: RecordingSleep, scheduler_config: SchedulerConfig
) -> None:
    outcomes = iter([InferenceFailure("rate limited"), "recovered"])

    def handler(prompt: str) -> str:
        outcome = next(outcomes)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    client = ScriptedInferenceClient(handler)
    cache = ResponseCache()
    scheduler = _build(client, sleep, scheduler_config, cache)

    assert await scheduler.request("prompt") == "recovered"
    assert sleep.delays == [1.0]
    assert cache.lookup("prompt") == "recovered"


async def test_unexpected_errors_are_wrapped_with_their_cause(sleep: RecordingSleep) -> None:
    def handler(prompt: str) -> str:
        raise KeyError("candidates")

    client = ScriptedInferenceClient(handler)
    scheduler = _build(client, sleep, SchedulerConfig(max_retries=1))

    with pytest.raises(InferenceFailure) as excinfo:
        await scheduler.request("prompt")

    assert isinstance(excinfo.value.cause, KeyError)
    assert sleep.delays == []


async def test_a_failing_request_does_not_affect_its_batch_mates(
    sleep: RecordingSleep, scheduler_config: SchedulerConfig
) -> None:
    def handler(prompt: str) -> str:
        if prompt == "bad":
            raise InferenceFailure("bad prompt")
        return "ok"

    scheduler = _build(ScriptedInferenceClient(handler), sleep, scheduler_config)

    good = scheduler.enqueue("good")
    bad = scheduler.enqueue("bad")
    results = await asyncio.gather(good, bad, return_exceptions=True)

    assert results[0] == "ok"
    assert isinstance(results[1], InferenceFailure)


async def test_only_one_drain_loop_runs_at_a_time(sleep: RecordingSleep) -> None:
    client = ScriptedInferenceClient(lambda prompt: "done")
    scheduler = _build(client, sleep, SchedulerConfig(batch_size=1, batch_wait=0.0))

    first = scheduler.enqueue("one")
    assert scheduler.state is SchedulerState.DRAINING
    await asyncio.sleep(0)
    rest = [scheduler.enqueue("two"), scheduler.enqueue("three")]

    await asyncio.gather(first, *rest)

    assert client.max_in_flight == 1
    assert client.calls == ["one", "two", "three"]
    await settle(lambda: scheduler.state is SchedulerState.IDLE)
    assert scheduler.pending == 0


async def test_timeout_bounds_the_wait_but_the_request_still_fills_the_cache(
    sleep: RecordingSleep, scheduler_config: SchedulerConfig
) -> None:
    release = asyncio.Event()

    async def handler(prompt: str) -> str:
        await release.wait()
        return "late answer"

    cache = ResponseCache()
    scheduler = _build(ScriptedInferenceClient(handler), sleep, scheduler_config, cache)

    with pytest.raises(asyncio.TimeoutError):
        await scheduler.request("slow prompt", timeout=0.01)

    release.set()
    await settle(lambda: cache.lookup("slow prompt") is not None)
    assert cache.lookup("slow prompt") == "late answer"


async def test_cancelled_caller_leaves_no_unretrieved_failure(
    sleep: RecordingSleep, scheduler_config: SchedulerConfig
) -> None:
    loop = asyncio.get_running_loop()
    reported: list[dict[str, Any]] = []
    loop.set_exception_handler(lambda _loop, context: reported.append(context))
    release = asyncio.Event()

    async def handler(prompt: str) -> str:
        await release.wait()
        raise InferenceFailure("provider down")

    scheduler = _build(ScriptedInferenceClient(handler), sleep, scheduler_config)
    try:
        waiter = asyncio.create_task(scheduler.request("doomed prompt"))
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        release.set()
        await settle(lambda: scheduler.state is SchedulerState.IDLE)
        del waiter
        gc.collect()

        assert [context for context in reported if "exception" in context] == []
    finally:
        loop.set_exception_handler(None)


async def test_aclose_rejects_pending_requests_and_later_enqueues(
    sleep: RecordingSleep, scheduler_config: SchedulerConfig
) -> None:
    never = asyncio.Event()

    async def handler(prompt: str) -> str:
        await never.wait()
        return "unreachable"

    scheduler = _build(ScriptedInferenceClient(handler), sleep, scheduler_config)
    in_flight = scheduler.enqueue("stuck")
    await asyncio.sleep(0)

    await scheduler.aclose()

    with pytest.raises(InferenceFailure):
        await in_flight
    with pytest.raises(InferenceFailure, match="closed"):
        await scheduler.enqueue("after close")
    assert scheduler.state is SchedulerState.IDLE


async def test_always_failing_client_is_called_max_retries_times(sleep: RecordingSleep) -> None:
    client = ScriptedInferenceClient(always_failing)
    scheduler = _build(client, sleep, SchedulerConfig(max_retries=4, initial_delay=0.25))

    with pytest.raises(InferenceFailure) as excinfo:
        await scheduler.request("prompt")

    assert len(client.calls) == 4
    assert sleep.delays == [0.25, 0.5, 1.0]
    assert isinstance(excinfo.value.cause, ConnectionError)
