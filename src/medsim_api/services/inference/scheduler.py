"""Batched, retrying dispatcher that sits between callers and the inference client."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from medsim_api.config.settings import Settings
from medsim_api.core.errors import InferenceFailure
from medsim_api.services.inference.cache import Clock, ResponseCache
from medsim_api.services.inference.clients import InferenceClient

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class SchedulerState(str, Enum):
    IDLE = "idle"
    DRAINING = "draining"


class RequestStatus(str, Enum):
    QUEUED = "queued"
    DISPATCHED = "dispatched"
    RETRYING = "retrying"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class SchedulerConfig:
    """Batching and retry bounds applied to every request."""

    batch_size: int = 50
    batch_wait: float = 0.1
    max_retries: int = 3
    initial_delay: float = 1.0

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1.")
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1.")

    @classmethod
    def from_settings(cls, settings: Settings) -> SchedulerConfig:
        return cls(
            batch_size=settings.inference_batch_size,
            batch_wait=settings.inference_batch_wait_seconds,
            max_retries=settings.inference_max_retries,
            initial_delay=settings.inference_initial_delay_seconds,
        )

    def backoff(self, failed_attempt: int) -> float:
        """Delay after failed attempt ``n`` before attempt ``n + 1``."""
        return self.initial_delay * 2 ** (failed_attempt - 1)


@dataclass(slots=True, eq=False)
class InferenceRequest:
    """A queued prompt and the future its caller is waiting on."""

    prompt: str
    future: asyncio.Future[str]
    created_at: float
    attempts: int = 0
    status: RequestStatus = field(default=RequestStatus.QUEUED)


class InferenceScheduler:
    """Single shared queue of provider calls.

    ``enqueue`` returns a future straight away. Cache hits resolve it
    immediately; misses join a FIFO queue that one drain task empties in
    batches of at most ``batch_size`` concurrent calls. Each request is
    retried on its own, so a failing prompt never holds back its batch-mates
    beyond the batch boundary.

    All methods must be called from the event loop that owns the scheduler.
    """

    def __init__(
        self,
        *,
        client: InferenceClient,
        cache: ResponseCache,
        config: SchedulerConfig | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self._client = client
        self._cache = cache
        self._config = config or SchedulerConfig()
        self._sleep = sleep
        self._clock = clock
        self._queue: deque[InferenceRequest] = deque()
        self._in_flight: set[InferenceRequest] = set()
        self._state = SchedulerState.IDLE
        self._drain_task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def pending(self) -> int:
        """Requests queued or dispatched but not yet settled."""
        return len(self._queue) + len(self._in_flight)

    def enqueue(self, prompt: str) -> asyncio.Future[str]:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[str] = loop.create_future()

        cached = self._cache.lookup(prompt)
        if cached is not None:
            logger.debug("Inference cache hit", extra={"prompt_chars": len(prompt)})
            future.set_result(cached)
            return future

        if self._closed:
            future.set_exception(InferenceFailure("Inference scheduler is closed."))
            return future

        self._queue.append(
            InferenceRequest(prompt=prompt, future=future, created_at=self._clock())
        )
        if self._state is SchedulerState.IDLE:
            self._state = SchedulerState.DRAINING
            self._drain_task = loop.create_task(self._drain())
        return future

    async def request(self, prompt: str, *, timeout: float | None = None) -> str:
        """Enqueue ``prompt`` and wait for its text.

        The timeout only bounds the wait: the underlying request keeps running
        and still populates the cache when it eventually succeeds.
        """
        future = self.enqueue(prompt)
        try:
            return await asyncio.wait_for(asyncio.shield(future), timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            future.add_done_callback(_discard_outcome)
            raise

    async def aclose(self) -> None:
        """Stop draining and reject everything still waiting."""
        self._closed = True
        abandoned = [*self._queue, *self._in_flight]
        task = self._drain_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._queue.clear()
        self._in_flight.clear()
        for request in abandoned:
            request.status = RequestStatus.FAILED
            if not request.future.done():
                request.future.set_exception(InferenceFailure("Inference scheduler closed."))
                request.future.add_done_callback(_discard_outcome)
        if abandoned:
            logger.warning(
                "Inference scheduler closed with pending requests",
                extra={"abandoned": len(abandoned)},
            )

    async def _drain(self) -> None:
        batch_number = 0
        try:
            while self._queue:
                size = min(self._config.batch_size, len(self._queue))
                batch = [self._queue.popleft() for _ in range(size)]
                self._in_flight.update(batch)
                batch_number += 1
                logger.debug(
                    "Dispatching inference batch",
                    extra={"batch": batch_number, "size": size, "queued": len(self._queue)},
                )
                await asyncio.gather(*(self._dispatch(request) for request in batch))
                if self._queue and self._config.batch_wait > 0:
                    await self._sleep(self._config.batch_wait)
        finally:
            # no suspension point between the empty-queue check and this reset
            self._state = SchedulerState.IDLE
            self._drain_task = None

    async def _dispatch(self, request: InferenceRequest) -> None:
        try:
            await self._run_with_retries(request)
        finally:
            self._in_flight.discard(request)

    async def _run_with_retries(self, request: InferenceRequest) -> None:
        last_failure: InferenceFailure | None = None
        max_retries = self._config.max_retries

        for attempt in range(1, max_retries + 1):
            request.attempts = attempt
            request.status = RequestStatus.DISPATCHED
            try:
                text = await self._client.invoke(request.prompt)
            except InferenceFailure as exc:
                last_failure = exc
            except Exception as exc:  # noqa: BLE001
                last_failure = InferenceFailure(f"Unexpected inference error: {exc!r}", cause=exc)
                last_failure.__cause__ = exc
            else:
                self._cache.store(request.prompt, text)
                request.status = RequestStatus.RESOLVED
                if not request.future.done():
                    request.future.set_result(text)
                return

            cause = last_failure.cause or last_failure
            if attempt < max_retries:
                delay = self._config.backoff(attempt)
                request.status = RequestStatus.RETRYING
                logger.warning(
                    "Inference attempt failed; retrying",
                    extra={
                        "attempt": attempt,
                        "max_retries": max_retries,
                        "delay_seconds": delay,
                        "reason": str(last_failure),
                        "cause": repr(cause),
                    },
                )
                await self._sleep(delay)

        request.status = RequestStatus.FAILED
        assert last_failure is not None
        logger.error(
            "Inference request failed after retries",
            extra={
                "attempts": request.attempts,
                "reason": str(last_failure),
                "cause": repr(last_failure.cause or last_failure),
                "age_seconds": round(self._clock() - request.created_at, 3),
            },
        )
        if not request.future.done():
            request.future.set_exception(last_failure)


def _discard_outcome(future: asyncio.Future[str]) -> None:
    # nobody awaits this future anymore; mark its exception as retrieved
    if not future.cancelled():
        future.exception()


__all__ = [
    "InferenceRequest",
    "InferenceScheduler",
    "RequestStatus",
    "SchedulerConfig",
    "SchedulerState",
]
