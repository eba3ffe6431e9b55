"""Sequential, rate-limited dispatch of (chunk, metric) evaluation tasks.

One backend call is in flight at a time. Every call, retries included,
starts at least `inter_call_delay_seconds` after the previous call started.
Retryable failures back off exponentially with jitter:

  delay = min(base * 2^attempt + jitter, max_delay)
  jitter = random(0, base * 0.5)

Failures never escape `Dispatcher.run`; each one ends its task as a degraded
result with score 0 and the reason attached.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass

from essay_eval.backends.base import ScoringBackend
from essay_eval.config import DispatchConfig
from essay_eval.errors import AuthFailure, BackendError, BackendTimeout
from essay_eval.ingest.chunker import reassemble
from essay_eval.scoring.catalog import MetricCatalog
from essay_eval.scoring.parser import parse_response
from essay_eval.types import (
    Chunk,
    MetricDefinition,
    MetricResult,
    MetricScope,
    RunStatus,
    TaskRecord,
    TaskState,
)

logger = logging.getLogger(__name__)

_STOP_REASONS = {
    RunStatus.CANCELLED: "cancelled before evaluation",
    RunStatus.DEADLINE_EXCEEDED: "run deadline exceeded",
}
_STOP_LABELS = {
    RunStatus.CANCELLED: "cancelled",
    RunStatus.DEADLINE_EXCEEDED: "run deadline exceeded",
}


class CancelToken:
    """Cooperative cancellation shared between a caller and a running dispatch."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self, timeout: float) -> bool:
        """Sleep up to `timeout` seconds; return early with True if cancelled."""
        if self._event.is_set():
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(timeout, 0.0))
        except asyncio.TimeoutError:
            return False
        return True


class _Stopped(Exception):
    def __init__(self, status: RunStatus) -> None:
        super().__init__(status.value)
        self.status = status
        self.last_error: Exception | None = None


@dataclass(frozen=True, slots=True)
class EvaluationTask:
    key: str
    metric: MetricDefinition
    chunk_id: str | None
    text: str


@dataclass(slots=True)
class DispatchOutcome:
    results: list[MetricResult]
    records: list[TaskRecord]
    status: RunStatus = RunStatus.COMPLETED


class Dispatcher:
    """Runs the evaluation tasks of one analysis run through one backend.

    A dispatcher owns the call-spacing state of its run, so concurrent runs
    each need their own instance. Spacing carries over between `run` calls;
    the credential circuit does not.
    """

    def __init__(
        self,
        backend: ScoringBackend,
        config: DispatchConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        self.backend = backend
        self.config = config or DispatchConfig()
        self._clock = clock
        self._rng = rng or random.Random()
        self._last_call_started: float | None = None
        self._circuit_open: str | None = None

    def plan(self, chunks: list[Chunk], catalog: MetricCatalog) -> list[EvaluationTask]:
        """Enumerate tasks chunk-major, then document-level metrics once each."""

        tasks: list[EvaluationTask] = []
        chunk_metrics = catalog.by_scope(MetricScope.CHUNK)
        for chunk in chunks:
            for metric in chunk_metrics:
                tasks.append(
                    EvaluationTask(
                        key=f"{chunk.chunk_id}:{metric.name}",
                        metric=metric,
                        chunk_id=chunk.chunk_id,
                        text=chunk.text,
                    )
                )

        document_metrics = catalog.by_scope(MetricScope.DOCUMENT)
        if chunks and document_metrics:
            full_text = reassemble(chunks)
            doc_id = chunks[0].doc_id
            for metric in document_metrics:
                tasks.append(
                    EvaluationTask(
                        key=f"{doc_id}:{metric.name}",
                        metric=metric,
                        chunk_id=None,
                        text=full_text,
                    )
                )
        return tasks

    async def run(
        self,
        chunks: list[Chunk],
        catalog: MetricCatalog,
        *,
        cancel_token: CancelToken | None = None,
        deadline: float | None = None,
    ) -> DispatchOutcome:
        """Evaluate every task and return results in enumeration order.

        `deadline` is an absolute value of the dispatcher clock. Once it
        passes, or once `cancel_token` fires, no further calls are made and
        the remaining tasks are recorded as degraded.
        """

        self._circuit_open = None
        tasks = self.plan(chunks, catalog)
        records = [
            TaskRecord(
                task_key=task.key,
                metric_name=task.metric.name,
                category=task.metric.category,
                chunk_id=task.chunk_id,
            )
            for task in tasks
        ]
        logger.info(
            "Dispatching %d tasks (%d chunks, catalog=%s) via %s",
            len(tasks),
            len(chunks),
            catalog.name,
            self.backend.name,
        )

        results: list[MetricResult] = []
        status = RunStatus.COMPLETED
        for task, record in zip(tasks, records, strict=True):
            if status is RunStatus.COMPLETED:
                status = self._stop_status(cancel_token, deadline)

            if status is not RunStatus.COMPLETED:
                result = self._skip(task, record, status)
            else:
                try:
                    result = await self._execute(task, record, cancel_token, deadline)
                except _Stopped as stop:
                    status = stop.status
                    result = self._skip(task, record, status, stop.last_error)

            results.append(result)

        if status is not RunStatus.COMPLETED:
            logger.warning("Dispatch stopped early: %s", status.value)
        return DispatchOutcome(results=results, records=records, status=status)

    async def _execute(
        self,
        task: EvaluationTask,
        record: TaskRecord,
        cancel_token: CancelToken | None,
        deadline: float | None,
    ) -> MetricResult:
        attempt = 0
        last_error: Exception | None = None
        while True:
            if self._circuit_open is not None:
                return self._degrade(task, record, f"backend rejected credentials: {self._circuit_open}")

            try:
                await self._wait_for_slot(cancel_token, deadline)
            except _Stopped as stop:
                stop.last_error = last_error
                raise
            timeout = self._call_timeout(deadline)

            record.transition(TaskState.IN_FLIGHT)
            record.attempts += 1
            self._last_call_started = self._clock()
            started = time.perf_counter()
            error: Exception
            try:
                raw = await asyncio.wait_for(
                    self.backend.evaluate(task.text, task.metric, timeout=timeout),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                error = BackendTimeout(
                    f"no response within {timeout:.1f}s", backend=self.backend.name
                )
            except BackendError as exc:
                error = exc
            except Exception as exc:
                logger.exception("Backend %s raised unexpectedly on %s", self.backend.name, task.key)
                error = exc
            else:
                record.latency_ms += (time.perf_counter() - started) * 1000.0
                record.model = raw.model
                parsed = parse_response(raw.text)
                result = parsed.to_metric_result(
                    task.metric, chunk_id=task.chunk_id, attempts=record.attempts
                )
                if parsed.degraded:
                    record.error = parsed.reason
                    record.transition(TaskState.DEGRADED)
                    logger.info("Degraded %s: %s", task.key, parsed.reason)
                else:
                    record.transition(TaskState.SUCCEEDED)
                return result

            record.latency_ms += (time.perf_counter() - started) * 1000.0
            last_error = error
            if isinstance(error, AuthFailure):
                self._circuit_open = str(error)
                logger.error("Authentication failed for %s; skipping remaining calls", self.backend.name)

            retryable = isinstance(error, BackendError) and error.retryable
            if retryable and attempt < self.config.max_retries:
                record.transition(TaskState.RETRYING)
                delay = self._backoff(attempt)
                logger.info(
                    "Retrying %s (attempt %d/%d) in %.2fs: %s",
                    task.key,
                    attempt + 1,
                    self.config.max_retries,
                    delay,
                    error,
                )
                try:
                    await self._sleep(delay, cancel_token, deadline)
                except _Stopped as stop:
                    stop.last_error = error
                    raise
                attempt += 1
                continue

            if retryable:
                reason = f"{_error_kind(error)} after {record.attempts} attempts"
            else:
                reason = f"{_error_kind(error)}: {error}"
            return self._degrade(task, record, reason)

    async def _wait_for_slot(self, cancel_token: CancelToken | None, deadline: float | None) -> None:
        self._raise_if_stopped(cancel_token, deadline)
        if self._last_call_started is None:
            return
        while True:
            remaining = (
                self._last_call_started + self.config.inter_call_delay_seconds - self._clock()
            )
            if remaining <= 0:
                return
            await self._sleep(remaining, cancel_token, deadline)

    async def _sleep(
        self, seconds: float, cancel_token: CancelToken | None, deadline: float | None
    ) -> None:
        capped = deadline is not None and deadline - self._clock() <= seconds
        if capped:
            seconds = max(0.0, deadline - self._clock())
        if cancel_token is not None:
            await cancel_token.wait(seconds)
        else:
            await asyncio.sleep(seconds)
        self._raise_if_stopped(cancel_token, deadline)
        # timers can fire slightly early, so a wait capped by the deadline ends the run
        if capped:
            raise _Stopped(RunStatus.DEADLINE_EXCEEDED)

    def _raise_if_stopped(self, cancel_token: CancelToken | None, deadline: float | None) -> None:
        status = self._stop_status(cancel_token, deadline)
        if status is not RunStatus.COMPLETED:
            raise _Stopped(status)

    def _stop_status(self, cancel_token: CancelToken | None, deadline: float | None) -> RunStatus:
        if cancel_token is not None and cancel_token.cancelled:
            return RunStatus.CANCELLED
        if deadline is not None and self._clock() >= deadline:
            return RunStatus.DEADLINE_EXCEEDED
        return RunStatus.COMPLETED

    def _call_timeout(self, deadline: float | None) -> float:
        timeout = self.config.per_call_timeout_seconds
        if deadline is not None:
            timeout = min(timeout, deadline - self._clock())
        return max(timeout, 0.001)

    def _backoff(self, attempt: int) -> float:
        base = self.config.base_retry_delay_seconds
        jitter = self._rng.uniform(0.0, base * 0.5)
        return min(base * (2**attempt) + jitter, self.config.max_retry_delay_seconds)

    def _degrade(self, task: EvaluationTask, record: TaskRecord, reason: str) -> MetricResult:
        record.error = reason
        record.transition(TaskState.DEGRADED)
        logger.warning("Degraded %s: %s", task.key, reason)
        return MetricResult.degraded_for(
            task.metric, chunk_id=task.chunk_id, reason=reason, attempts=record.attempts
        )

    def _skip(
        self,
        task: EvaluationTask,
        record: TaskRecord,
        status: RunStatus,
        last_error: Exception | None = None,
    ) -> MetricResult:
        if record.attempts == 0:
            reason = _STOP_REASONS[status]
        else:
            reason = f"{_STOP_LABELS[status]} after {record.attempts} attempts"
            if last_error is not None:
                reason = f"{reason} ({_error_kind(last_error)})"
        record.error = reason
        record.transition(TaskState.DEGRADED)
        return MetricResult.degraded_for(
            task.metric, chunk_id=task.chunk_id, reason=reason, attempts=record.attempts
        )


def _error_kind(error: Exception) -> str:
    names = {
        "RateLimited": "rate limited",
        "BackendTimeout": "timed out",
        "AuthFailure": "authentication failed",
        "BackendUnavailable": "backend unavailable",
    }
    return names.get(type(error).__name__, type(error).__name__)
