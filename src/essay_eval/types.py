"""Shared domain models."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class RunMode(str, Enum):
    SINGLE = "single"
    COMPARATIVE = "comparative"


class RunStatus(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DEADLINE_EXCEEDED = "deadline_exceeded"


class MetricScope(str, Enum):
    """Whether a metric is scored per chunk or once for the whole document."""

    CHUNK = "chunk"
    DOCUMENT = "document"


class TaskState(str, Enum):
    """Lifecycle of one (chunk, metric) evaluation task."""

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    DEGRADED = "degraded"


@dataclass(frozen=True, slots=True)
class Document:
    """A submitted document; immutable for the duration of a run."""

    doc_id: str
    title: str
    text: str

    @classmethod
    def create(cls, title: str, text: str, *, doc_id: str | None = None) -> "Document":
        return cls(doc_id=doc_id or f"doc-{uuid.uuid4().hex[:12]}", title=title, text=text)


@dataclass(frozen=True, slots=True)
class Chunk:
    """A bounded, ordered, non-overlapping span of a document."""

    chunk_id: str
    doc_id: str
    ordinal: int
    text: str
    word_count: int
    start_offset: int
    end_offset: int
    preview: str
    has_math: bool = False


@dataclass(frozen=True, slots=True)
class MetricDefinition:
    name: str
    category: str
    # relative weight inside the category; None means equal share
    weight: float | None = None
    scope: MetricScope = MetricScope.CHUNK
    score_max: float = 100.0


@dataclass(frozen=True, slots=True)
class MetricResult:
    """Outcome of one evaluation task.

    Degraded results carry a zero score and the reason the evaluation could
    not be completed. The score is clamped to `[0, score_max]` on creation.
    """

    metric_name: str
    category: str
    quotation: str
    explanation: str
    score: float
    score_max: float = 100.0
    chunk_id: str | None = None
    degraded: bool = False
    degradation_reason: str | None = None
    attempts: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "score", clamp_score(self.score, self.score_max))

    @classmethod
    def degraded_for(
        cls,
        metric: MetricDefinition,
        *,
        chunk_id: str | None,
        reason: str,
        attempts: int = 0,
    ) -> "MetricResult":
        return cls(
            metric_name=metric.name,
            category=metric.category,
            quotation="Analysis unavailable",
            explanation=f"Evaluation degraded: {reason}",
            score=0.0,
            score_max=metric.score_max,
            chunk_id=chunk_id,
            degraded=True,
            degradation_reason=reason,
            attempts=attempts,
        )


@dataclass(frozen=True, slots=True)
class CategoryResult:
    category: str
    metric_results: tuple[MetricResult, ...]
    category_score: float
    score_max: float = 100.0


@dataclass(frozen=True, slots=True)
class CompositeScore:
    value: float
    weights: dict[str, float]
    inputs: dict[str, float]
    scale: float = 10.0


@dataclass(frozen=True, slots=True)
class ComparativeResult:
    delta: float
    label: str
    category_deltas: dict[str, float]


@dataclass(slots=True)
class TaskRecord:
    """Trace record for one dispatched task, updated as its state changes."""

    task_key: str
    metric_name: str
    category: str
    chunk_id: str | None
    state: TaskState = TaskState.PENDING
    history: list[TaskState] = field(default_factory=lambda: [TaskState.PENDING])
    attempts: int = 0
    latency_ms: float = 0.0
    model: str = ""
    error: str | None = None

    def transition(self, state: TaskState) -> None:
        self.state = state
        self.history.append(state)


@dataclass(frozen=True, slots=True)
class DegradedMetric:
    doc_id: str
    metric_name: str
    category: str
    chunk_id: str | None
    reason: str


@dataclass(frozen=True, slots=True)
class DocumentAnalysis:
    """Everything computed for one document within a run."""

    document: Document
    chunks: tuple[Chunk, ...]
    metric_results: tuple[MetricResult, ...]
    category_results: tuple[CategoryResult, ...]
    composite: CompositeScore
    task_records: tuple[TaskRecord, ...] = ()

    def degraded_metrics(self) -> list[DegradedMetric]:
        return [
            DegradedMetric(
                doc_id=self.document.doc_id,
                metric_name=result.metric_name,
                category=result.category,
                chunk_id=result.chunk_id,
                reason=result.degradation_reason or "unknown",
            )
            for result in self.metric_results
            if result.degraded
        ]


@dataclass(frozen=True, slots=True)
class AnalysisRun:
    run_id: str
    mode: RunMode
    analyses: tuple[DocumentAnalysis, ...]
    started_at: datetime
    completed_at: datetime
    backend_used: str
    status: RunStatus = RunStatus.COMPLETED
    comparison: ComparativeResult | None = None
    degraded_metrics: tuple[DegradedMetric, ...] = ()

    @property
    def duration_ms(self) -> float:
        return (self.completed_at - self.started_at).total_seconds() * 1000.0

    @property
    def backend_calls(self) -> int:
        return sum(
            record.attempts for analysis in self.analyses for record in analysis.task_records
        )

    def summary(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "mode": self.mode.value,
            "status": self.status.value,
            "backend": self.backend_used,
            "composite_scores": {
                analysis.document.doc_id: analysis.composite.value for analysis in self.analyses
            },
            "degraded_count": len(self.degraded_metrics),
            "duration_ms": self.duration_ms,
        }


def clamp_score(score: float, score_max: float) -> float:
    try:
        value = float(score)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    return min(max(value, 0.0), score_max)
