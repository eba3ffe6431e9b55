"""Single and comparative analysis runs."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from pydantic import ValidationError

from essay_eval.backends.base import ScoringBackend
from essay_eval.config import CompositePolicy, RunConfig
from essay_eval.dispatch.scheduler import CancelToken, Dispatcher
from essay_eval.errors import InvalidInput
from essay_eval.ingest.chunker import MathAwareChunker
from essay_eval.obs.tracing import RunStore, Timer
from essay_eval.scoring.aggregator import Aggregator
from essay_eval.scoring.catalog import MetricCatalog, get_catalog
from essay_eval.types import (
    AnalysisRun,
    Document,
    DocumentAnalysis,
    RunMode,
    RunStatus,
)

logger = logging.getLogger(__name__)


def build_policy(
    catalog: MetricCatalog,
    weights: dict[str, float] | None = None,
    *,
    base: CompositePolicy | None = None,
) -> CompositePolicy:
    """Resolve the composite policy for a run, rejecting invalid weights as input errors."""

    if weights is None and base is not None:
        return base
    try:
        return CompositePolicy(
            weights=dict(weights if weights is not None else catalog.default_weights),
            tie_epsilon=base.tie_epsilon if base else 0.05,
            scale=base.scale if base else 10.0,
        )
    except ValidationError as exc:
        messages = "; ".join(error["msg"] for error in exc.errors())
        raise InvalidInput(f"Invalid composite weights: {messages}") from exc


class RunController:
    """Drives documents through chunking, dispatch and aggregation.

    Everything that can be rejected is rejected before the first backend
    call. Once dispatch starts, the run always completes and is returned,
    possibly with degraded metrics or a cancelled/deadline status.
    """

    def __init__(
        self,
        backend: ScoringBackend,
        *,
        config: RunConfig | None = None,
        chunker: MathAwareChunker | None = None,
        run_store: RunStore | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.backend = backend
        self.config = config or RunConfig()
        self.chunker = chunker or MathAwareChunker(self.config.chunking)
        self.run_store = run_store
        self._clock = clock

    async def run_single(
        self,
        document: Document,
        *,
        weights: dict[str, float] | None = None,
        cancel_token: CancelToken | None = None,
    ) -> AnalysisRun:
        return await self._run(
            RunMode.SINGLE, [document], weights=weights, cancel_token=cancel_token
        )

    async def run_comparative(
        self,
        document_a: Document,
        document_b: Document,
        *,
        weights: dict[str, float] | None = None,
        cancel_token: CancelToken | None = None,
    ) -> AnalysisRun:
        if document_a.doc_id == document_b.doc_id:
            raise InvalidInput("Comparative runs need two distinct documents")
        return await self._run(
            RunMode.COMPARATIVE,
            [document_a, document_b],
            weights=weights,
            cancel_token=cancel_token,
        )

    def validate(self, document: Document) -> None:
        if not document.text.strip():
            raise InvalidInput(f"Document '{document.title or document.doc_id}' is empty")
        words = len(document.text.split())
        if words < self.config.min_words:
            raise InvalidInput(
                f"Document '{document.title or document.doc_id}' has {words} words; "
                f"at least {self.config.min_words} are required"
            )

    async def _run(
        self,
        mode: RunMode,
        documents: list[Document],
        *,
        weights: dict[str, float] | None,
        cancel_token: CancelToken | None,
    ) -> AnalysisRun:
        catalog = get_catalog(self.config.catalog)
        aggregator = Aggregator(build_policy(catalog, weights, base=self.config.policy))
        aggregator.check_catalog(catalog)
        for document in documents:
            self.validate(document)
        self.backend.ensure_available()

        run_id = f"run-{uuid.uuid4().hex[:12]}"
        started_at = datetime.now(timezone.utc)
        deadline = None
        if self.config.dispatch.run_deadline_seconds is not None:
            deadline = self._clock() + self.config.dispatch.run_deadline_seconds

        logger.info(
            "Run %s started: mode=%s backend=%s catalog=%s documents=%d",
            run_id,
            mode.value,
            self.backend.name,
            catalog.name,
            len(documents),
            extra={"run_id": run_id},
        )

        dispatcher = Dispatcher(self.backend, self.config.dispatch, clock=self._clock)
        analyses: list[DocumentAnalysis] = []
        status = RunStatus.COMPLETED
        with Timer() as timer:
            for document in documents:
                chunks = self.chunker.chunk(document.text, doc_id=document.doc_id)
                outcome = await dispatcher.run(
                    chunks, catalog, cancel_token=cancel_token, deadline=deadline
                )
                if status is RunStatus.COMPLETED:
                    status = outcome.status
                category_results, composite = aggregator.aggregate(outcome.results, catalog)
                analyses.append(
                    DocumentAnalysis(
                        document=document,
                        chunks=tuple(chunks),
                        metric_results=tuple(outcome.results),
                        category_results=tuple(category_results),
                        composite=composite,
                        task_records=tuple(outcome.records),
                    )
                )

        comparison = None
        if mode is RunMode.COMPARATIVE:
            first, second = analyses
            comparison = aggregator.compare(
                first.composite,
                second.composite,
                list(first.category_results),
                list(second.category_results),
            )

        run = AnalysisRun(
            run_id=run_id,
            mode=mode,
            analyses=tuple(analyses),
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            backend_used=self.backend.name,
            status=status,
            comparison=comparison,
            degraded_metrics=tuple(
                degraded for analysis in analyses for degraded in analysis.degraded_metrics()
            ),
        )
        logger.info(
            "Run %s finished: status=%s composite=%s degraded=%d elapsed_ms=%.1f",
            run_id,
            status.value,
            [analysis.composite.value for analysis in analyses],
            len(run.degraded_metrics),
            timer.elapsed_ms,
            extra={"run_id": run_id},
        )
        if self.run_store is not None:
            self.run_store.save(run)
        return run
