import json
import logging
from datetime import datetime, timedelta, timezone

import pytest

from essay_eval.obs.logging import JSONFormatter, setup_logging
from essay_eval.obs.tracing import RunStore, Timer
from essay_eval.types import (
    AnalysisRun,
    CompositeScore,
    Document,
    DocumentAnalysis,
    MetricDefinition,
    MetricResult,
    RunMode,
    RunStatus,
    TaskRecord,
)


def _run(run_id: str, *, duration_ms: float, composite: float, degraded: bool = False) -> AnalysisRun:
    metric = MetricDefinition(name="Depth", category="depth", score_max=10.0)
    result = (
        MetricResult.degraded_for(metric, chunk_id="c", reason="timed out after 4 attempts", attempts=4)
        if degraded
        else MetricResult("Depth", "depth", "q", "e", 7.0, score_max=10.0, chunk_id="c")
    )
    record = TaskRecord(task_key="c:Depth", metric_name="Depth", category="depth", chunk_id="c")
    record.attempts = result.attempts
    analysis = DocumentAnalysis(
        document=Document.create("t", "text"),
        chunks=(),
        metric_results=(result,),
        category_results=(),
        composite=CompositeScore(value=composite, weights={"depth": 1.0}, inputs={"depth": composite}),
        task_records=(record,),
    )
    started = datetime(2026, 1, 1, tzinfo=timezone.utc)
    return AnalysisRun(
        run_id=run_id,
        mode=RunMode.SINGLE,
        analyses=(analysis,),
        started_at=started,
        completed_at=started + timedelta(milliseconds=duration_ms),
        backend_used="offline",
        status=RunStatus.DEADLINE_EXCEEDED if degraded else RunStatus.COMPLETED,
        degraded_metrics=tuple(analysis.degraded_metrics()),
    )


def test_run_store_summary() -> None:
    store = RunStore()
    store.save(_run("run-a", duration_ms=100.0, composite=6.0))
    store.save(_run("run-b", duration_ms=300.0, composite=8.0, degraded=True))

    summary = store.summary()

    assert summary["total_runs"] == 2
    assert summary["avg_duration_ms"] == pytest.approx(200.0)
    assert summary["total_backend_calls"] == 5
    assert summary["degraded_ratio"] == 0.5
    assert summary["incomplete_runs"] == 1
    assert summary["avg_composite"] == pytest.approx(7.0)
    assert [run.run_id for run in store.list_recent(limit=1)] == ["run-b"]


def test_run_store_lookup_and_eviction() -> None:
    store = RunStore(max_runs=2)
    for index in range(3):
        store.save(_run(f"run-{index}", duration_ms=10.0, composite=5.0))

    assert len(store) == 2
    assert store.get("run-2").run_id == "run-2"
    with pytest.raises(KeyError):
        store.get("run-0")
    assert RunStore().summary()["total_runs"] == 0


def test_timer_measures_elapsed() -> None:
    with Timer() as timer:
        sum(range(1000))
    assert timer.elapsed_ms >= 0.0


def test_json_formatter_includes_run_id() -> None:
    record = logging.LogRecord("essay_eval.runner", logging.INFO, __file__, 1, "Run %s done", ("r1",), None)
    record.run_id = "r1"

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "Run r1 done"
    assert payload["run_id"] == "r1"
    assert payload["level"] == "INFO"


def test_setup_logging_installs_single_handler() -> None:
    root = logging.getLogger()
    previous = root.handlers[:], root.level
    try:
        setup_logging("debug", json_output=True)
        setup_logging("debug", json_output=True)

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert root.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers[:] = previous[0]
        root.setLevel(previous[1])
