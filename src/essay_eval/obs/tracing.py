"""Run records and summary metrics for API-level observability."""

from __future__ import annotations

import time
from collections import OrderedDict

from essay_eval.types import AnalysisRun, RunStatus


class RunStore:
    """In-memory storage of completed analysis runs, oldest evicted first."""

    def __init__(self, *, max_runs: int = 500) -> None:
        self._runs: OrderedDict[str, AnalysisRun] = OrderedDict()
        self._max_runs = max_runs

    def save(self, run: AnalysisRun) -> None:
        self._runs[run.run_id] = run
        self._runs.move_to_end(run.run_id)
        while len(self._runs) > self._max_runs:
            self._runs.popitem(last=False)

    def get(self, run_id: str) -> AnalysisRun:
        run = self._runs.get(run_id)
        if run is None:
            raise KeyError(f"Run not found: {run_id}")
        return run

    def list_recent(self, limit: int = 20) -> list[AnalysisRun]:
        if limit <= 0:
            return []
        return list(self._runs.values())[-limit:]

    def __len__(self) -> int:
        return len(self._runs)

    def summary(self) -> dict[str, float | int]:
        """Aggregate run metrics for dashboard display."""
        runs = list(self._runs.values())
        total = len(runs)
        if total == 0:
            return {
                "total_runs": 0,
                "avg_duration_ms": 0.0,
                "p95_duration_ms": 0.0,
                "total_backend_calls": 0,
                "total_metric_results": 0,
                "total_degraded_metrics": 0,
                "degraded_ratio": 0.0,
                "incomplete_runs": 0,
                "avg_composite": 0.0,
            }

        durations = sorted(run.duration_ms for run in runs)
        p95_index = max(0, int((len(durations) * 0.95) - 1))
        results = sum(len(a.metric_results) for run in runs for a in run.analyses)
        degraded = sum(len(run.degraded_metrics) for run in runs)
        composites = [a.composite.value for run in runs for a in run.analyses]

        return {
            "total_runs": total,
            "avg_duration_ms": sum(durations) / total,
            "p95_duration_ms": durations[p95_index],
            "total_backend_calls": sum(run.backend_calls for run in runs),
            "total_metric_results": results,
            "total_degraded_metrics": degraded,
            "degraded_ratio": degraded / results if results else 0.0,
            "incomplete_runs": sum(1 for run in runs if run.status is not RunStatus.COMPLETED),
            "avg_composite": sum(composites) / len(composites) if composites else 0.0,
        }


class Timer:
    """Simple context timer used by the run controller."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
