"""Reduction of metric results into category and composite scores."""

from __future__ import annotations

from collections.abc import Iterable

from essay_eval.config import CompositePolicy
from essay_eval.errors import InvalidInput
from essay_eval.scoring.catalog import MetricCatalog
from essay_eval.types import CategoryResult, ComparativeResult, CompositeScore, MetricResult

_PRECISION = 4


class Aggregator:
    """Pure, order-independent reduction over a completed set of results.

    Degraded results are averaged in with their zero score rather than being
    excluded, so the composite never overstates quality.
    """

    def __init__(self, policy: CompositePolicy | None = None) -> None:
        self.policy = policy or CompositePolicy()

    def check_catalog(self, catalog: MetricCatalog) -> None:
        missing = sorted(set(self.policy.weights) - set(catalog.categories()))
        if missing:
            raise InvalidInput(
                f"Weights reference categories outside catalog '{catalog.name}': {', '.join(missing)}"
            )

    def aggregate(
        self, metric_results: Iterable[MetricResult], catalog: MetricCatalog
    ) -> tuple[list[CategoryResult], CompositeScore]:
        self.check_catalog(catalog)

        grouped: dict[str, list[MetricResult]] = {category: [] for category in catalog.categories()}
        for result in metric_results:
            grouped.setdefault(result.category, []).append(result)

        categories: list[CategoryResult] = []
        for category, results in grouped.items():
            ordered = tuple(sorted(results, key=_result_sort_key))
            weights = [catalog.metric_weight(r.metric_name) for r in ordered]
            total_weight = sum(weights)
            score = (
                sum(weight * r.score for weight, r in zip(weights, ordered)) / total_weight
                if total_weight
                else 0.0
            )
            categories.append(
                CategoryResult(
                    category=category,
                    metric_results=ordered,
                    category_score=round(score, _PRECISION),
                    score_max=_score_max(category, ordered, catalog),
                )
            )

        return categories, self.composite(categories)

    def composite(self, categories: list[CategoryResult]) -> CompositeScore:
        by_name = {category.category: category for category in categories}
        inputs: dict[str, float] = {}
        total = 0.0
        for name, weight in self.policy.weights.items():
            category = by_name.get(name)
            if category is None:
                raise InvalidInput(f"No results for weighted category: {name}")
            normalized = category.category_score * self.policy.scale / category.score_max
            inputs[name] = round(normalized, _PRECISION)
            total += normalized * weight
        return CompositeScore(
            value=round(total, _PRECISION),
            weights=dict(self.policy.weights),
            inputs=inputs,
            scale=self.policy.scale,
        )

    def compare(
        self,
        composite_a: CompositeScore,
        composite_b: CompositeScore,
        categories_a: list[CategoryResult] | None = None,
        categories_b: list[CategoryResult] | None = None,
    ) -> ComparativeResult:
        delta = round(composite_a.value - composite_b.value, _PRECISION)
        if abs(delta) <= self.policy.tie_epsilon:
            label = "Tie"
        elif delta > 0:
            label = "A stronger"
        else:
            label = "B stronger"

        category_deltas: dict[str, float] = {}
        if categories_a and categories_b:
            scores_b = {c.category: c.category_score for c in categories_b}
            for category in categories_a:
                if category.category in scores_b:
                    category_deltas[category.category] = round(
                        category.category_score - scores_b[category.category], _PRECISION
                    )

        return ComparativeResult(delta=delta, label=label, category_deltas=category_deltas)


def _result_sort_key(result: MetricResult) -> tuple[str, str]:
    return (result.chunk_id or "", result.metric_name)


def _score_max(category: str, results: tuple[MetricResult, ...], catalog: MetricCatalog) -> float:
    if results:
        return results[0].score_max
    try:
        return catalog.score_max_for(category)
    except KeyError:
        return 100.0
