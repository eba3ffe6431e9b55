import random

import pytest
from pydantic import ValidationError

from essay_eval.config import CompositePolicy
from essay_eval.errors import InvalidInput
from essay_eval.scoring.aggregator import Aggregator
from essay_eval.scoring.catalog import MetricCatalog, get_catalog
from essay_eval.types import CompositeScore, MetricDefinition, MetricResult


def _result(category: str, score: float, *, name: str = "m", chunk_id: str | None = "c-0") -> MetricResult:
    return MetricResult(
        metric_name=name,
        category=category,
        quotation="q",
        explanation="e",
        score=score,
        score_max=10.0,
        chunk_id=chunk_id,
    )


def test_composite_weighted_sum_is_exact() -> None:
    results = [
        _result("conceptual_innovation", 8),
        _result("depth", 7),
        _result("coherence", 6, chunk_id=None),
        _result("insight_density", 5),
        _result("methodological_novelty", 7),
    ]

    categories, composite = Aggregator().aggregate(results, get_catalog("composite"))

    assert composite.value == 6.75
    assert [c.category for c in categories] == [
        "conceptual_innovation",
        "depth",
        "coherence",
        "insight_density",
        "methodological_novelty",
    ]
    assert composite.inputs["insight_density"] == 5.0


def test_aggregation_is_order_independent() -> None:
    results = [
        _result(category, score, name=f"m{i}", chunk_id=f"c-{i % 3}")
        for i, (category, score) in enumerate(
            [
                ("conceptual_innovation", 9),
                ("conceptual_innovation", 4),
                ("depth", 6.5),
                ("depth", 3),
                ("coherence", 7),
                ("insight_density", 2),
                ("methodological_novelty", 8),
                ("methodological_novelty", 5.5),
            ]
        )
    ]
    shuffled = list(results)
    random.Random(7).shuffle(shuffled)

    aggregator = Aggregator()
    catalog = get_catalog("composite")
    first = aggregator.aggregate(results, catalog)
    second = aggregator.aggregate(shuffled, catalog)

    assert first == second


def test_degraded_results_count_as_zero() -> None:
    metric = MetricDefinition(name="Depth", category="depth", score_max=10.0)
    results = [
        _result("depth", 8),
        MetricResult.degraded_for(metric, chunk_id="c-1", reason="rate limited after 4 attempts"),
    ]

    categories, _ = Aggregator().aggregate(results, get_catalog("composite"))
    depth = next(c for c in categories if c.category == "depth")

    assert depth.category_score == 4.0
    assert len(depth.metric_results) == 2


def test_metric_weights_apply_within_category() -> None:
    catalog = MetricCatalog(
        name="weighted",
        metrics=(
            MetricDefinition(name="Rigour", category="depth", weight=3.0, score_max=10.0),
            MetricDefinition(name="Range", category="depth", score_max=10.0),
        ),
        default_weights={"depth": 1.0},
    )
    results = [_result("depth", 8, name="Rigour"), _result("depth", 4, name="Range")]

    categories, composite = Aggregator(CompositePolicy(weights={"depth": 1.0})).aggregate(
        results, catalog
    )

    assert categories[0].category_score == 7.0
    assert composite.value == 7.0


def test_category_without_results_scores_zero() -> None:
    categories, composite = Aggregator().aggregate([_result("depth", 10)], get_catalog("composite"))

    assert next(c for c in categories if c.category == "coherence").category_score == 0.0
    assert composite.value == 2.5


def test_framework_catalog_normalises_to_ten_point_scale() -> None:
    catalog = get_catalog("quick")
    results = [
        MetricResult(metric_name="x", category=category, quotation="q", explanation="e", score=80.0)
        for category in catalog.categories()
    ]

    _, composite = Aggregator(CompositePolicy(weights=catalog.default_weights)).aggregate(results, catalog)

    assert composite.value == 8.0


def test_comparative_delta_and_label() -> None:
    aggregator = Aggregator()
    a = CompositeScore(value=7.2, weights={}, inputs={})
    b = CompositeScore(value=5.8, weights={}, inputs={})

    result = aggregator.compare(a, b)

    assert result.delta == 1.4
    assert result.label == "A stronger"
    assert aggregator.compare(b, a).label == "B stronger"


def test_comparative_tie_within_epsilon() -> None:
    aggregator = Aggregator()
    a = CompositeScore(value=6.0, weights={}, inputs={})
    b = CompositeScore(value=5.97, weights={}, inputs={})

    assert aggregator.compare(a, b).label == "Tie"


@pytest.mark.parametrize(
    "weights",
    [
        {"depth": 0.5, "coherence": 0.4},
        {"depth": 1.2, "coherence": -0.2},
        {},
    ],
)
def test_invalid_weights_rejected(weights: dict[str, float]) -> None:
    with pytest.raises(ValidationError):
        CompositePolicy(weights=weights)


def test_weights_outside_catalog_rejected() -> None:
    aggregator = Aggregator(CompositePolicy(weights={"depth": 0.5, "charisma": 0.5}))

    with pytest.raises(InvalidInput):
        aggregator.aggregate([_result("depth", 5)], get_catalog("composite"))
