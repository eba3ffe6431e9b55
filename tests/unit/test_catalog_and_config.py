import pytest
from pydantic import ValidationError

from essay_eval.config import DEFAULT_COMPOSITE_WEIGHTS, DispatchConfig, RunConfig, Settings
from essay_eval.errors import InvalidInput
from essay_eval.scoring.catalog import CATALOGS, get_catalog
from essay_eval.types import MetricScope


def test_composite_catalog_shape() -> None:
    catalog = get_catalog("composite")

    assert catalog.categories() == list(DEFAULT_COMPOSITE_WEIGHTS)
    assert len(catalog.metrics) == 15
    assert {m.category for m in catalog.by_scope(MetricScope.DOCUMENT)} == {"coherence"}
    assert all(metric.score_max == 10.0 for metric in catalog.metrics)


def test_framework_catalog_sizes() -> None:
    quick = get_catalog("quick")
    comprehensive = get_catalog("comprehensive")

    assert len(quick.metrics) == 20
    assert len(comprehensive.metrics) == 160
    for catalog in (quick, comprehensive):
        assert catalog.categories() == ["intelligence", "cogency", "originality", "overall_quality"]
        assert catalog.score_max_for("cogency") == 100.0
        assert not catalog.by_scope(MetricScope.DOCUMENT)


@pytest.mark.parametrize("name", sorted(CATALOGS))
def test_default_weights_cover_catalog_and_sum_to_one(name: str) -> None:
    catalog = get_catalog(name)

    assert set(catalog.default_weights) == set(catalog.categories())
    assert sum(catalog.default_weights.values()) == pytest.approx(1.0)


def test_unknown_catalog_rejected() -> None:
    with pytest.raises(InvalidInput):
        get_catalog("exhaustive")


def test_dispatch_config_bounds() -> None:
    assert DispatchConfig().inter_call_delay_seconds == 0.5
    assert RunConfig().chunking.max_words_per_chunk == 800

    with pytest.raises(ValidationError):
        DispatchConfig(inter_call_delay_seconds=-1)
    with pytest.raises(ValidationError):
        DispatchConfig(per_call_timeout_seconds=0)


def test_settings_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEEPSEEK_API_KEY", "ds-test")
    monkeypatch.setenv("ESSAY_EVAL_DEFAULT_BACKEND", "deepseek")
    monkeypatch.setenv("ESSAY_EVAL_LOG_JSON", "true")

    settings = Settings(_env_file=None)

    assert settings.deepseek_api_key == "ds-test"
    assert settings.essay_eval_default_backend == "deepseek"
    assert settings.essay_eval_log_json is True
