import json

import pytest

from essay_eval.scoring.parser import (
    EXPLANATION_PLACEHOLDER,
    QUOTATION_PLACEHOLDER,
    parse_response,
)
from essay_eval.types import MetricDefinition


def test_fenced_json_payload() -> None:
    raw = '```json\n{"quotation":"q","explanation":"e","score":42}\n```'
    parsed = parse_response(raw)

    assert parsed.quotation == "q"
    assert parsed.explanation == "e"
    assert parsed.score == 42
    assert parsed.degraded is False


def test_preamble_and_trailing_prose_tolerated() -> None:
    raw = 'Here is my assessment:\n{"quote": "x", "analysis": "y", "score": "85"}\nHope this helps.'
    parsed = parse_response(raw)

    assert (parsed.quotation, parsed.explanation, parsed.score) == ("x", "y", 85.0)
    assert parsed.degraded is False


def test_missing_score_degrades_without_raising() -> None:
    parsed = parse_response('{"quotation": "q", "explanation": "e"}')

    assert parsed.score == 0
    assert parsed.degraded is True
    assert parsed.reason == "missing score"


@pytest.mark.parametrize("raw", ["", "not json at all", "{broken", "[1, 2, 3]"])
def test_unparseable_payload_degrades(raw: str) -> None:
    parsed = parse_response(raw)

    assert parsed.degraded is True
    assert parsed.score == 0
    assert parsed.reason.startswith("malformed response")
    assert parsed.quotation == QUOTATION_PLACEHOLDER


@pytest.mark.parametrize(
    ("value", "expected"),
    [("7/10", 7.0), ("Score: 6.5", 6.5), (91, 91.0), (3.25, 3.25)],
)
def test_score_coercion(value, expected: float) -> None:
    parsed = parse_response(json.dumps({"quotation": "q", "explanation": "e", "score": value}))
    assert parsed.score == expected
    assert parsed.degraded is False


@pytest.mark.parametrize("value", ['"excellent"', "true", "null"])
def test_non_numeric_score_degrades(value: str) -> None:
    parsed = parse_response('{"quotation": "q", "explanation": "e", "score": %s}' % value)

    assert parsed.score == 0
    assert parsed.degraded is True


def test_missing_text_fields_use_placeholders() -> None:
    parsed = parse_response('{"score": 50}')

    assert parsed.quotation == QUOTATION_PLACEHOLDER
    assert parsed.explanation == EXPLANATION_PLACEHOLDER
    assert parsed.degraded is False


@pytest.mark.parametrize(("raw_score", "expected"), [(-5, 0.0), (999, 100.0), (64, 64.0)])
def test_metric_result_clamps_score(raw_score: int, expected: float) -> None:
    metric = MetricDefinition(name="Logical rigor", category="cogency")
    parsed = parse_response('{"quotation": "q", "explanation": "e", "score": %d}' % raw_score)

    result = parsed.to_metric_result(metric, chunk_id="doc-chunk-0000", attempts=1)

    assert result.score == expected
    assert result.chunk_id == "doc-chunk-0000"
    assert result.metric_name == "Logical rigor"
