"""Defensive parsing of semi-structured backend output."""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any

from essay_eval.errors import MalformedResponse
from essay_eval.types import MetricDefinition, MetricResult

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```[A-Za-z0-9_-]*\s*(?P<body>.*?)\s*```", flags=re.DOTALL)
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")

QUOTATION_PLACEHOLDER = "No quotation provided"
EXPLANATION_PLACEHOLDER = "No explanation provided"

_QUOTATION_KEYS = ("quotation", "quote")
_EXPLANATION_KEYS = ("explanation", "analysis", "assessment")


@dataclass(frozen=True, slots=True)
class ParsedResponse:
    quotation: str
    explanation: str
    score: float
    degraded: bool = False
    reason: str | None = None

    def to_metric_result(
        self, metric: MetricDefinition, *, chunk_id: str | None, attempts: int
    ) -> MetricResult:
        return MetricResult(
            metric_name=metric.name,
            category=metric.category,
            quotation=self.quotation,
            explanation=self.explanation,
            score=self.score,
            score_max=metric.score_max,
            chunk_id=chunk_id,
            degraded=self.degraded,
            degradation_reason=self.reason,
            attempts=attempts,
        )


def parse_response(raw: str) -> ParsedResponse:
    """Extract quotation, explanation and score from a raw backend payload.

    Never raises: any failure becomes a degraded response with score 0 and
    the reason recorded, so one bad payload cannot abort a run.
    """

    try:
        payload = _extract_payload(raw)
    except MalformedResponse as exc:
        logger.debug("Malformed backend payload: %s", exc)
        return ParsedResponse(
            quotation=QUOTATION_PLACEHOLDER,
            explanation=EXPLANATION_PLACEHOLDER,
            score=0.0,
            degraded=True,
            reason=f"malformed response: {exc}",
        )

    quotation = _first_text(payload, _QUOTATION_KEYS) or QUOTATION_PLACEHOLDER
    explanation = _first_text(payload, _EXPLANATION_KEYS) or EXPLANATION_PLACEHOLDER

    if "score" not in payload or payload["score"] is None:
        return ParsedResponse(quotation, explanation, 0.0, degraded=True, reason="missing score")

    score = _coerce_score(payload["score"])
    if score is None:
        return ParsedResponse(
            quotation,
            explanation,
            0.0,
            degraded=True,
            reason=f"non-numeric score: {str(payload['score'])[:40]!r}",
        )
    return ParsedResponse(quotation, explanation, score)


def _extract_payload(raw: str) -> dict[str, Any]:
    text = (raw or "").strip()
    if not text:
        raise MalformedResponse("empty response")

    fenced = _FENCE.search(text)
    if fenced:
        text = fenced.group("body").strip()

    if not text.startswith("{"):
        start = text.find("{")
        if start < 0:
            raise MalformedResponse("no JSON object found")
        text = text[start:]

    decoder = json.JSONDecoder()
    try:
        payload, _ = decoder.raw_decode(text)
    except json.JSONDecodeError:
        end = text.rfind("}")
        try:
            payload = json.loads(text[: end + 1]) if end > 0 else None
        except json.JSONDecodeError as exc:
            raise MalformedResponse(f"invalid JSON ({exc.msg})") from exc
        if payload is None:
            raise MalformedResponse("unterminated JSON object")

    if not isinstance(payload, dict):
        raise MalformedResponse(f"expected an object, got {type(payload).__name__}")
    return payload


def _first_text(payload: dict[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        if isinstance(value, list) and value:
            return " ".join(str(item) for item in value).strip()
    return ""


def _coerce_score(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else float(value)
    if isinstance(value, str):
        match = _NUMBER.search(value)
        if match:
            return float(match.group())
    return None
