"""Deterministic scoring backend that needs no external service."""

from __future__ import annotations

import json
import re
from hashlib import blake2b

from essay_eval.backends.base import RawResult, ScoringBackend
from essay_eval.types import MetricDefinition

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_TOKEN_PATTERN = re.compile(r"\w+", flags=re.UNICODE)


class HeuristicBackend(ScoringBackend):
    """Lexical-statistics scorer used for local runs and tests.

    Scores blend lexical diversity, word length and sentence length with a
    small per-metric offset derived from a hash of the metric name, so the
    same text and metric always produce the same payload. The payload is a
    JSON string, exactly what a remote backend would return.
    """

    name = "offline"

    async def evaluate(
        self, text: str, metric: MetricDefinition, *, timeout: float
    ) -> RawResult:
        del timeout  # computed synchronously, never blocks.
        quotation = _best_sentence(text)
        base = _text_quality(text)
        score = min(max(base + _metric_offset(metric.name), 0.0), 1.0) * metric.score_max
        payload = {
            "quotation": quotation,
            "explanation": (
                f"Heuristic estimate for '{metric.name}' from lexical diversity, "
                f"word length and sentence length (base {base:.2f})."
            ),
            "score": round(score, 1),
        }
        return RawResult(text=json.dumps(payload, ensure_ascii=False), backend=self.name)


def _text_quality(text: str) -> float:
    tokens = [token.lower() for token in _TOKEN_PATTERN.findall(text)]
    if not tokens:
        return 0.0
    sentences = [s for s in _SENTENCE_SPLIT.split(text.strip()) if s.strip()]
    diversity = len(set(tokens)) / len(tokens)
    avg_word = sum(len(token) for token in tokens) / len(tokens)
    avg_sentence = len(tokens) / max(1, len(sentences))
    return (
        0.5 * diversity
        + 0.3 * min(avg_word / 7.0, 1.0)
        + 0.2 * min(avg_sentence / 25.0, 1.0)
    )


def _metric_offset(metric_name: str) -> float:
    digest = blake2b(metric_name.encode("utf-8"), digest_size=2).digest()
    return (int.from_bytes(digest, "little") / 65535.0 - 0.5) * 0.2


def _best_sentence(text: str) -> str:
    sentences = [s.strip() for s in _SENTENCE_SPLIT.split(text.strip()) if s.strip()]
    if not sentences:
        return ""
    best = max(sentences, key=lambda s: len({t.lower() for t in _TOKEN_PATTERN.findall(s)}))
    return _truncate(best.replace("\n", " "), 220)


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."
