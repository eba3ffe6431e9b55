"""Word-bounded chunking that never splits mathematical notation."""

from __future__ import annotations

import logging
import math
import re
from bisect import bisect_left
from dataclasses import dataclass
from typing import Any

from essay_eval.config import ChunkingConfig
from essay_eval.types import Chunk

logger = logging.getLogger(__name__)

_WORD_PATTERN = re.compile(r"\S+")
_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


@dataclass(frozen=True, slots=True)
class MathSpan:
    """Character range `[start, end)` of an inline or display math span."""

    start: int
    end: int
    display: bool
    terminated: bool = True


def find_math_spans(text: str) -> list[MathSpan]:
    """Locate `$...$` and `$$...$$` spans, left to right.

    Inline spans must close on the same line; an unmatched single `$` is
    treated as a literal dollar sign. An unmatched `$$` opens a display span
    that runs to the end of the text and is reported as unterminated.
    A backslash escapes the following character.
    """

    spans: list[MathSpan] = []
    i = 0
    n = len(text)
    while i < n:
        char = text[i]
        if char == "\\":
            i += 2
            continue
        if char != "$":
            i += 1
            continue

        if text.startswith("$$", i):
            close = _find_unescaped(text, "$$", i + 2)
            if close == -1:
                spans.append(MathSpan(start=i, end=n, display=True, terminated=False))
                break
            spans.append(MathSpan(start=i, end=close + 2, display=True))
            i = close + 2
            continue

        close = _find_inline_close(text, i + 1)
        if close > i + 1:
            spans.append(MathSpan(start=i, end=close + 1, display=False))
            i = close + 1
        else:
            i += 1
    return spans


def _find_unescaped(text: str, needle: str, start: int) -> int:
    i = start
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text.startswith(needle, i):
            return i
        i += 1
    return -1


def _find_inline_close(text: str, start: int) -> int:
    i = start
    while i < len(text):
        char = text[i]
        if char == "\\":
            i += 2
            continue
        if char == "\n":
            return -1
        if char == "$":
            return i
        i += 1
    return -1


class _SpanIndex:
    """Answers "which math span strictly contains this offset?" in O(log n)."""

    def __init__(self, spans: list[MathSpan]) -> None:
        self._spans = spans
        self._starts = [span.start for span in spans]

    def containing(self, position: int) -> MathSpan | None:
        idx = bisect_left(self._starts, position) - 1
        if idx < 0:
            return None
        span = self._spans[idx]
        if span.start < position < span.end:
            return span
        return None

    def any_within(self, start: int, end: int) -> bool:
        return any(
            span.terminated and span.start >= start and span.end <= end for span in self._spans
        )


class MathAwareChunker:
    """Splits a document into ordered chunks bounded by a word count.

    Chunk texts are exact slices of the source text: whitespace following a
    chunk's last word stays with that chunk, and leading whitespace stays with
    the first one, so concatenating the chunks reproduces the document.

    A cut is never placed strictly inside a math span. When the natural cut
    lands inside one, the chunk grows to the first word beginning at or after
    the end of the span, even if that exceeds the word bound. An unterminated
    display span makes the remainder of the document the final chunk.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()

    def chunk(
        self,
        text: str,
        max_words_per_chunk: int | None = None,
        *,
        doc_id: str = "doc",
    ) -> list[Chunk]:
        limit = (
            max_words_per_chunk
            if max_words_per_chunk is not None
            else self.config.max_words_per_chunk
        )
        if limit < 1:
            raise ValueError("max_words_per_chunk must be at least 1")

        if not text:
            return []

        index = _SpanIndex(find_math_spans(text))
        word_spans = [(match.start(), match.end()) for match in _WORD_PATTERN.finditer(text)]
        if not word_spans:
            return [
                self._build_chunk(
                    doc_id=doc_id,
                    ordinal=0,
                    text=text,
                    word_count=0,
                    start_offset=0,
                    end_offset=len(text),
                    index=index,
                )
            ]

        word_starts = [start for start, _ in word_spans]
        total = len(word_spans)

        chunks: list[Chunk] = []
        start_word = 0
        start_offset = 0
        while start_word < total:
            naive_cut = start_word + limit
            if naive_cut >= total:
                cut_word = total
            else:
                cut_word = self._safe_cut(word_starts, naive_cut, index, doc_id)

            end_offset = len(text) if cut_word >= total else word_starts[cut_word]
            chunks.append(
                self._build_chunk(
                    doc_id=doc_id,
                    ordinal=len(chunks),
                    text=text[start_offset:end_offset],
                    word_count=cut_word - start_word,
                    start_offset=start_offset,
                    end_offset=end_offset,
                    index=index,
                )
            )
            start_word = cut_word
            start_offset = end_offset

        return chunks

    def _safe_cut(
        self, word_starts: list[int], cut_word: int, index: _SpanIndex, doc_id: str
    ) -> int:
        total = len(word_starts)
        span = index.containing(word_starts[cut_word])
        while span is not None:
            if not span.terminated:
                logger.warning(
                    "Unterminated math span at offset %d in %s; emitting remainder as final chunk",
                    span.start,
                    doc_id,
                )
                return total
            cut_word = bisect_left(word_starts, span.end)
            if cut_word >= total:
                return total
            span = index.containing(word_starts[cut_word])
        return cut_word

    def _build_chunk(
        self,
        *,
        doc_id: str,
        ordinal: int,
        text: str,
        word_count: int,
        start_offset: int,
        end_offset: int,
        index: _SpanIndex,
    ) -> Chunk:
        return Chunk(
            chunk_id=f"{doc_id}-chunk-{ordinal:04d}",
            doc_id=doc_id,
            ordinal=ordinal,
            text=text,
            word_count=word_count,
            start_offset=start_offset,
            end_offset=end_offset,
            preview=_preview(text, self.config.preview_chars),
            has_math=index.any_within(start_offset, end_offset),
        )


def reassemble(chunks: list[Chunk]) -> str:
    """Rebuild the source text from its chunks."""
    return "".join(chunk.text for chunk in sorted(chunks, key=lambda c: c.ordinal))


def document_stats(text: str, max_words_per_chunk: int = 800) -> dict[str, Any]:
    word_count = len(_WORD_PATTERN.findall(text))
    spans = find_math_spans(text)
    return {
        "word_count": word_count,
        "character_count": len(text),
        "paragraph_count": len([p for p in _PARAGRAPH_SPLIT.split(text) if p.strip()]),
        "math_block_count": sum(1 for span in spans if span.terminated),
        "unterminated_math": any(not span.terminated for span in spans),
        "estimated_chunks": math.ceil(word_count / max_words_per_chunk) if word_count else 0,
    }


def _preview(text: str, limit: int) -> str:
    stripped = text.strip()
    if len(stripped) <= limit:
        return stripped
    return stripped[:limit] + "..."
