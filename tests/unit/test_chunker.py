import logging

import pytest

from essay_eval.config import ChunkingConfig
from essay_eval.ingest.chunker import (
    MathAwareChunker,
    document_stats,
    find_math_spans,
    reassemble,
)


def _make_essay(paragraphs: int = 6) -> str:
    body = (
        "The argument proceeds from a simple observation about incentives, "
        "then widens to consider how institutions shape what counts as evidence. "
        "Inline notation such as $a^2 + b^2 = c^2$ appears mid sentence, and "
        "display blocks follow:\n\n$$\n\\int_0^1 x^2 \\, dx = \\frac{1}{3}\n$$\n\n"
        "Afterwards the discussion returns to prose and costs \\$5 to print."
    )
    return "\n\n".join(body for _ in range(paragraphs))


def _assert_no_split_math(text: str, chunks) -> None:
    spans = [span for span in find_math_spans(text) if span.terminated]
    boundaries = [chunk.end_offset for chunk in chunks[:-1]]
    for boundary in boundaries:
        assert not any(span.start < boundary < span.end for span in spans)


@pytest.mark.parametrize("limit", [1, 3, 7, 20, 800])
def test_chunks_cover_document_exactly(limit: int) -> None:
    text = _make_essay()
    chunks = MathAwareChunker().chunk(text, limit, doc_id="essay")

    assert reassemble(chunks) == text
    assert sum(chunk.word_count for chunk in chunks) == len(text.split())
    assert [chunk.ordinal for chunk in chunks] == list(range(len(chunks)))
    for previous, current in zip(chunks, chunks[1:]):
        assert previous.end_offset == current.start_offset
    _assert_no_split_math(text, chunks)


def test_word_bound_respected_without_math() -> None:
    text = " ".join(f"word{i}" for i in range(2500))
    chunks = MathAwareChunker(ChunkingConfig(max_words_per_chunk=800)).chunk(text)

    assert [chunk.word_count for chunk in chunks] == [800, 800, 800, 100]
    assert chunks[0].chunk_id == "doc-chunk-0000"
    assert chunks[3].chunk_id == "doc-chunk-0003"


def test_short_document_yields_single_chunk() -> None:
    text = "  A short note with five words.  "
    chunks = MathAwareChunker().chunk(text, 800)

    assert len(chunks) == 1
    assert chunks[0].text == text
    assert chunks[0].word_count == 6


def test_whitespace_only_text_is_kept_in_one_empty_chunk() -> None:
    text = "   \n\t "
    chunks = MathAwareChunker().chunk(text)

    assert reassemble(chunks) == text
    assert len(chunks) == 1
    assert chunks[0].word_count == 0
    assert (chunks[0].start_offset, chunks[0].end_offset) == (0, len(text))
    assert MathAwareChunker().chunk("") == []


def test_explicit_zero_limit_is_rejected() -> None:
    with pytest.raises(ValueError):
        MathAwareChunker().chunk("a few words here", 0)


def test_cut_inside_inline_math_moves_past_span() -> None:
    text = "a b c $x + y$ d e f"
    chunks = MathAwareChunker().chunk(text, 4)

    assert [chunk.text for chunk in chunks] == ["a b c $x + y$ ", "d e f"]
    assert chunks[0].word_count == 6
    assert chunks[0].has_math is True
    assert chunks[1].has_math is False


def test_display_math_kept_whole() -> None:
    text = "intro words here $$\na = b + c\n= d\n$$ outro words follow"
    chunks = MathAwareChunker().chunk(text, 4)

    holder = [chunk for chunk in chunks if "$$" in chunk.text]
    assert len(holder) == 1
    assert holder[0].text.count("$$") == 2
    _assert_no_split_math(text, chunks)


def test_unterminated_display_math_becomes_final_chunk(caplog: pytest.LogCaptureFixture) -> None:
    text = "one two three $$ x y z w v"
    with caplog.at_level(logging.WARNING, logger="essay_eval.ingest.chunker"):
        chunks = MathAwareChunker().chunk(text, 3)

    assert [chunk.text for chunk in chunks] == ["one two three ", "$$ x y z w v"]
    assert chunks[-1].word_count == 6
    assert "Unterminated math span" in caplog.text


def test_escaped_and_lone_dollars_are_literal() -> None:
    assert find_math_spans(r"costs \$5 and \$6 today") == []
    assert find_math_spans("price is $5 per copy\nand more") == []

    spans = find_math_spans("see $x$ and $$y$$")
    assert [(span.display, span.terminated) for span in spans] == [(False, True), (True, True)]


def test_preview_truncated_with_ellipsis() -> None:
    text = "lorem " * 60
    chunk = MathAwareChunker().chunk(text, 800)[0]

    assert chunk.preview.endswith("...")
    assert len(chunk.preview) == 103


def test_document_stats() -> None:
    text = "First paragraph with $x$.\n\nSecond paragraph $$ never closed"
    stats = document_stats(text, max_words_per_chunk=3)

    assert stats["word_count"] == 9
    assert stats["paragraph_count"] == 2
    assert stats["math_block_count"] == 1
    assert stats["unterminated_math"] is True
    assert stats["estimated_chunks"] == 3
