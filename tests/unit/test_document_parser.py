import json
from pathlib import Path

import pytest

from essay_eval.errors import InvalidInput
from essay_eval.ingest.parser import ParserRegistry


def test_markdown_front_matter_and_title(tmp_path: Path) -> None:
    path = tmp_path / "essay.md"
    path.write_text("---\nauthor: x\n---\n# On Method\n\nBody text here.", encoding="utf-8")

    document = ParserRegistry().parse_path(path, doc_id="essay-1")

    assert document.doc_id == "essay-1"
    assert document.title == "On Method"
    assert not document.text.startswith("---")


def test_latex_keeps_math_and_reads_title(tmp_path: Path) -> None:
    path = tmp_path / "paper.tex"
    path.write_text("\\title{Proofs}\nWe show $x^2 \\geq 0$ holds.", encoding="utf-8")

    document = ParserRegistry().parse_path(path)

    assert document.title == "Proofs"
    assert "$x^2 \\geq 0$" in document.text
    assert document.doc_id.startswith("doc-")


def test_text_file_title_defaults_to_stem(tmp_path: Path) -> None:
    path = tmp_path / "notes.txt"
    path.write_text("plain words", encoding="utf-8")

    assert ParserRegistry().parse_path(path).title == "notes"


def test_json_document_requires_text_field() -> None:
    registry = ParserRegistry()
    data = json.dumps({"title": "T", "text": "hello world"}).encode("utf-8")

    assert registry.parse_bytes(data, extension=".json", name="x").text == "hello world"
    with pytest.raises(InvalidInput):
        registry.parse_bytes(b'{"body": "x"}', extension=".json", name="x")
    with pytest.raises(InvalidInput):
        registry.parse_bytes(b"{not json", extension=".json", name="x")


def test_unsupported_or_missing_files_rejected(tmp_path: Path) -> None:
    registry = ParserRegistry()
    pdf = tmp_path / "scan.pdf"
    pdf.write_bytes(b"%PDF-1.7")

    with pytest.raises(InvalidInput):
        registry.parse_path(pdf)
    with pytest.raises(InvalidInput):
        registry.parse_path(tmp_path / "missing.txt")
    assert ".md" in registry.supported_extensions()
