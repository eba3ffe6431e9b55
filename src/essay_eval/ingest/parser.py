"""Text extractors that turn raw file bytes into `Document` objects.

Only text-native formats are handled here. PDF, DOCX and OCR extraction are
external capabilities; they plug in by registering another `Parser`.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from essay_eval.errors import InvalidInput
from essay_eval.types import Document

_FRONT_MATTER = re.compile(r"\A---\s*\n.*?\n---\s*\n", flags=re.DOTALL)
_MARKDOWN_TITLE = re.compile(r"^#\s+(?P<title>.+)$", flags=re.MULTILINE)
_LATEX_TITLE = re.compile(r"\\title\{(?P<title>[^}]*)\}")


class Parser(ABC):
    """Base extractor: raw bytes of a known format in, text and title out."""

    extensions: tuple[str, ...] = ()

    @abstractmethod
    def extract(self, data: bytes, *, name: str) -> tuple[str, str]:
        """Return `(title, text)` for the given file contents."""


class TextParser(Parser):
    extensions = (".txt", ".text")

    def extract(self, data: bytes, *, name: str) -> tuple[str, str]:
        return name, data.decode("utf-8")


class MarkdownParser(Parser):
    """Markdown; strips YAML front matter and takes the first H1 as title."""

    extensions = (".md", ".markdown")

    def extract(self, data: bytes, *, name: str) -> tuple[str, str]:
        text = _FRONT_MATTER.sub("", data.decode("utf-8"), count=1)
        match = _MARKDOWN_TITLE.search(text)
        return (match.group("title").strip() if match else name), text


class LatexParser(Parser):
    """LaTeX source kept verbatim so math spans survive into chunking."""

    extensions = (".tex",)

    def extract(self, data: bytes, *, name: str) -> tuple[str, str]:
        text = data.decode("utf-8")
        match = _LATEX_TITLE.search(text)
        return (match.group("title").strip() if match else name), text


class JsonParser(Parser):
    """JSON documents shaped like `{"title": ..., "text": ...}`."""

    extensions = (".json",)

    def extract(self, data: bytes, *, name: str) -> tuple[str, str]:
        payload: Any = json.loads(data.decode("utf-8"))
        if not isinstance(payload, dict) or not isinstance(payload.get("text"), str):
            raise InvalidInput(f"JSON document {name} must contain a string 'text' field")
        return str(payload.get("title") or name), payload["text"]


class ParserRegistry:
    """Maps file extension to parser implementation."""

    def __init__(self, parsers: list[Parser] | None = None) -> None:
        self._parsers: dict[str, Parser] = {}
        for parser in parsers or [TextParser(), MarkdownParser(), LatexParser(), JsonParser()]:
            self.register(parser)

    def register(self, parser: Parser) -> None:
        for extension in parser.extensions:
            self._parsers[extension.lower()] = parser

    def supported_extensions(self) -> list[str]:
        return sorted(self._parsers)

    def parse_bytes(
        self, data: bytes, *, extension: str, name: str, doc_id: str | None = None
    ) -> Document:
        parser = self._parsers.get(extension.lower())
        if parser is None:
            raise InvalidInput(f"No parser registered for extension: {extension}")
        try:
            title, text = parser.extract(data, name=name)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise InvalidInput(f"Could not read {name}: {exc}") from exc
        return Document.create(title=title, text=text, doc_id=doc_id)

    def parse_path(self, path: str | Path, *, doc_id: str | None = None) -> Document:
        file_path = Path(path)
        if not file_path.is_file():
            raise InvalidInput(f"File not found: {file_path}")
        return self.parse_bytes(
            file_path.read_bytes(),
            extension=file_path.suffix,
            name=file_path.stem,
            doc_id=doc_id,
        )
