"""Adapter over any LangChain chat model."""

from __future__ import annotations

import asyncio
from typing import Any

from essay_eval.backends.base import RawResult, ScoringBackend, build_messages
from essay_eval.errors import (
    AdapterUnavailable,
    AuthFailure,
    BackendError,
    BackendTimeout,
    BackendUnavailable,
    RateLimited,
    backend_error_for_status,
)
from essay_eval.types import MetricDefinition


class LangChainBackend(ScoringBackend):
    """Scores through `llm.ainvoke`, e.g. `ChatOpenAI` or `ChatAnthropic`.

    Provider SDK exceptions are classified by HTTP status when they carry
    one and by exception name otherwise.
    """

    def __init__(self, llm: Any, *, name: str = "langchain") -> None:
        self.llm = llm
        self.name = name

    def ensure_available(self) -> None:
        if self.llm is None:
            raise AdapterUnavailable(f"No chat model configured for backend '{self.name}'")

    async def evaluate(
        self, text: str, metric: MetricDefinition, *, timeout: float
    ) -> RawResult:
        messages = build_messages(text, metric)
        try:
            response = await asyncio.wait_for(self.llm.ainvoke(messages), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise BackendTimeout(f"{self.name} timeout after {timeout}s", backend=self.name) from exc
        except BackendError:
            raise
        except Exception as exc:
            raise _classify(exc, self.name) from exc

        return RawResult(
            text=_content_text(getattr(response, "content", response)),
            backend=self.name,
            model=str(getattr(self.llm, "model_name", "") or getattr(self.llm, "model", "")),
        )


def _classify(exc: Exception, backend: str) -> BackendError:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return backend_error_for_status(status, str(exc), backend=backend)

    kind = type(exc).__name__.lower()
    if "ratelimit" in kind:
        return RateLimited(str(exc), backend=backend)
    if "timeout" in kind:
        return BackendTimeout(str(exc), backend=backend)
    if "authentication" in kind or "permission" in kind:
        return AuthFailure(str(exc), backend=backend)
    return BackendUnavailable(f"{type(exc).__name__}: {exc}", backend=backend)


def _content_text(content: Any) -> str:
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return " ".join(parts).strip()
    return str(content)
