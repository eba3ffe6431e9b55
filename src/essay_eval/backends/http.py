"""Provider adapters speaking HTTP directly through httpx.

Each adapter only knows its endpoint, payload shape and credential header:
  - OpenAI, DeepSeek, Perplexity: OpenAI-compatible chat completions
  - Anthropic: messages API
Provider failures are mapped onto the shared backend error taxonomy.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from essay_eval.backends.base import RawResult, ScoringBackend, as_role_dicts, build_messages
from essay_eval.errors import (
    AdapterUnavailable,
    BackendTimeout,
    BackendUnavailable,
    RateLimited,
    backend_error_for_status,
)
from essay_eval.types import MetricDefinition

logger = logging.getLogger(__name__)


class HttpScoringBackend(ScoringBackend):
    """Shared request/response handling for JSON-over-HTTP providers."""

    api_url: str = ""

    def __init__(
        self,
        api_key: str,
        *,
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 800,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._transport = transport

    def ensure_available(self) -> None:
        if not self.api_key:
            raise AdapterUnavailable(f"No API key configured for backend '{self.name}'")

    async def evaluate(
        self, text: str, metric: MetricDefinition, *, timeout: float
    ) -> RawResult:
        payload = self._payload(text, metric)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                resp = await client.post(self.api_url, json=payload, headers=self._headers())
        except httpx.TimeoutException as exc:
            raise BackendTimeout(f"{self.name} timeout after {timeout}s", backend=self.name) from exc
        except httpx.TransportError as exc:
            raise BackendUnavailable(f"{self.name} unreachable: {exc}", backend=self.name) from exc

        if resp.status_code >= 400:
            raise self._error_for(resp)

        try:
            data = resp.json()
            content = self._content(data)
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise BackendUnavailable(
                f"{self.name} returned an unexpected body: {exc}", backend=self.name
            ) from exc

        return RawResult(
            text=content,
            backend=self.name,
            model=str(data.get("model", self.model)),
        )

    def _error_for(self, resp: httpx.Response) -> Exception:
        return backend_error_for_status(
            resp.status_code,
            f"{self.name} returned HTTP {resp.status_code}: {resp.text[:200]}",
            backend=self.name,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, text: str, metric: MetricDefinition) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": as_role_dicts(build_messages(text, metric)),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def _content(self, data: dict[str, Any]) -> str:
        return data["choices"][0]["message"]["content"] or ""


class OpenAIBackend(HttpScoringBackend):
    name = "openai"
    api_url = "https://api.openai.com/v1/chat/completions"


class PerplexityBackend(HttpScoringBackend):
    name = "perplexity"
    api_url = "https://api.perplexity.ai/chat/completions"


class DeepSeekBackend(HttpScoringBackend):
    """DeepSeek; a 503 "server busy" is treated as a rate limit so it is retried."""

    name = "deepseek"
    api_url = "https://api.deepseek.com/chat/completions"

    def _error_for(self, resp: httpx.Response) -> Exception:
        if resp.status_code == 503 and "busy" in resp.text.lower():
            return RateLimited("DeepSeek server busy", backend=self.name, status=503)
        return super()._error_for(resp)


class AnthropicBackend(HttpScoringBackend):
    name = "anthropic"
    api_url = "https://api.anthropic.com/v1/messages"
    api_version = "2023-06-01"

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
            "Content-Type": "application/json",
        }

    def _payload(self, text: str, metric: MetricDefinition) -> dict[str, Any]:
        messages = as_role_dicts(build_messages(text, metric))
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        return {
            "model": self.model,
            "system": system,
            "messages": [m for m in messages if m["role"] != "system"],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def _content(self, data: dict[str, Any]) -> str:
        return "".join(
            block.get("text", "") for block in data["content"] if block.get("type") == "text"
        )
