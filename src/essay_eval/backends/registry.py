"""Backend registry built on Pydantic v2 models."""

from __future__ import annotations

from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field

from essay_eval.backends.base import ScoringBackend
from essay_eval.backends.chat_model import LangChainBackend
from essay_eval.backends.http import (
    AnthropicBackend,
    DeepSeekBackend,
    OpenAIBackend,
    PerplexityBackend,
)
from essay_eval.backends.offline import HeuristicBackend
from essay_eval.config import Settings
from essay_eval.errors import InvalidInput


class BackendSpec(BaseModel):
    """Declarative backend specification for registration and construction."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    factory: Callable[[Settings], ScoringBackend]
    credential: str | None = None
    tags: list[str] = Field(default_factory=list)

    def has_credentials(self, settings: Settings) -> bool:
        if self.credential is None:
            return True
        return bool(getattr(settings, self.credential, ""))


class BackendRegistry:
    """Stores backend specs and builds adapters from one `Settings` object."""

    def __init__(self) -> None:
        self._specs: dict[str, BackendSpec] = {}

    def register(self, spec: BackendSpec) -> None:
        if spec.name in self._specs:
            raise ValueError(f"Backend already registered: {spec.name}")
        self._specs[spec.name] = spec

    def create(self, name: str, settings: Settings) -> ScoringBackend:
        spec = self._specs.get(name)
        if spec is None:
            raise InvalidInput(
                f"Unknown backend: {name} (available: {', '.join(sorted(self._specs))})"
            )
        return spec.factory(settings)

    def availability(self, settings: Settings) -> dict[str, bool]:
        return {name: spec.has_credentials(settings) for name, spec in self._specs.items()}

    def specs(self) -> list[BackendSpec]:
        return list(self._specs.values())


def _langchain_openai(settings: Settings) -> ScoringBackend:
    if not settings.openai_api_key:
        return LangChainBackend(None, name="langchain-openai")

    from langchain_openai import ChatOpenAI

    llm = ChatOpenAI(
        model=settings.openai_model,
        temperature=settings.essay_eval_temperature,
        max_tokens=settings.essay_eval_max_output_tokens,
        api_key=settings.openai_api_key,
        max_retries=0,
    )
    return LangChainBackend(llm, name="langchain-openai")


def build_default_registry() -> BackendRegistry:
    registry = BackendRegistry()

    def _http(cls: type, key: str, model: str) -> Callable[[Settings], ScoringBackend]:
        def _factory(settings: Settings) -> ScoringBackend:
            return cls(
                getattr(settings, key),
                model=getattr(settings, model),
                temperature=settings.essay_eval_temperature,
                max_tokens=settings.essay_eval_max_output_tokens,
            )

        return _factory

    registry.register(
        BackendSpec(
            name="openai",
            description="OpenAI chat completions over HTTP.",
            factory=_http(OpenAIBackend, "openai_api_key", "openai_model"),
            credential="openai_api_key",
            tags=["http"],
        )
    )
    registry.register(
        BackendSpec(
            name="anthropic",
            description="Anthropic messages API over HTTP.",
            factory=_http(AnthropicBackend, "anthropic_api_key", "anthropic_model"),
            credential="anthropic_api_key",
            tags=["http"],
        )
    )
    registry.register(
        BackendSpec(
            name="deepseek",
            description="DeepSeek chat completions over HTTP.",
            factory=_http(DeepSeekBackend, "deepseek_api_key", "deepseek_model"),
            credential="deepseek_api_key",
            tags=["http"],
        )
    )
    registry.register(
        BackendSpec(
            name="perplexity",
            description="Perplexity chat completions over HTTP.",
            factory=_http(PerplexityBackend, "perplexity_api_key", "perplexity_model"),
            credential="perplexity_api_key",
            tags=["http"],
        )
    )
    registry.register(
        BackendSpec(
            name="langchain-openai",
            description="OpenAI through a LangChain ChatOpenAI model.",
            factory=_langchain_openai,
            credential="openai_api_key",
            tags=["langchain"],
        )
    )
    registry.register(
        BackendSpec(
            name="offline",
            description="Deterministic lexical heuristics; no network access.",
            factory=lambda settings: HeuristicBackend(),
            tags=["local"],
        )
    )
    return registry
