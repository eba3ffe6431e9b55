"""Configuration models for the evaluation pipeline."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_COMPOSITE_WEIGHTS: dict[str, float] = {
    "conceptual_innovation": 0.25,
    "depth": 0.25,
    "coherence": 0.20,
    "insight_density": 0.15,
    "methodological_novelty": 0.15,
}

WEIGHT_SUM_EPSILON = 1e-6


class ChunkingConfig(BaseModel):
    """Configures word-bounded, math-aware chunking."""

    max_words_per_chunk: int = Field(default=800, ge=1)
    preview_chars: int = Field(default=100, ge=10)


class DispatchConfig(BaseModel):
    """Configures call spacing, retries and timeouts for one run."""

    inter_call_delay_seconds: float = Field(default=0.5, ge=0.0)
    max_retries: int = Field(default=3, ge=0)
    per_call_timeout_seconds: float = Field(default=60.0, gt=0.0)
    base_retry_delay_seconds: float = Field(default=1.0, ge=0.0)
    max_retry_delay_seconds: float = Field(default=30.0, ge=0.0)
    run_deadline_seconds: float | None = Field(default=None, gt=0.0)


class CompositePolicy(BaseModel):
    """Weighted-sum policy turning category scores into one composite score."""

    weights: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_COMPOSITE_WEIGHTS)
    )
    tie_epsilon: float = Field(default=0.05, ge=0.0)
    scale: float = Field(default=10.0, gt=0.0)

    @field_validator("weights")
    @classmethod
    def _non_negative(cls, weights: dict[str, float]) -> dict[str, float]:
        if not weights:
            raise ValueError("at least one category weight is required")
        negative = sorted(name for name, value in weights.items() if value < 0)
        if negative:
            raise ValueError(f"weights must be non-negative: {', '.join(negative)}")
        return weights

    @model_validator(mode="after")
    def _sums_to_one(self) -> "CompositePolicy":
        total = sum(self.weights.values())
        if abs(total - 1.0) > WEIGHT_SUM_EPSILON:
            raise ValueError(f"weights must sum to 1.0, got {total:.6f}")
        return self


class RunConfig(BaseModel):
    """Top-level settings for a single or comparative analysis run."""

    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    catalog: str = "composite"
    policy: CompositePolicy | None = None
    min_words: int = Field(default=5, ge=1)


class Settings(BaseSettings):
    """Process-wide settings read once from the environment.

    Credentials live here and nowhere else; backends receive this object at
    construction time instead of reading the environment themselves.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    openai_api_key: str = ""
    anthropic_api_key: str = ""
    deepseek_api_key: str = ""
    perplexity_api_key: str = ""

    openai_model: str = "gpt-4o"
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    deepseek_model: str = "deepseek-chat"
    perplexity_model: str = "sonar"

    essay_eval_default_backend: str = "openai"
    essay_eval_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    essay_eval_max_output_tokens: int = Field(default=800, ge=1)

    essay_eval_log_level: str = "INFO"
    essay_eval_log_json: bool = False
