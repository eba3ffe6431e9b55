"""Backend adapter contract and the shared metric prompt."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from langchain_core.messages import BaseMessage
from langchain_core.prompts import ChatPromptTemplate

from essay_eval.types import MetricDefinition

_SYSTEM_PROMPT = """
You are a rigorous evaluator of long-form writing.

Rules:
1) Judge only the text you are given against the single metric named.
2) Quote the passage that best demonstrates the metric verbatim in `quotation`.
3) Explain in one paragraph how the quotation bears on the metric.
4) Score on the stated scale; genius-level work sits at the very top of it.

Respond with one JSON object and nothing else.
""".strip()

_HUMAN_TEMPLATE = """
Metric: "{metric}" (category: {category})
Scale: 0 to {score_max}

TEXT TO ANALYZE:
\"\"\"
{text}
\"\"\"

Respond in JSON format:
{{"quotation": "exact quote from the text", "explanation": "full paragraph analysis", "score": number}}
""".strip()

METRIC_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", _SYSTEM_PROMPT),
        ("human", _HUMAN_TEMPLATE),
    ]
)


def build_messages(text: str, metric: MetricDefinition) -> list[BaseMessage]:
    return METRIC_PROMPT.format_messages(
        metric=metric.name,
        category=metric.category,
        score_max=f"{metric.score_max:g}",
        text=text,
    )


def as_role_dicts(messages: list[BaseMessage]) -> list[dict[str, str]]:
    """Convert LangChain messages to the `{role, content}` wire shape."""
    roles = {"system": "system", "human": "user", "ai": "assistant"}
    return [
        {"role": roles.get(message.type, "user"), "content": str(message.content)}
        for message in messages
    ]


@dataclass(frozen=True, slots=True)
class RawResult:
    """Unparsed backend payload for one (text, metric) call."""

    text: str
    backend: str
    model: str = ""


class ScoringBackend(ABC):
    """Uniform capability: score a text against one metric.

    Implementations hold credentials and transport details only. Each call is
    independent; failures are raised as `BackendError` subclasses.
    """

    name: str = "backend"

    @abstractmethod
    async def evaluate(
        self, text: str, metric: MetricDefinition, *, timeout: float
    ) -> RawResult:
        """Score `text` against `metric` within `timeout` seconds."""

    def ensure_available(self) -> None:
        """Raise `AdapterUnavailable` if no call could possibly succeed."""
