"""Static metric catalogs."""

from __future__ import annotations

from dataclasses import dataclass, field

from essay_eval.config import DEFAULT_COMPOSITE_WEIGHTS
from essay_eval.errors import InvalidInput
from essay_eval.types import MetricDefinition, MetricScope

INTELLIGENCE_METRICS = (
    "Compression (density of meaning per word)",
    "Abstraction (ability to move beyond surface detail)",
    "Inference depth (multi-step reasoning)",
    "Epistemic friction (acknowledging uncertainty or limits)",
    "Cognitive distancing (seeing from outside a frame)",
    "Counterfactual reasoning",
    "Analogical depth (quality of comparisons)",
    "Semantic topology (connectedness of ideas)",
    "Asymmetry (unexpected but apt perspective shifts)",
    "Conceptual layering (multiple levels at once)",
    "Original definition-making",
    "Precision of terms",
    "Distinction-tracking (keeping categories straight)",
    "Avoidance of tautology",
    "Avoidance of empty generality",
    "Compression of examples into principle",
    "Ability to invert perspective",
    "Anticipation of objections",
    "Integration of disparate domains",
    "Self-reflexivity (awareness of own stance)",
    "Elimination of redundancy",
    "Conceptual economy (no waste concepts)",
    "Epistemic risk-taking (sticking neck out coherently)",
    "Generativity (producing new questions/angles)",
    "Ability to revise assumptions midstream",
    "Distinguishing signal vs. noise",
    "Recognizing hidden assumptions",
    "Tracking causal chains",
    "Separating correlation from causation",
    "Managing complexity without collapse",
    "Detecting paradox or tension",
    "Apt compression into aphorism",
    "Clarity under pressure (handling difficult material)",
    "Distinguishing levels (fact vs. meta-level)",
    "Relating concrete to abstract seamlessly",
    "Control of scope (not sprawling aimlessly)",
    "Detecting pseudo-intelligence",
    "Balancing simplicity with depth",
    "Strategic omission (knowing what not to say)",
    "Transferability (insight applies beyond the case)",
)

COGENCY_METRICS = (
    "Logical validity",
    "Absence of contradictions",
    "Strength of evidence/reasons",
    "Proportionality (conclusion matches support)",
    "Avoiding non sequiturs",
    "Explicit structure (clear argument shape)",
    "Distinction between premises and conclusion",
    "Consistent terminology",
    "Focus (avoiding drift)",
    "Avoiding circularity",
    "Handling counterexamples",
    "Responsiveness to objections",
    "Causal adequacy",
    "Inferential tightness",
    "Avoiding overgeneralization",
    "Avoiding straw man reasoning",
    "Recognizing scope limits",
    "Avoiding equivocation",
    "Hierarchy of reasons (primary vs. secondary)",
    "Consistency with background knowledge",
    "Recognizing exceptions",
    "Correct use of examples",
    "Avoidance of loaded language as substitute for reason",
    "Clear priority of claims",
    "Avoiding category mistakes",
    "Explicitness of assumptions",
    "Non-redundancy in support",
    "Alignment between thesis and support",
    "Avoidance of spurious precision",
    "Adequate differentiation (not lumping opposites)",
    "Soundness of analogies",
    "Progressive buildup (no jumps)",
    "Avoidance of double standards",
    "Balance of concession and assertion",
    "Clarity of logical connectives",
    "Preservation of distinctions across argument",
    "Avoiding irrelevant material",
    "Correct handling of probability",
    "Strength of causal explanation vs. correlation",
    "Stability under reformulation (holds when restated)",
)

ORIGINALITY_METRICS = (
    "Novel perspective",
    "Uncommon connections",
    "Surprising but apt analogies",
    "Invention of new distinctions",
    "Reframing of common problem",
    "New conceptual synthesis",
    "Fresh metaphors",
    "Generating new questions",
    "Counterintuitive insight that holds",
    "Unusual compression (shortcuts that work)",
    "Distilling cliché into clarity",
    "Reinterpreting tradition",
    "Productive paradox",
    "Idiosyncratic voice",
    "Unusual but precise phrasing",
    "Structural inventiveness (form matches thought)",
    "Surprising yet valid inference",
    "Non-standard angle on standard issue",
    "Repurposing known concept in new domain",
    "Avoiding mimicry",
    "Shunning jargon clichés",
    "Generating conceptual friction",
    "Independent pattern recognition",
    "Unexpected causal explanation",
    "Tension between domains (philosophy + science, etc.)",
    "Provocative but defensible claim",
    "Lateral connections (cross-field links)",
    "Subversion of default framing",
    "Detection of neglected detail",
    "Reverse engineering assumptions",
    "Productive misfit with genre/style",
    "Intellectually playful but rigorous",
    "Constructive violation of expectations",
    "Voice not reducible to formula",
    "Revaluing the obvious",
    "Absence of derivative cadence",
    "Independent synthesis of sources",
    "Discovery of hidden symmetry",
    "Generating terms others adopt",
    "Staying power (insight lingers after reading)",
)

OVERALL_QUALITY_METRICS = (
    "Clarity of expression",
    "Flow and readability",
    "Stylistic control",
    "Grammar and syntax precision",
    "Appropriate tone",
    "Balance of brevity and elaboration",
    "Coherence across sections",
    "Engagement/interest",
    "Rhythm of sentences",
    "Absence of filler",
    "Clear introduction of themes",
    "Effective closure/resolution",
    "Variety of sentence structure",
    "Apt vocabulary (not inflated)",
    "Avoiding clichés",
    "Consistency of style",
    "Accessibility (lay reader can follow)",
    "Respect for audience intelligence",
    "Memorability of phrasing",
    "Avoidance of redundancy",
    "Natural transitions",
    "Balanced paragraphing",
    "Pacing (not rushed, not dragging)",
    "Smooth handling of complexity",
    "Apt use of examples or illustration",
    "Ability to hold reader attention",
    "Economy of language",
    "Emphasis where needed",
    "Voice consistency",
    "Avoidance of awkwardness",
    "Seamless integration of quotes/sources",
    "Good proportion of abstract vs. concrete",
    "Non-mechanical style",
    "Absence of distracting errors",
    "Balance of analysis and narrative",
    "Cadence (natural spoken rhythm)",
    "Avoidance of pedantry",
    "Polish (reads as finished, not drafty)",
    "Unifying theme or through-line",
    "Overall reader impact (leaves an impression)",
)

QUICK_METRICS: dict[str, tuple[str, ...]] = {
    "intelligence": (
        "Compression (density of meaning per word)",
        "Abstraction (ability to move beyond surface detail)",
        "Inference depth (multi-step reasoning)",
        "Integration of disparate domains",
        "Meta-cognitive awareness",
    ),
    "cogency": (
        "Logical validity",
        "Strength of evidence/reasons",
        "Explicit structure (clear argument shape)",
        "Handling counterexamples",
        "Avoiding overgeneralization",
    ),
    "originality": (
        "Conceptual novelty",
        "Semantic distance from existing ideas",
        "Transformational synthesis",
        "Counterintuitive insights",
        "Fresh angle development",
    ),
    "overall_quality": (
        "Clarity of expression",
        "Precision of language",
        "Coherence of structure",
        "Depth of insight",
        "Overall intellectual merit",
    ),
}

# Category -> (metric names, scope); scored 0-10.
COMPOSITE_METRICS: dict[str, tuple[tuple[str, ...], MetricScope]] = {
    "conceptual_innovation": (
        (
            "Novel perspective",
            "Reframing of common problem",
            "Uncommon connections",
        ),
        MetricScope.CHUNK,
    ),
    "depth": (
        (
            "Inference depth (multi-step reasoning)",
            "Managing complexity without collapse",
            "Recognizing hidden assumptions",
        ),
        MetricScope.CHUNK,
    ),
    "coherence": (
        (
            "Coherence across sections",
            "Consistent terminology",
            "Alignment between thesis and support",
        ),
        MetricScope.DOCUMENT,
    ),
    "insight_density": (
        (
            "Compression (density of meaning per word)",
            "Absence of filler",
            "Transferability (insight applies beyond the case)",
        ),
        MetricScope.CHUNK,
    ),
    "methodological_novelty": (
        (
            "Originality of method or approach",
            "Invention of new distinctions",
            "Rigor of argumentative procedure",
        ),
        MetricScope.CHUNK,
    ),
}


@dataclass(frozen=True, slots=True)
class MetricCatalog:
    """A named, ordered battery of metrics plus its default category weights."""

    name: str
    metrics: tuple[MetricDefinition, ...]
    default_weights: dict[str, float] = field(default_factory=dict)

    def categories(self) -> list[str]:
        seen: list[str] = []
        for metric in self.metrics:
            if metric.category not in seen:
                seen.append(metric.category)
        return seen

    def by_scope(self, scope: MetricScope) -> list[MetricDefinition]:
        return [metric for metric in self.metrics if metric.scope == scope]

    def metric_weight(self, metric_name: str) -> float:
        """Weight of a metric within its category; unweighted metrics count 1."""
        for metric in self.metrics:
            if metric.name == metric_name and metric.weight is not None:
                return metric.weight
        return 1.0

    def score_max_for(self, category: str) -> float:
        for metric in self.metrics:
            if metric.category == category:
                return metric.score_max
        raise KeyError(f"Unknown category: {category}")


def _framework_catalog(name: str, groups: dict[str, tuple[str, ...]]) -> MetricCatalog:
    metrics = tuple(
        MetricDefinition(name=metric, category=category, score_max=100.0)
        for category, names in groups.items()
        for metric in names
    )
    share = 1.0 / len(groups)
    return MetricCatalog(
        name=name,
        metrics=metrics,
        default_weights={category: share for category in groups},
    )


def _composite_catalog() -> MetricCatalog:
    metrics = tuple(
        MetricDefinition(name=metric, category=category, scope=scope, score_max=10.0)
        for category, (names, scope) in COMPOSITE_METRICS.items()
        for metric in names
    )
    return MetricCatalog(
        name="composite",
        metrics=metrics,
        default_weights=dict(DEFAULT_COMPOSITE_WEIGHTS),
    )


CATALOGS: dict[str, MetricCatalog] = {
    "composite": _composite_catalog(),
    "quick": _framework_catalog("quick", QUICK_METRICS),
    "comprehensive": _framework_catalog(
        "comprehensive",
        {
            "intelligence": INTELLIGENCE_METRICS,
            "cogency": COGENCY_METRICS,
            "originality": ORIGINALITY_METRICS,
            "overall_quality": OVERALL_QUALITY_METRICS,
        },
    ),
}


def get_catalog(name: str) -> MetricCatalog:
    catalog = CATALOGS.get(name)
    if catalog is None:
        raise InvalidInput(
            f"Unknown metric catalog: {name} (available: {', '.join(sorted(CATALOGS))})"
        )
    return catalog
