#!/usr/bin/env python3
"""
Design Loop Models - Data models shared by generators, verifiers and the driver.

Candidates, verification verdicts and iteration records are created once and
never mutated afterwards. AdaptiveConfig is the only run-scoped state and is
replaced (not mutated) at each iteration boundary.
"""

import json
import time
import uuid
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any


class GenerationStrategy(Enum):
    """Strategy used to produce a candidate."""

    INITIAL = "initial"
    REFINEMENT = "refinement"
    CROSSOVER = "crossover"
    MUTATION = "mutation"
    FRESH = "fresh"
    DIVERSITY = "diversity"


class VerificationTier(Enum):
    """Verification mode: one judge or weighted multi-judge consensus."""

    STANDARD = "standard"
    ADVANCED = "advanced"


class IssueSeverity(Enum):
    """Severity of a reported design issue, ordered most severe first."""

    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


SEVERITY_ORDER = {
    IssueSeverity.CRITICAL: 0,
    IssueSeverity.MAJOR: 1,
    IssueSeverity.MINOR: 2,
}

CATEGORY_NAMES = ("layout", "fidelity", "completeness", "polish")


def generate_id(prefix: str = "cand") -> str:
    """Return a unique candidate identifier."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


# =============================================================================
# Intent
# =============================================================================


@dataclass(frozen=True)
class DesignConstraint:
    """A prioritized constraint on the requested design."""

    description: str
    priority: str = "medium"  # high | medium | low


@dataclass(frozen=True)
class StylePreferences:
    color_scheme: str | None = None
    typography: str | None = None
    spacing: str | None = None
    mood: str | None = None


@dataclass(frozen=True)
class DesignIntent:
    """Immutable description of the artifact a run should produce."""

    description: str
    constraints: tuple[DesignConstraint, ...] = ()
    style_preferences: StylePreferences | None = None
    required_elements: tuple[str, ...] = ()

    def to_prompt(self) -> str:
        """Render the intent as prompt text for generators and judges."""
        lines = [f"Design request: {self.description}"]
        if self.constraints:
            lines.append("Constraints:")
            for constraint in self.constraints:
                lines.append(f"- [{constraint.priority}] {constraint.description}")
        if self.style_preferences:
            prefs = {
                k: v for k, v in asdict(self.style_preferences).items() if v
            }
            if prefs:
                lines.append("Style preferences:")
                for key, value in prefs.items():
                    lines.append(f"- {key}: {value}")
        if self.required_elements:
            lines.append("Required elements: " + ", ".join(self.required_elements))
        return "\n".join(lines)


# =============================================================================
# Candidates and rendering
# =============================================================================


@dataclass(frozen=True)
class CandidateMetadata:
    """Generation metadata attached to a candidate."""

    temperature: float
    confidence: float = 0.5
    parent_scores: tuple[float, ...] = ()
    refinement_focus: str | None = None


@dataclass(frozen=True)
class DesignCandidate:
    """An artifact proposal. The seed is opaque to everything except the renderer."""

    id: str
    seed: str
    strategy: GenerationStrategy
    iteration: int
    metadata: CandidateMetadata
    parent_id: str | None = None
    parent_ids: tuple[str, ...] = ()
    created_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ScreenshotData:
    full: str  # base64 PNG
    thumbnail: str  # base64 PNG
    dimensions: tuple[int, int]
    device_pixel_ratio: float = 1.0


@dataclass(frozen=True)
class RenderedCandidate:
    """Outcome of rendering one candidate: a screenshot or a typed failure."""

    candidate: DesignCandidate
    screenshot: ScreenshotData | None
    render_successful: bool
    render_time_ms: float
    error: str | None = None


# =============================================================================
# Verification
# =============================================================================


@dataclass(frozen=True)
class VerificationCategories:
    """Four bounded category scores, always present together."""

    layout: float
    fidelity: float
    completeness: float
    polish: float

    def __post_init__(self):
        for name in CATEGORY_NAMES:
            object.__setattr__(self, name, clamp(float(getattr(self, name))))

    @classmethod
    def uniform(cls, score: float) -> "VerificationCategories":
        return cls(score, score, score, score)

    def as_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in CATEGORY_NAMES}

    def weakest(self) -> str:
        """Name of the lowest-scoring category (first in order on ties)."""
        values = self.as_dict()
        return min(CATEGORY_NAMES, key=lambda name: values[name])


@dataclass(frozen=True)
class DesignIssue:
    type: str
    severity: IssueSeverity
    description: str
    suggestion: str | None = None

    def dedupe_key(self) -> str:
        return f"{self.type}:{self.description.lower().strip()}"


@dataclass(frozen=True)
class ModelVerificationResult:
    """One judge's parsed output for one candidate."""

    model: str
    score: float
    confidence: float
    critique: str
    categories: VerificationCategories
    issues: tuple[DesignIssue, ...] = ()
    strengths: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()
    raw_response: str = ""
    response_time_ms: float = 0.0


@dataclass(frozen=True)
class ModelScore:
    """Per-model line of an advanced-tier breakdown."""

    model: str
    score: float
    confidence: float
    weight: float  # normalized


@dataclass(frozen=True)
class DetailedAnalysis:
    categories: VerificationCategories
    issues: tuple[DesignIssue, ...] = ()
    strengths: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()


@dataclass(frozen=True)
class VerificationResult:
    """Fused verdict for one candidate."""

    score: float
    acceptable: bool
    critique: str
    detailed_analysis: DetailedAnalysis
    model_consensus: float
    confidence: float
    tier: VerificationTier
    model_breakdown: tuple[ModelScore, ...] | None = None
    verification_time_ms: float = 0.0


@dataclass
class ModelWeight:
    """Enabled (model, weight) pair for the advanced tier."""

    model: str
    weight: float = 1.0
    enabled: bool = True


@dataclass
class AdvancedVerificationConfig:
    models: list[ModelWeight] = field(default_factory=list)
    consensus_threshold: float = 0.7


@dataclass
class VerificationConfig:
    """Per-run verification settings."""

    tier: VerificationTier = VerificationTier.STANDARD
    primary_model: str | None = None
    advanced_config: AdvancedVerificationConfig | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VerificationConfig":
        advanced = data.get("advanced_config")
        return cls(
            tier=VerificationTier(data.get("tier", "standard")),
            primary_model=data.get("primary_model"),
            advanced_config=AdvancedVerificationConfig(
                models=[ModelWeight(**m) for m in advanced.get("models", [])],
                consensus_threshold=advanced.get("consensus_threshold", 0.7),
            )
            if advanced
            else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier": self.tier.value,
            "primary_model": self.primary_model,
            "advanced_config": asdict(self.advanced_config)
            if self.advanced_config
            else None,
        }


# =============================================================================
# Quality scoring
# =============================================================================

QUALITY_COMPONENT_WEIGHTS = {
    "visual_fidelity": 0.30,
    "technical_correctness": 0.25,
    "design_principles": 0.20,
    "intent_alignment": 0.25,
}


@dataclass(frozen=True)
class QualityComponent:
    score: float
    weight: float
    confidence: float


@dataclass(frozen=True)
class QualityScore:
    """
    Weighted composite over four named components.

    overall is the weighted sum of the component scores and
    improvement_potential is 1 - overall.
    """

    components: dict[str, QualityComponent]
    overall: float
    improvement_potential: float
    confidence: float

    @classmethod
    def from_verification(
        cls,
        verification: VerificationResult,
        weights: dict[str, float] | None = None,
    ) -> "QualityScore":
        weights = weights or QUALITY_COMPONENT_WEIGHTS
        if set(weights) != set(QUALITY_COMPONENT_WEIGHTS):
            raise ValueError(
                f"Quality weights must name exactly {sorted(QUALITY_COMPONENT_WEIGHTS)}"
            )
        if abs(sum(weights.values()) - 1.0) > 1e-6:
            raise ValueError(f"Quality weights must sum to 1, got {sum(weights.values())}")

        cats = verification.detailed_analysis.categories
        conf = verification.confidence
        raw = {
            "visual_fidelity": cats.fidelity,
            "technical_correctness": (cats.layout + cats.completeness) / 2,
            "design_principles": cats.polish,
            "intent_alignment": clamp(verification.score),
        }
        components = {
            name: QualityComponent(score=raw[name], weight=weights[name], confidence=conf)
            for name in QUALITY_COMPONENT_WEIGHTS
        }
        overall = clamp(sum(c.score * c.weight for c in components.values()))
        return cls(
            components=components,
            overall=overall,
            improvement_potential=1.0 - overall,
            confidence=conf,
        )


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: DesignCandidate
    render: RenderedCandidate
    verification: VerificationResult
    quality_score: QualityScore


# =============================================================================
# Iterations and adaptive state
# =============================================================================


@dataclass(frozen=True)
class PerformanceMetrics:
    generation_time_ms: float
    render_time_ms: float
    verification_time_ms: float
    total_time_ms: float
    api_calls: int
    estimated_cost: float = 0.0


@dataclass(frozen=True)
class StrategyUsage:
    """Usage count and mean iteration of use for one strategy."""

    strategy: GenerationStrategy
    uses: int
    avg_iteration: float


@dataclass(frozen=True)
class ConvergenceAnalysis:
    converged: bool
    convergence_rate: float
    oscillation_detected: bool
    plateau_detected: bool


@dataclass(frozen=True)
class TerminationSuggestion:
    type: str  # increase_diversity | change_strategy | approaching_timeout
    description: str


@dataclass(frozen=True)
class TerminationDecision:
    should_terminate: bool
    confidence: float
    reason: str | None = None
    strategy_breakdown: tuple[StrategyUsage, ...] = ()
    convergence: ConvergenceAnalysis | None = None
    suggestions: tuple[TerminationSuggestion, ...] = ()


@dataclass(frozen=True)
class FeedbackIteration:
    """One completed loop pass. Append-only history entry."""

    iteration: int
    timestamp: float
    candidates: tuple[ScoredCandidate, ...]
    best_candidate: ScoredCandidate | None
    termination_check: TerminationDecision
    performance: PerformanceMetrics
    strategies_used: tuple[GenerationStrategy, ...]


@dataclass(frozen=True)
class AdaptiveConfig:
    """Run-scoped adaptive hyperparameters."""

    temperature: float = 0.7
    exploration_rate: float = 0.3
    min_diversity: float = 0.2


@dataclass(frozen=True)
class TemperatureSchedule:
    initial: float = 0.8
    min: float = 0.3
    decay_rate: float = 0.1

    def temperature_at(self, iteration: int) -> float:
        return max(self.min, self.initial * (1 - self.decay_rate) ** (iteration - 1))


DEFAULT_ADAPTIVE_CONFIG = AdaptiveConfig()
DEFAULT_TEMPERATURE_SCHEDULE = TemperatureSchedule()

DEFAULT_AVAILABLE_TOOLS = (
    "create_frame",
    "create_rectangle",
    "create_ellipse",
    "create_text",
    "create_line",
    "set_fill",
    "set_stroke",
    "set_corner_radius",
    "set_opacity",
    "move_layer",
    "resize_layer",
    "set_auto_layout",
    "add_effect",
    "group_layers",
)


# =============================================================================
# Run options and results
# =============================================================================


@dataclass
class FeedbackLoopOptions:
    """
    Options for one FeedbackLoop run.

    Usage:
        options = FeedbackLoopOptions.from_file("design_loop.json")
        result = await loop.run(intent, options)
    """

    max_iterations: int = 10
    candidates_per_iteration: int = 3
    quality_threshold: float = 0.85
    timeout_ms: int = 300_000
    enable_early_stopping: bool = True
    render_timeout_ms: int = 10_000
    verification: VerificationConfig = field(default_factory=VerificationConfig)
    quality_weights: dict[str, float] = field(
        default_factory=lambda: dict(QUALITY_COMPONENT_WEIGHTS)
    )
    cost_per_api_call: float = 0.0
    push_metrics: bool = False
    project: str = "design_loop"

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.candidates_per_iteration < 1:
            raise ValueError(
                f"candidates_per_iteration must be >= 1, got {self.candidates_per_iteration}"
            )
        if not 0.0 <= self.quality_threshold <= 1.0:
            raise ValueError(
                f"quality_threshold must be in [0, 1], got {self.quality_threshold}"
            )
        if abs(sum(self.quality_weights.values()) - 1.0) > 1e-6:
            raise ValueError("quality_weights must sum to 1")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeedbackLoopOptions":
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        if isinstance(kwargs.get("verification"), dict):
            kwargs["verification"] = VerificationConfig.from_dict(kwargs["verification"])
        return cls(**kwargs)

    @classmethod
    def from_file(cls, path: Path | str) -> "FeedbackLoopOptions":
        with open(path) as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_iterations": self.max_iterations,
            "candidates_per_iteration": self.candidates_per_iteration,
            "quality_threshold": self.quality_threshold,
            "timeout_ms": self.timeout_ms,
            "enable_early_stopping": self.enable_early_stopping,
            "render_timeout_ms": self.render_timeout_ms,
            "verification": self.verification.to_dict(),
            "quality_weights": dict(self.quality_weights),
            "cost_per_api_call": self.cost_per_api_call,
            "push_metrics": self.push_metrics,
            "project": self.project,
        }


@dataclass(frozen=True)
class DesignAnalytics:
    score_progression: tuple[float, ...]
    strategy_effectiveness: dict[str, float]
    avg_iteration_time_ms: float
    total_cost_estimate: float
    convergence_analysis: ConvergenceAnalysis


@dataclass(frozen=True)
class DesignResult:
    """Final output of a run."""

    success: bool
    final_candidate: DesignCandidate
    final_screenshot: ScreenshotData | None
    quality_score: QualityScore
    iterations: tuple[FeedbackIteration, ...]
    total_iterations: int
    total_time_ms: float
    termination_reason: str
    analytics: DesignAnalytics | None = None


__all__ = [
    "GenerationStrategy",
    "VerificationTier",
    "IssueSeverity",
    "SEVERITY_ORDER",
    "CATEGORY_NAMES",
    "generate_id",
    "clamp",
    "DesignConstraint",
    "StylePreferences",
    "DesignIntent",
    "CandidateMetadata",
    "DesignCandidate",
    "ScreenshotData",
    "RenderedCandidate",
    "VerificationCategories",
    "DesignIssue",
    "ModelVerificationResult",
    "ModelScore",
    "DetailedAnalysis",
    "VerificationResult",
    "ModelWeight",
    "AdvancedVerificationConfig",
    "VerificationConfig",
    "QUALITY_COMPONENT_WEIGHTS",
    "QualityComponent",
    "QualityScore",
    "ScoredCandidate",
    "PerformanceMetrics",
    "StrategyUsage",
    "ConvergenceAnalysis",
    "TerminationSuggestion",
    "TerminationDecision",
    "FeedbackIteration",
    "AdaptiveConfig",
    "TemperatureSchedule",
    "DEFAULT_ADAPTIVE_CONFIG",
    "DEFAULT_TEMPERATURE_SCHEDULE",
    "DEFAULT_AVAILABLE_TOOLS",
    "FeedbackLoopOptions",
    "DesignAnalytics",
    "DesignResult",
]
