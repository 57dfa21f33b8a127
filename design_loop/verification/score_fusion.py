#!/usr/bin/env python3
"""
ScoreFusion - Weighted multi-model score fusion with consensus.

Combines several judges' scores for one candidate into a single fused
score, and measures how much the judges agree.
"""

import math
from dataclasses import dataclass, field

from ..models import ModelScore, ModelVerificationResult


@dataclass(frozen=True)
class ModelJudgement:
    """One surviving judge's result with its configured weight."""

    model: str
    result: ModelVerificationResult
    weight: float = 1.0


@dataclass
class FusionResult:
    """Result from score fusion including per-model breakdown."""

    fused_score: float  # 0.0 to 1.0
    weighted_confidence: float
    consensus: float  # 1.0 = full agreement
    confidence: float  # weighted_confidence discounted by disagreement
    normalized_weights: dict[str, float] = field(default_factory=dict)
    model_scores: list[ModelScore] = field(default_factory=list)


def calculate_consensus(scores: list[float]) -> float:
    """
    Agreement among judges: max(0, 1 - 2 * population stddev).

    A single score is full agreement.
    """
    if len(scores) < 2:
        return 1.0
    mean = sum(scores) / len(scores)
    variance = sum((s - mean) ** 2 for s in scores) / len(scores)
    return max(0.0, 1.0 - 2.0 * math.sqrt(variance))


class ScoreFusion:
    """
    Weighted arithmetic mean fusion across judge models.

    Formula:
        norm_weight_i = weight_i / sum(weight)
        fused_score = sum(score_i * norm_weight_i)
        weighted_confidence = sum(confidence_i * norm_weight_i)
        consensus = max(0, 1 - 2 * stddev(scores))
        confidence = weighted_confidence * (0.5 + 0.5 * consensus)

    If every weight is zero the judges are weighted equally.

    Usage:
        fusion = ScoreFusion()
        result = fusion.fuse([
            ModelJudgement("claude", claude_result, 0.6),
            ModelJudgement("openai", openai_result, 0.4),
        ])
        print(f"Fused: {result.fused_score:.2f}, consensus {result.consensus:.2f}")
    """

    def fuse(self, judgements: list[ModelJudgement]) -> FusionResult:
        """
        Fuse judge results into one score.

        Raises:
            ValueError: If no judgements are provided or a weight is negative.
        """
        if not judgements:
            raise ValueError("No judgements to fuse")
        if any(j.weight < 0 for j in judgements):
            raise ValueError("Judge weights must be non-negative")

        total = sum(j.weight for j in judgements)
        if total > 0:
            weights = [j.weight / total for j in judgements]
        else:
            weights = [1.0 / len(judgements)] * len(judgements)

        fused = sum(j.result.score * w for j, w in zip(judgements, weights))
        weighted_conf = sum(j.result.confidence * w for j, w in zip(judgements, weights))
        consensus = calculate_consensus([j.result.score for j in judgements])

        return FusionResult(
            fused_score=fused,
            weighted_confidence=weighted_conf,
            consensus=consensus,
            confidence=weighted_conf * (0.5 + 0.5 * consensus),
            normalized_weights={j.model: w for j, w in zip(judgements, weights)},
            model_scores=[
                ModelScore(
                    model=j.model,
                    score=j.result.score,
                    confidence=j.result.confidence,
                    weight=w,
                )
                for j, w in zip(judgements, weights)
            ],
        )


__all__ = ["ScoreFusion", "ModelJudgement", "FusionResult", "calculate_consensus"]
