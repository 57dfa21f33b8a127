#!/usr/bin/env python3
"""
Convergence - Plateau, oscillation and stagnation detection over score series.
"""

from statistics import fmean, pvariance

from ..models import ConvergenceAnalysis

MIN_POINTS = 3
PLATEAU_WINDOW = 4
PLATEAU_VARIANCE = 0.001
OSCILLATION_RATE = 0.5
STAGNATION_WINDOW = 5
STAGNATION_VARIANCE = 0.001


def count_reversals(scores: list[float]) -> int:
    """Number of sign changes between consecutive deltas (flat deltas are skipped)."""
    reversals = 0
    prev_sign = 0
    for a, b in zip(scores, scores[1:]):
        delta = b - a
        sign = (delta > 0) - (delta < 0)
        if sign == 0:
            continue
        if prev_sign and sign != prev_sign:
            reversals += 1
        prev_sign = sign
    return reversals


def analyze_convergence(
    scores: list[float],
    plateau_window: int = PLATEAU_WINDOW,
    plateau_variance: float = PLATEAU_VARIANCE,
    oscillation_rate: float = OSCILLATION_RATE,
) -> ConvergenceAnalysis:
    """
    Analyze a best-score-per-iteration series.

    Args:
        scores: Best score of each iteration, oldest first.

    Returns:
        ConvergenceAnalysis. converged is plateau and not oscillating.
        Series shorter than MIN_POINTS are never converged and have rate 0.
    """
    if len(scores) < MIN_POINTS:
        return ConvergenceAnalysis(
            converged=False,
            convergence_rate=0.0,
            oscillation_detected=False,
            plateau_detected=False,
        )

    deltas = [b - a for a, b in zip(scores, scores[1:])]
    rate = fmean(abs(d) for d in deltas)
    oscillating = count_reversals(scores) / (len(scores) - 2) > oscillation_rate
    plateau = pvariance(scores[-plateau_window:]) < plateau_variance

    return ConvergenceAnalysis(
        converged=plateau and not oscillating,
        convergence_rate=rate,
        oscillation_detected=oscillating,
        plateau_detected=plateau,
    )


def is_stagnant(
    scores: list[float],
    window: int = STAGNATION_WINDOW,
    threshold: float = STAGNATION_VARIANCE,
) -> bool:
    """True when the variance of the last `window` scores is below threshold.

    Fewer than MIN_POINTS scores are never stagnant.
    """
    recent = scores[-window:]
    if len(recent) < MIN_POINTS:
        return False
    return pvariance(recent) < threshold


__all__ = ["analyze_convergence", "is_stagnant", "count_reversals"]
