#!/usr/bin/env python3
"""
Termination Policy - Decides when the design loop should stop.

Evaluates, in order of precedence:
1. Maximum iterations reached
2. Wall-clock timeout
3. Quality threshold met by the best candidate so far
4. Convergence (plateau without oscillation) of the best-score series
"""

import time
from collections import defaultdict
from dataclasses import dataclass

from ..models import (
    FeedbackIteration,
    GenerationStrategy,
    StrategyUsage,
    TerminationDecision,
    TerminationSuggestion,
)
from .convergence import analyze_convergence

REASON_MAX_ITERATIONS = "max iterations reached"
REASON_TIMEOUT = "timeout"
REASON_QUALITY = "quality threshold met"
REASON_CONVERGED = "converged"


@dataclass(frozen=True)
class TerminationCriteria:
    """Run limits. start_time is a time.monotonic() reading."""

    max_iterations: int
    quality_threshold: float
    start_time: float
    timeout_ms: float


def best_scores(iterations: list[FeedbackIteration]) -> list[float]:
    """
    Best overall score per iteration.

    An iteration that scored nothing repeats the run best so far. Iterations
    before the first scored one are left out.
    """
    scores: list[float] = []
    run_best: float | None = None
    for it in iterations:
        if it.best_candidate is not None:
            score = it.best_candidate.quality_score.overall
            run_best = score if run_best is None else max(run_best, score)
            scores.append(score)
        elif run_best is not None:
            scores.append(run_best)
    return scores


def usage_from_iterations(iterations: list[FeedbackIteration]) -> list[StrategyUsage]:
    seen: dict[GenerationStrategy, list[int]] = defaultdict(list)
    for it in iterations:
        for strategy in it.strategies_used:
            seen[strategy].append(it.iteration)
    return [
        StrategyUsage(strategy=s, uses=len(its), avg_iteration=sum(its) / len(its))
        for s, its in seen.items()
    ]


class TerminationPolicy:
    """
    Stateless termination evaluator over the full iteration history.

    Usage:
        policy = TerminationPolicy()
        criteria = TerminationCriteria(10, 0.85, time.monotonic(), 300_000)

        # After each iteration
        decision = policy.evaluate(history, criteria)
        if decision.should_terminate:
            print(f"Stopping: {decision.reason}")
    """

    def __init__(self, timeout_warning_ratio: float = 0.9):
        """
        Args:
            timeout_warning_ratio: Fraction of the time budget after which a
                continuing decision carries an approaching_timeout suggestion.
        """
        if not 0.0 < timeout_warning_ratio <= 1.0:
            raise ValueError("timeout_warning_ratio must be in (0.0, 1.0]")
        self.timeout_warning_ratio = timeout_warning_ratio

    def evaluate(
        self,
        iterations: list[FeedbackIteration],
        criteria: TerminationCriteria,
        strategy_usage: list[StrategyUsage] | None = None,
        now: float | None = None,
    ) -> TerminationDecision:
        """
        Decide whether to stop after the latest iteration.

        Args:
            iterations: Full history, oldest first.
            criteria: Run limits.
            strategy_usage: Recorded strategy history; derived from the
                iterations when omitted. Informational only.
            now: time.monotonic() reading to evaluate against.

        Returns:
            TerminationDecision with reason set when should_terminate.
        """
        now = time.monotonic() if now is None else now
        elapsed_ms = (now - criteria.start_time) * 1000
        breakdown = tuple(
            strategy_usage if strategy_usage is not None else usage_from_iterations(iterations)
        )
        scores = best_scores(iterations)
        convergence = analyze_convergence(scores)

        def result(should_stop: bool, confidence: float, reason: str | None = None, suggestions=()):
            return TerminationDecision(
                should_terminate=should_stop,
                confidence=confidence,
                reason=reason,
                strategy_breakdown=breakdown,
                convergence=convergence,
                suggestions=tuple(suggestions),
            )

        if len(iterations) >= criteria.max_iterations:
            return result(True, 1.0, REASON_MAX_ITERATIONS)

        if elapsed_ms >= criteria.timeout_ms:
            return result(True, 1.0, REASON_TIMEOUT)

        best = max(scores, default=None)
        if best is not None and best >= criteria.quality_threshold:
            return result(True, self._quality_confidence(iterations), REASON_QUALITY)

        if convergence.converged:
            return result(True, 0.8, REASON_CONVERGED)

        time_used = elapsed_ms / criteria.timeout_ms if criteria.timeout_ms > 0 else 1.0
        pressure = max(len(iterations) / criteria.max_iterations, time_used)
        return result(
            False,
            max(0.0, 1.0 - pressure),
            suggestions=self._suggestions(convergence, time_used),
        )

    def _quality_confidence(self, iterations: list[FeedbackIteration]) -> float:
        best = max(
            (it.best_candidate for it in iterations if it.best_candidate is not None),
            key=lambda c: c.quality_score.overall,
        )
        return max(0.7, best.quality_score.confidence)

    def _suggestions(self, convergence, time_used: float) -> list[TerminationSuggestion]:
        suggestions = []
        if convergence.plateau_detected:
            suggestions.append(
                TerminationSuggestion(
                    "increase_diversity", "Scores have plateaued; favor diversity and fresh designs"
                )
            )
        if convergence.oscillation_detected:
            suggestions.append(
                TerminationSuggestion(
                    "change_strategy", "Scores are oscillating; shift the strategy mix"
                )
            )
        if time_used >= self.timeout_warning_ratio:
            suggestions.append(
                TerminationSuggestion(
                    "approaching_timeout", f"{time_used:.0%} of the time budget used"
                )
            )
        return suggestions

    def estimate_iterations_remaining(
        self,
        iterations: list[FeedbackIteration],
        criteria: TerminationCriteria,
        now: float | None = None,
    ) -> int:
        """Iterations that still fit in both the iteration and time budgets."""
        now = time.monotonic() if now is None else now
        by_count = max(0, criteria.max_iterations - len(iterations))
        if not iterations:
            return by_count
        elapsed_ms = (now - criteria.start_time) * 1000
        per_iteration = elapsed_ms / len(iterations)
        if per_iteration <= 0:
            return by_count
        by_time = max(0, int((criteria.timeout_ms - elapsed_ms) // per_iteration))
        return min(by_count, by_time)


__all__ = [
    "REASON_MAX_ITERATIONS",
    "REASON_TIMEOUT",
    "REASON_QUALITY",
    "REASON_CONVERGED",
    "TerminationCriteria",
    "TerminationPolicy",
    "best_scores",
    "usage_from_iterations",
]
