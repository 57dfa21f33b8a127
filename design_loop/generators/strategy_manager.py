#!/usr/bin/env python3
"""
Strategy Manager - Allocates each iteration's candidate budget across strategies.

Owns one generator per strategy and a strategy weight table. Allocation
starts from the normalized weights, applies context adjustments (iteration
phase, exploration rate, stagnation), then hands out integer counts in
descending probability order.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass

from ..errors import ConfigurationError, GenerationError
from ..models import (
    DEFAULT_ADAPTIVE_CONFIG,
    AdaptiveConfig,
    DesignCandidate,
    GenerationStrategy,
    StrategyUsage,
)
from ..providers import AIProvider
from ..termination.convergence import is_stagnant
from .base import BaseGenerator, GenerationContext
from .crossover import CrossoverGenerator
from .diversity import DiversityGenerator
from .fresh import FreshGenerator
from .initial import InitialGenerator
from .mutation import MutationGenerator
from .refinement import RefinementGenerator

logger = logging.getLogger(__name__)

S = GenerationStrategy

DEFAULT_STRATEGY_WEIGHTS = {
    S.INITIAL: 1.0,
    S.REFINEMENT: 2.0,
    S.CROSSOVER: 1.0,
    S.MUTATION: 1.0,
    S.FRESH: 0.5,
    S.DIVERSITY: 0.5,
}

GENERATOR_CLASSES: dict[GenerationStrategy, type[BaseGenerator]] = {
    S.INITIAL: InitialGenerator,
    S.REFINEMENT: RefinementGenerator,
    S.CROSSOVER: CrossoverGenerator,
    S.MUTATION: MutationGenerator,
    S.FRESH: FreshGenerator,
    S.DIVERSITY: DiversityGenerator,
}

# Strategies whose sampling temperature follows the adaptive temperature.
ADAPTIVE_TEMPERATURE_STRATEGIES = (S.INITIAL, S.REFINEMENT, S.CROSSOVER, S.MUTATION)

MIN_WEIGHT = 0.1
MAX_WEIGHT = 5.0


@dataclass(frozen=True)
class StrategySelection:
    strategy: GenerationStrategy
    count: int
    probability: float


def is_applicable(strategy: GenerationStrategy, context: GenerationContext) -> bool:
    history = len(context.previous_candidates)
    if strategy is S.INITIAL:
        return context.iteration == 1
    if strategy in (S.REFINEMENT, S.MUTATION):
        return history >= 1
    if strategy is S.CROSSOVER:
        return history >= 2
    return True


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


class StrategyManager:
    """
    Chooses and runs generation strategies.

    Usage:
        manager = StrategyManager(provider)
        candidates = await manager.generate_candidates(context, 5, adaptive)
        print(manager.get_strategy_effectiveness())
    """

    def __init__(
        self,
        provider: AIProvider | None = None,
        weights: dict[GenerationStrategy, float] | None = None,
    ):
        self.generators: dict[GenerationStrategy, BaseGenerator] = {
            strategy: cls(provider) for strategy, cls in GENERATOR_CLASSES.items()
        }
        self.weights = dict(DEFAULT_STRATEGY_WEIGHTS)
        if weights:
            self.weights.update(weights)
        self._provider = provider
        self._usage: list[tuple[GenerationStrategy, int]] = []

    def set_provider(self, provider: AIProvider) -> None:
        self._provider = provider
        for generator in self.generators.values():
            generator.set_provider(provider)

    def get_weights(self) -> dict[GenerationStrategy, float]:
        return dict(self.weights)

    def update_weights(self, improvements: dict[GenerationStrategy, float]) -> None:
        """Scale each strategy's weight by (1 + improvement), clamped to [0.1, 5.0]."""
        for strategy, improvement in improvements.items():
            updated = self.weights[strategy] * (1 + improvement)
            self.weights[strategy] = max(MIN_WEIGHT, min(MAX_WEIGHT, updated))

    def detect_stagnation(self, context: GenerationContext) -> bool:
        scores = [c.quality_score.overall for c in context.previous_candidates]
        return is_stagnant(scores)

    def strategy_probabilities(
        self, context: GenerationContext, adaptive: AdaptiveConfig
    ) -> dict[GenerationStrategy, float]:
        """Normalized, context-adjusted probabilities for every non-initial strategy."""
        probs = {s: w for s, w in self.weights.items() if s is not S.INITIAL}
        total = sum(probs.values())
        probs = {s: (w / total if total > 0 else 0.0) for s, w in probs.items()}

        def scale(factors: dict[GenerationStrategy, float]) -> None:
            for s, f in factors.items():
                probs[s] *= f

        if context.iteration <= 3:
            scale({S.REFINEMENT: 1.5, S.DIVERSITY: 0.5})
        if context.iteration > 5:
            scale({S.FRESH: 1.5, S.DIVERSITY: 1.5, S.CROSSOVER: 1.2})
        if adaptive.exploration_rate > 0.5:
            scale({S.MUTATION: 1.3, S.DIVERSITY: 1.3, S.FRESH: 1.2})
        if adaptive.exploration_rate < 0.2:
            scale({S.REFINEMENT: 1.5})
        if self.detect_stagnation(context):
            logger.info(f"Stagnation detected at iteration {context.iteration}")
            scale({S.FRESH: 2.0, S.DIVERSITY: 2.0, S.MUTATION: 1.5})

        total = sum(probs.values())
        return {s: (p / total if total > 0 else 0.0) for s, p in probs.items()}

    def select_strategies(
        self,
        context: GenerationContext,
        total_count: int,
        adaptive: AdaptiveConfig | None = None,
    ) -> list[StrategySelection]:
        """
        Allocate total_count candidates across strategies.

        Returns:
            Selections with positive counts summing to at most total_count.
            Iteration 1 always allocates everything to initial.
        """
        if total_count <= 0:
            return []
        if context.iteration == 1:
            return [StrategySelection(S.INITIAL, total_count, 1.0)]

        adaptive = adaptive or DEFAULT_ADAPTIVE_CONFIG
        probs = self.strategy_probabilities(context, adaptive)

        selections = []
        remaining = total_count
        for strategy, prob in sorted(probs.items(), key=lambda kv: kv[1], reverse=True):
            if remaining <= 0:
                break
            if prob <= 0 or not is_applicable(strategy, context):
                continue
            count = min(max(1, _round_half_up(total_count * prob)), remaining)
            selections.append(StrategySelection(strategy, count, prob))
            remaining -= count

        if not selections:
            fallback = S.REFINEMENT if context.previous_candidates else S.FRESH
            selections.append(StrategySelection(fallback, remaining, 1.0))
        return selections

    async def generate_candidates(
        self,
        context: GenerationContext,
        total_count: int,
        adaptive: AdaptiveConfig | None = None,
    ) -> list[DesignCandidate]:
        """
        Run the selected generators concurrently and concatenate their output.

        A strategy whose samples all fail is logged and skipped.

        Raises:
            ConfigurationError: If no provider is set.
        """
        if self._provider is None:
            raise ConfigurationError("Provider not set")

        adaptive = adaptive or DEFAULT_ADAPTIVE_CONFIG
        for strategy in ADAPTIVE_TEMPERATURE_STRATEGIES:
            self.generators[strategy].configure({"temperature": adaptive.temperature})

        selections = self.select_strategies(context, total_count, adaptive)
        logger.debug(
            "Strategy allocation: "
            + ", ".join(f"{s.strategy.value}={s.count}" for s in selections)
        )
        results = await asyncio.gather(
            *[self.generators[s.strategy].generate(context, s.count) for s in selections],
            return_exceptions=True,
        )

        candidates = []
        for selection, result in zip(selections, results):
            self._usage.append((selection.strategy, context.iteration))
            if isinstance(result, ConfigurationError):
                raise result
            if isinstance(result, GenerationError):
                logger.warning(str(result))
            elif isinstance(result, BaseException):
                logger.warning(f"{selection.strategy.value} generator failed: {result}")
            else:
                candidates.extend(result)
        return candidates

    def get_strategy_effectiveness(self) -> list[StrategyUsage]:
        """Usage count and mean iteration of use per strategy, in first-use order."""
        by_strategy: dict[GenerationStrategy, list[int]] = defaultdict(list)
        for strategy, iteration in self._usage:
            by_strategy[strategy].append(iteration)
        return [
            StrategyUsage(strategy=s, uses=len(its), avg_iteration=sum(its) / len(its))
            for s, its in by_strategy.items()
        ]

    def reset(self) -> None:
        """Clear recorded usage for a new run."""
        self._usage = []


__all__ = [
    "DEFAULT_STRATEGY_WEIGHTS",
    "StrategySelection",
    "StrategyManager",
    "is_applicable",
]
