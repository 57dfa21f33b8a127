#!/usr/bin/env python3
"""Tests for StrategyManager allocation, stagnation handling and fan-out."""

import json
from unittest.mock import AsyncMock

import pytest

from design_loop.errors import ConfigurationError, GenerationError
from design_loop.generators.base import GenerationContext
from design_loop.generators.strategy_manager import (
    DEFAULT_STRATEGY_WEIGHTS,
    StrategyManager,
    is_applicable,
)
from design_loop.models import (
    AdaptiveConfig,
    CandidateMetadata,
    DesignCandidate,
    DesignIntent,
    DetailedAnalysis,
    GenerationStrategy,
    QualityScore,
    RenderedCandidate,
    ScoredCandidate,
    VerificationCategories,
    VerificationResult,
    VerificationTier,
    generate_id,
)
from design_loop.providers import ProviderCapabilities, ProviderResponse
from design_loop.rendering import create_seed

S = GenerationStrategy


class FakeProvider:
    def __init__(self):
        self.capabilities = ProviderCapabilities(vision=False)
        self.temperatures = []

    def is_connected(self):
        return True

    async def send_message(self, messages, *, system_prompt=None, temperature=0.7, max_tokens=4096):
        self.temperatures.append(temperature)
        return ProviderResponse(content=json.dumps([{"tool": "create_frame", "args": {}}]))


def make_scored(score):
    verification = VerificationResult(
        score=score,
        acceptable=False,
        critique="",
        detailed_analysis=DetailedAnalysis(categories=VerificationCategories.uniform(score)),
        model_consensus=1.0,
        confidence=0.8,
        tier=VerificationTier.STANDARD,
    )
    candidate = DesignCandidate(
        id=generate_id(),
        seed=create_seed([{"tool": "create_frame", "args": {}}]),
        strategy=S.INITIAL,
        iteration=1,
        metadata=CandidateMetadata(temperature=0.7),
    )
    return ScoredCandidate(
        candidate,
        RenderedCandidate(candidate, None, True, 1.0),
        verification,
        QualityScore.from_verification(verification),
    )


def make_context(iteration, scores=()):
    return GenerationContext(
        intent=DesignIntent("A dashboard"),
        iteration=iteration,
        previous_candidates=tuple(make_scored(s) for s in scores),
    )


def allocation(selections):
    return {s.strategy: s.count for s in selections}


class TestApplicability:
    """Tests for the strategy applicability rule."""

    def test_initial_only_first_iteration(self):
        """Test initial is valid only at iteration 1."""
        assert is_applicable(S.INITIAL, make_context(1))
        assert not is_applicable(S.INITIAL, make_context(2, [0.5]))

    def test_history_requirements(self):
        """Test refinement/mutation need 1 candidate and crossover needs 2."""
        one = make_context(2, [0.5])
        assert is_applicable(S.REFINEMENT, one)
        assert is_applicable(S.MUTATION, one)
        assert not is_applicable(S.CROSSOVER, one)
        assert is_applicable(S.CROSSOVER, make_context(2, [0.5, 0.6]))

    def test_always_valid(self):
        """Test fresh and diversity need nothing."""
        empty = make_context(4)
        assert is_applicable(S.FRESH, empty)
        assert is_applicable(S.DIVERSITY, empty)


class TestSelectStrategies:
    """Tests for per-iteration strategy allocation."""

    def test_first_iteration_all_initial(self):
        """Test iteration 1 allocates everything to initial."""
        selections = StrategyManager().select_strategies(make_context(1), 5)
        assert allocation(selections) == {S.INITIAL: 5}

    def test_early_iteration_allocation(self):
        """Test iteration 2 with one prior candidate."""
        selections = StrategyManager().select_strategies(make_context(2, [0.5]), 5)
        assert allocation(selections) == {S.REFINEMENT: 3, S.MUTATION: 1, S.FRESH: 1}

    def test_crossover_with_two_candidates(self):
        """Test crossover is allocated once two candidates exist."""
        selections = StrategyManager().select_strategies(make_context(2, [0.5, 0.6]), 3)
        assert allocation(selections) == {S.REFINEMENT: 2, S.CROSSOVER: 1}

    @pytest.mark.parametrize("iteration", [2, 4, 6, 9])
    @pytest.mark.parametrize("total", [1, 2, 3, 5, 8])
    def test_allocation_within_budget(self, iteration, total):
        """Test counts are positive and sum to at most the total."""
        ctx = make_context(iteration, [0.3, 0.5, 0.7])
        selections = StrategyManager().select_strategies(ctx, total)
        assert all(s.count >= 1 for s in selections)
        assert sum(s.count for s in selections) <= total
        assert S.INITIAL not in allocation(selections)

    def test_never_initial_after_first_iteration(self):
        """Test initial is not chosen after iteration 1, even without history."""
        selections = StrategyManager().select_strategies(make_context(3), 4)
        assert S.INITIAL not in allocation(selections)
        assert set(allocation(selections)) <= {S.FRESH, S.DIVERSITY}

    def test_zero_total(self):
        """Test a zero budget allocates nothing."""
        assert StrategyManager().select_strategies(make_context(2, [0.5]), 0) == []

    def test_fallback_to_refinement(self):
        """Test the fallback when every applicable strategy has zero weight."""
        weights = {S.CROSSOVER: 0, S.MUTATION: 0, S.FRESH: 0, S.DIVERSITY: 0, S.REFINEMENT: 0}
        manager = StrategyManager(weights=weights)
        selections = manager.select_strategies(make_context(2, [0.5]), 3)
        assert allocation(selections) == {S.REFINEMENT: 3}

    def test_fallback_to_fresh_without_history(self):
        """Test the fallback is fresh when there is no history."""
        weights = {S.CROSSOVER: 0, S.MUTATION: 0, S.FRESH: 0, S.DIVERSITY: 0, S.REFINEMENT: 0}
        manager = StrategyManager(weights=weights)
        selections = manager.select_strategies(make_context(2), 2)
        assert allocation(selections) == {S.FRESH: 2}

    def test_late_exploration_boost(self):
        """Test late iterations favor fresh, diversity and crossover."""
        manager = StrategyManager()
        adaptive = AdaptiveConfig()
        early = manager.strategy_probabilities(make_context(4, [0.3, 0.6]), adaptive)
        late = manager.strategy_probabilities(make_context(6, [0.3, 0.6]), adaptive)
        assert late[S.FRESH] > early[S.FRESH]
        assert late[S.DIVERSITY] > early[S.DIVERSITY]
        assert late[S.REFINEMENT] < early[S.REFINEMENT]

    def test_high_exploration_rate(self):
        """Test exploration rate above 0.5 shifts weight to mutation and diversity."""
        manager = StrategyManager()
        ctx = make_context(4, [0.3, 0.6])
        base = manager.strategy_probabilities(ctx, AdaptiveConfig(exploration_rate=0.3))
        explore = manager.strategy_probabilities(ctx, AdaptiveConfig(exploration_rate=0.7))
        assert explore[S.MUTATION] > base[S.MUTATION]
        assert explore[S.DIVERSITY] > base[S.DIVERSITY]

    def test_low_exploration_rate(self):
        """Test exploration rate below 0.2 favors refinement."""
        manager = StrategyManager()
        ctx = make_context(4, [0.3, 0.6])
        base = manager.strategy_probabilities(ctx, AdaptiveConfig(exploration_rate=0.3))
        exploit = manager.strategy_probabilities(ctx, AdaptiveConfig(exploration_rate=0.1))
        assert exploit[S.REFINEMENT] > base[S.REFINEMENT]

    def test_probabilities_normalized(self):
        """Test adjusted probabilities sum to 1."""
        probs = StrategyManager().strategy_probabilities(
            make_context(7, [0.5] * 5), AdaptiveConfig(exploration_rate=0.9)
        )
        assert sum(probs.values()) == pytest.approx(1.0)


class TestStagnation:
    """Tests for stagnation detection and its effect on allocation."""

    def test_constant_scores_stagnant(self):
        """Test a constant series is stagnant."""
        assert StrategyManager().detect_stagnation(make_context(4, [0.6] * 5))

    def test_increasing_scores_not_stagnant(self):
        """Test an increasing series is not stagnant."""
        assert not StrategyManager().detect_stagnation(
            make_context(4, [0.2, 0.35, 0.5, 0.65, 0.8])
        )

    def test_too_few_scores(self):
        """Test fewer than 3 scores never count as stagnant."""
        assert not StrategyManager().detect_stagnation(make_context(4, [0.6, 0.6]))

    def test_only_last_five_considered(self):
        """Test old variance does not mask recent stagnation."""
        scores = [0.1, 0.9, 0.6, 0.6, 0.6, 0.6, 0.6]
        assert StrategyManager().detect_stagnation(make_context(4, scores))

    def test_stagnation_boosts_exploration(self):
        """Test stagnation raises fresh and diversity probabilities."""
        manager = StrategyManager()
        adaptive = AdaptiveConfig()
        moving = manager.strategy_probabilities(
            make_context(4, [0.2, 0.35, 0.5, 0.65, 0.8]), adaptive
        )
        stuck = manager.strategy_probabilities(make_context(4, [0.6] * 5), adaptive)
        assert stuck[S.FRESH] > moving[S.FRESH]
        assert stuck[S.DIVERSITY] > moving[S.DIVERSITY]


class TestWeights:
    """Tests for the strategy weight table."""

    def test_defaults(self):
        """Test the default weight table."""
        assert StrategyManager().get_weights() == DEFAULT_STRATEGY_WEIGHTS
        assert DEFAULT_STRATEGY_WEIGHTS[S.REFINEMENT] == 2.0

    def test_update_weights(self):
        """Test weights scale by 1 + improvement and are clamped."""
        manager = StrategyManager()
        manager.update_weights({S.MUTATION: 0.5, S.FRESH: -0.9, S.REFINEMENT: 10.0})
        weights = manager.get_weights()
        assert weights[S.MUTATION] == pytest.approx(1.5)
        assert weights[S.FRESH] == pytest.approx(0.1)
        assert weights[S.REFINEMENT] == 5.0


class TestGenerateCandidates:
    """Tests for fan-out to generators."""

    @pytest.mark.asyncio
    async def test_requires_provider(self):
        """Test a missing provider is a configuration error."""
        with pytest.raises(ConfigurationError):
            await StrategyManager().generate_candidates(make_context(1), 2)

    @pytest.mark.asyncio
    async def test_first_iteration(self):
        """Test iteration 1 produces initial candidates and records usage."""
        manager = StrategyManager(FakeProvider())
        candidates = await manager.generate_candidates(make_context(1), 3)
        assert len(candidates) == 3
        assert {c.strategy for c in candidates} == {S.INITIAL}

        (usage,) = manager.get_strategy_effectiveness()
        assert usage.strategy == S.INITIAL
        assert usage.uses == 1
        assert usage.avg_iteration == 1.0

    @pytest.mark.asyncio
    async def test_adaptive_temperature_applied(self):
        """Test the adaptive temperature becomes the generators' base."""
        provider = FakeProvider()
        manager = StrategyManager(provider)
        await manager.generate_candidates(
            make_context(1), 1, AdaptiveConfig(temperature=0.5)
        )
        assert provider.temperatures == [0.5]
        assert manager.generators[S.REFINEMENT].config.temperature == 0.5
        assert manager.generators[S.FRESH].config.temperature == 0.9

    @pytest.mark.asyncio
    async def test_failed_strategy_absorbed(self):
        """Test one strategy failing does not lose the others' candidates."""
        manager = StrategyManager(FakeProvider())
        manager.generators[S.MUTATION].generate = AsyncMock(
            side_effect=GenerationError("mutation generation failed")
        )
        candidates = await manager.generate_candidates(make_context(2, [0.5]), 5)
        strategies = {c.strategy for c in candidates}
        assert S.MUTATION not in strategies
        assert S.REFINEMENT in strategies

    @pytest.mark.asyncio
    async def test_configuration_error_propagates(self):
        """Test configuration errors from a generator are not absorbed."""
        manager = StrategyManager(FakeProvider())
        manager.generators[S.INITIAL].generate = AsyncMock(
            side_effect=ConfigurationError("Provider not set")
        )
        with pytest.raises(ConfigurationError):
            await manager.generate_candidates(make_context(1), 2)

    @pytest.mark.asyncio
    async def test_effectiveness_mean_iteration(self):
        """Test usage history averages the iterations a strategy ran in."""
        manager = StrategyManager(FakeProvider())
        await manager.generate_candidates(make_context(2, [0.5]), 5)
        await manager.generate_candidates(make_context(4, [0.5, 0.6]), 5)
        usage = {u.strategy: u for u in manager.get_strategy_effectiveness()}
        assert usage[S.REFINEMENT].uses == 2
        assert usage[S.REFINEMENT].avg_iteration == 3.0

        manager.reset()
        assert manager.get_strategy_effectiveness() == []
