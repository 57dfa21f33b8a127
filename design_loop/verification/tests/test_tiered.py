#!/usr/bin/env python3
"""Tests for TieredVerifier standard and advanced tiers."""

import json

import pytest

from design_loop.errors import ConfigurationError, VerificationError, VerifierUnavailableError
from design_loop.models import (
    AdvancedVerificationConfig,
    DesignIntent,
    DesignIssue,
    IssueSeverity,
    ModelVerificationResult,
    ModelWeight,
    ScreenshotData,
    VerificationCategories,
    VerificationConfig,
    VerificationTier,
)
from design_loop.providers import ProviderCapabilities, ProviderResponse
from design_loop.verification.tiered import (
    DEFAULT_VERIFIER_NAMES,
    TieredVerifier,
    aggregate_issues,
    average_categories,
)
from design_loop.verification.verifier import Verifier

SCREENSHOT = ScreenshotData(full="ZnVsbA==", thumbnail="dGh1bWI=", dimensions=(800, 600))
INTENT = DesignIntent(description="Pricing page with three tiers")


class JudgeProvider:
    """Vision provider that answers with a fixed JSON verdict or raises."""

    def __init__(self, verdict=None, error=None, connected=True):
        self.capabilities = ProviderCapabilities(vision=True)
        self.verdict = verdict or {}
        self.error = error
        self.connected = connected
        self.calls = 0

    def is_connected(self):
        return self.connected

    async def send_message(self, messages, *, system_prompt=None, temperature=0.7, max_tokens=4096):
        self.calls += 1
        if self.error:
            raise self.error
        return ProviderResponse(content=json.dumps(self.verdict))


def judge(name, score, **verdict):
    return Verifier(name, JudgeProvider({"score": score, **verdict}))


def advanced(*models, consensus_threshold=0.7):
    return VerificationConfig(
        tier=VerificationTier.ADVANCED,
        advanced_config=AdvancedVerificationConfig(
            models=[ModelWeight(*m) if isinstance(m, tuple) else ModelWeight(m) for m in models],
            consensus_threshold=consensus_threshold,
        ),
    )


class TestRegistry:
    """Tests for verifier registration and providers."""

    def test_default_verifiers(self):
        """Test the default registry holds claude, openai and ollama."""
        tiered = TieredVerifier()
        for name in DEFAULT_VERIFIER_NAMES:
            assert tiered.get_verifier(name) is not None

    def test_set_provider_unknown(self):
        """Test attaching a provider to an unknown verifier fails."""
        with pytest.raises(ConfigurationError, match="Verifier not found: gemini"):
            TieredVerifier().set_provider("gemini", JudgeProvider())

    def test_threshold_clamped(self):
        """Test the acceptance threshold is kept within [0, 1]."""
        tiered = TieredVerifier(acceptance_threshold=1.4)
        assert tiered.acceptance_threshold == 1.0
        tiered.acceptance_threshold = -0.2
        assert tiered.acceptance_threshold == 0.0

    @pytest.mark.asyncio
    async def test_available_verifiers(self):
        """Test only verifiers with a usable provider are listed."""
        tiered = TieredVerifier()
        tiered.set_provider("openai", JudgeProvider())
        tiered.set_provider("ollama", JudgeProvider(connected=False))
        assert await tiered.get_available_verifiers() == ["openai"]


class TestStandardTier:
    """Tests for single-judge verification."""

    @pytest.mark.asyncio
    async def test_uses_first_registered_by_default(self):
        """Test the first registered verifier is the default judge."""
        tiered = TieredVerifier(verifiers={"a": judge("a", 0.9), "b": judge("b", 0.1)})
        result = await tiered.verify(INTENT, SCREENSHOT)
        assert result.score == pytest.approx(0.9)
        assert result.tier is VerificationTier.STANDARD
        assert result.model_consensus == 1.0
        assert result.model_breakdown is None

    @pytest.mark.asyncio
    async def test_primary_model(self):
        """Test primary_model selects the judge."""
        tiered = TieredVerifier(verifiers={"a": judge("a", 0.9), "b": judge("b", 0.1)})
        result = await tiered.verify(INTENT, SCREENSHOT, VerificationConfig(primary_model="b"))
        assert result.score == pytest.approx(0.1)

    @pytest.mark.asyncio
    async def test_acceptance_threshold(self):
        """Test acceptance compares the score with the threshold."""
        tiered = TieredVerifier(verifiers={"a": judge("a", 0.8)}, acceptance_threshold=0.8)
        assert (await tiered.verify(INTENT, SCREENSHOT)).acceptable is True
        tiered.acceptance_threshold = 0.81
        assert (await tiered.verify(INTENT, SCREENSHOT)).acceptable is False

    @pytest.mark.asyncio
    async def test_result_carries_judge_analysis(self):
        """Test confidence, critique and analysis come from the judge."""
        verifier = judge(
            "a",
            0.6,
            confidence=0.4,
            critique="Too busy",
            strengths=["Bold header"],
            issues=[{"type": "layout", "severity": "critical", "description": "Overlap"}],
        )
        result = await TieredVerifier(verifiers={"a": verifier}).verify(INTENT, SCREENSHOT)
        assert result.confidence == pytest.approx(0.4)
        assert result.critique == "Too busy"
        assert result.detailed_analysis.strengths == ("Bold header",)
        assert result.detailed_analysis.issues[0].severity is IssueSeverity.CRITICAL

    @pytest.mark.asyncio
    async def test_unknown_primary(self):
        """Test an unknown primary model is a configuration error."""
        tiered = TieredVerifier(verifiers={"a": judge("a", 0.9)})
        with pytest.raises(ConfigurationError, match="Verifier not found: zz"):
            await tiered.verify(INTENT, SCREENSHOT, VerificationConfig(primary_model="zz"))

    @pytest.mark.asyncio
    async def test_unavailable_primary(self):
        """Test a judge without a provider is reported unavailable."""
        with pytest.raises(VerifierUnavailableError, match="Verifier not available: claude"):
            await TieredVerifier().verify(INTENT, SCREENSHOT)

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self):
        """Test provider failures surface from the standard tier."""
        verifier = Verifier("a", JudgeProvider(error=ConnectionError("down")))
        with pytest.raises(ConnectionError):
            await TieredVerifier(verifiers={"a": verifier}).verify(INTENT, SCREENSHOT)


class TestAdvancedTier:
    """Tests for multi-judge verification."""

    @pytest.mark.asyncio
    async def test_disagreement_blocks_acceptance(self):
        """Test 0.9 vs 0.5 fuses to 0.7 with consensus 0.6 and is rejected."""
        tiered = TieredVerifier(
            verifiers={"a": judge("a", 0.9), "b": judge("b", 0.5)}, acceptance_threshold=0.6
        )
        result = await tiered.verify(INTENT, SCREENSHOT, advanced("a", "b", consensus_threshold=0.9))
        assert result.score == pytest.approx(0.7)
        assert result.model_consensus == pytest.approx(0.6)
        assert result.acceptable is False
        assert result.tier is VerificationTier.ADVANCED

    @pytest.mark.asyncio
    async def test_agreement_accepts(self):
        """Test agreeing judges above the threshold are accepted."""
        tiered = TieredVerifier(verifiers={"a": judge("a", 0.9), "b": judge("b", 0.88)})
        result = await tiered.verify(INTENT, SCREENSHOT, advanced("a", "b"))
        assert result.acceptable is True
        assert [ms.model for ms in result.model_breakdown] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_weights_applied(self):
        """Test configured weights drive the fused score."""
        tiered = TieredVerifier(verifiers={"a": judge("a", 1.0), "b": judge("b", 0.0)})
        result = await tiered.verify(INTENT, SCREENSHOT, advanced(("a", 3.0), ("b", 1.0)))
        assert result.score == pytest.approx(0.75)

    @pytest.mark.asyncio
    async def test_disabled_models_skipped(self):
        """Test disabled models are never asked."""
        b = judge("b", 0.2)
        tiered = TieredVerifier(verifiers={"a": judge("a", 0.9), "b": b})
        result = await tiered.verify(INTENT, SCREENSHOT, advanced("a", ("b", 1.0, False)))
        assert result.score == pytest.approx(0.9)
        assert b.provider.calls == 0

    @pytest.mark.asyncio
    async def test_failing_judge_dropped(self):
        """Test failing, missing and unavailable judges are dropped."""
        tiered = TieredVerifier(
            verifiers={
                "a": judge("a", 0.8),
                "broken": Verifier("broken", JudgeProvider(error=RuntimeError("boom"))),
                "offline": Verifier("offline", JudgeProvider(connected=False)),
            }
        )
        result = await tiered.verify(
            INTENT, SCREENSHOT, advanced("a", "broken", "offline", "missing")
        )
        assert result.score == pytest.approx(0.8)
        assert len(result.model_breakdown) == 1
        assert result.model_breakdown[0].weight == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_health_check_error_dropped(self):
        """Test a judge whose connection check raises is dropped."""

        class FlakyProvider(JudgeProvider):
            def is_connected(self):
                raise ConnectionError("health check failed")

        flaky = FlakyProvider({"score": 0.1})
        tiered = TieredVerifier(
            verifiers={"claude": judge("claude", 0.9), "openai": Verifier("openai", flaky)}
        )
        result = await tiered.verify(INTENT, SCREENSHOT, advanced("claude", "openai"))
        assert result.score == pytest.approx(0.9)
        assert [m.model for m in result.model_breakdown] == ["claude"]
        assert flaky.calls == 0

    @pytest.mark.asyncio
    async def test_all_judges_fail(self):
        """Test losing every judge is a verification error."""
        tiered = TieredVerifier(
            verifiers={"broken": Verifier("broken", JudgeProvider(error=RuntimeError("boom")))}
        )
        with pytest.raises(VerificationError, match="All verifiers failed"):
            await tiered.verify(INTENT, SCREENSHOT, advanced("broken"))

    @pytest.mark.asyncio
    async def test_missing_advanced_config(self):
        """Test the advanced tier needs its config."""
        config = VerificationConfig(tier=VerificationTier.ADVANCED)
        with pytest.raises(ConfigurationError, match="requires advanced_config"):
            await TieredVerifier().verify(INTENT, SCREENSHOT, config)

    @pytest.mark.asyncio
    async def test_no_enabled_models(self):
        """Test an advanced config with nothing enabled is rejected."""
        with pytest.raises(ConfigurationError, match="No models enabled"):
            await TieredVerifier().verify(INTENT, SCREENSHOT, advanced(("a", 1.0, False)))

    @pytest.mark.asyncio
    async def test_critique_summary(self):
        """Test the critique summarizes the fusion and quotes the first judge."""
        tiered = TieredVerifier(
            verifiers={"a": judge("a", 0.9, critique="Crisp layout"), "b": judge("b", 0.5)}
        )
        result = await tiered.verify(INTENT, SCREENSHOT, advanced("a", "b"))
        assert result.critique.startswith("Multi-model verification (2 models)")
        assert "Fused score: 70%" in result.critique
        assert "Consensus: 60%" in result.critique
        assert "- a: 90% (weight: 50%)" in result.critique
        assert result.critique.endswith("Key observations:\nCrisp layout")

    @pytest.mark.asyncio
    async def test_analysis_merged(self):
        """Test categories are averaged and strengths unioned."""
        tiered = TieredVerifier(
            verifiers={
                "a": judge("a", 0.8, strengths=["Color", "Type"]),
                "b": judge("b", 0.6, strengths=["Type", "Spacing"]),
            }
        )
        result = await tiered.verify(INTENT, SCREENSHOT, advanced("a", "b"))
        assert result.detailed_analysis.categories.layout == pytest.approx(0.7)
        assert result.detailed_analysis.strengths == ("Color", "Type", "Spacing")


class TestAggregation:
    """Tests for issue and category aggregation helpers."""

    def make_result(self, issues=(), score=0.5):
        return ModelVerificationResult(
            model="m",
            score=score,
            confidence=0.5,
            critique="",
            categories=VerificationCategories.uniform(score),
            issues=tuple(issues),
        )

    def test_issues_deduplicated_and_sorted(self):
        """Test duplicate issues collapse and critical issues come first."""
        minor = DesignIssue("spacing", IssueSeverity.MINOR, "Tight padding")
        dup = DesignIssue("spacing", IssueSeverity.MAJOR, "  tight PADDING ")
        critical = DesignIssue("layout", IssueSeverity.CRITICAL, "Overlap")
        issues = aggregate_issues([self.make_result([minor]), self.make_result([dup, critical])])
        assert issues == (critical, minor)

    def test_average_categories(self):
        """Test categories are averaged per name."""
        cats = average_categories([self.make_result(score=0.2), self.make_result(score=0.6)])
        assert cats.fidelity == pytest.approx(0.4)
