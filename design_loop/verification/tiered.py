#!/usr/bin/env python3
"""
Tiered Verifier - Standard (single judge) and advanced (multi-judge) verification.

The standard tier asks one named judge. The advanced tier asks every
enabled, available judge concurrently, drops the ones that fail, fuses the
survivors' scores and requires both a fused-score and a consensus threshold
for acceptance.
"""

import asyncio
import logging
import time

from ..errors import ConfigurationError, VerificationError, VerifierUnavailableError
from ..models import (
    CATEGORY_NAMES,
    SEVERITY_ORDER,
    DesignIntent,
    DesignIssue,
    DetailedAnalysis,
    ModelVerificationResult,
    ScreenshotData,
    VerificationCategories,
    VerificationConfig,
    VerificationResult,
    VerificationTier,
    clamp,
)
from ..providers import AIProvider
from .score_fusion import FusionResult, ModelJudgement, ScoreFusion
from .verifier import Verifier

logger = logging.getLogger(__name__)

DEFAULT_VERIFIER_NAMES = ("claude", "openai", "ollama")
DEFAULT_ACCEPTANCE_THRESHOLD = 0.85


def aggregate_issues(results: list[ModelVerificationResult]) -> tuple[DesignIssue, ...]:
    """Union of issues, deduplicated by type and description, most severe first."""
    seen: dict[str, DesignIssue] = {}
    for result in results:
        for issue in result.issues:
            seen.setdefault(issue.dedupe_key(), issue)
    return tuple(sorted(seen.values(), key=lambda i: SEVERITY_ORDER[i.severity]))


def _union(lists) -> tuple[str, ...]:
    merged = []
    for items in lists:
        for item in items:
            if item not in merged:
                merged.append(item)
    return tuple(merged)


def average_categories(results: list[ModelVerificationResult]) -> VerificationCategories:
    n = len(results)
    return VerificationCategories(
        **{
            name: sum(r.categories.as_dict()[name] for r in results) / n
            for name in CATEGORY_NAMES
        }
    )


class TieredVerifier:
    """
    Registry of named judges plus tier dispatch.

    Usage:
        tiered = TieredVerifier()
        tiered.set_provider("claude", claude_provider)
        result = await tiered.verify(intent, screenshot, VerificationConfig())
        if result.acceptable:
            print(f"Accepted at {result.score:.0%}")
    """

    def __init__(
        self,
        verifiers: dict[str, Verifier] | None = None,
        acceptance_threshold: float = DEFAULT_ACCEPTANCE_THRESHOLD,
    ):
        if verifiers is None:
            verifiers = {name: Verifier(name) for name in DEFAULT_VERIFIER_NAMES}
        self._verifiers: dict[str, Verifier] = dict(verifiers)
        self._acceptance_threshold = clamp(acceptance_threshold)
        self.fusion = ScoreFusion()

    @property
    def acceptance_threshold(self) -> float:
        return self._acceptance_threshold

    @acceptance_threshold.setter
    def acceptance_threshold(self, value: float) -> None:
        self._acceptance_threshold = clamp(value)

    def register_verifier(self, name: str, verifier: Verifier) -> None:
        self._verifiers[name] = verifier

    def get_verifier(self, name: str) -> Verifier | None:
        return self._verifiers.get(name)

    def set_provider(self, name: str, provider: AIProvider) -> None:
        """
        Raises:
            ConfigurationError: If no verifier is registered under name.
        """
        verifier = self.get_verifier(name)
        if verifier is None:
            raise ConfigurationError(f"Verifier not found: {name}")
        verifier.set_provider(provider)

    async def get_available_verifiers(self) -> list[str]:
        names = list(self._verifiers)
        available = await asyncio.gather(*[self._verifiers[n].is_available() for n in names])
        return [n for n, ok in zip(names, available) if ok]

    async def verify(
        self,
        intent: DesignIntent,
        screenshot: ScreenshotData,
        config: VerificationConfig | None = None,
    ) -> VerificationResult:
        """
        Verify a screenshot at the configured tier.

        Raises:
            ConfigurationError: Missing verifier, provider or advanced config.
            VerificationError: Unparseable reply (standard) or all judges
                dropped out (advanced).
        """
        config = config or VerificationConfig()
        if config.tier is VerificationTier.ADVANCED:
            return await self._verify_advanced(intent, screenshot, config)
        return await self._verify_standard(intent, screenshot, config)

    # =========================================================================
    # Standard tier
    # =========================================================================

    async def _verify_standard(
        self, intent: DesignIntent, screenshot: ScreenshotData, config: VerificationConfig
    ) -> VerificationResult:
        if not self._verifiers and config.primary_model is None:
            raise ConfigurationError("No verifiers registered")
        name = config.primary_model or next(iter(self._verifiers))
        verifier = self.get_verifier(name)
        if verifier is None:
            raise ConfigurationError(f"Verifier not found: {name}")
        if not await verifier.is_available():
            raise VerifierUnavailableError(f"Verifier not available: {name}")

        start = time.monotonic()
        result = await verifier.verify(intent, screenshot)
        return VerificationResult(
            score=result.score,
            acceptable=result.score >= self._acceptance_threshold,
            critique=result.critique,
            detailed_analysis=DetailedAnalysis(
                categories=result.categories,
                issues=aggregate_issues([result]),
                strengths=result.strengths,
                suggestions=result.suggestions,
            ),
            model_consensus=1.0,
            confidence=result.confidence,
            tier=VerificationTier.STANDARD,
            verification_time_ms=(time.monotonic() - start) * 1000,
        )

    # =========================================================================
    # Advanced tier
    # =========================================================================

    async def _run_judge(
        self, name: str, weight: float, intent: DesignIntent, screenshot: ScreenshotData
    ) -> ModelJudgement | None:
        verifier = self.get_verifier(name)
        if verifier is None:
            logger.warning(f"Verifier not found, skipping: {name}")
            return None
        try:
            if not await verifier.is_available():
                logger.warning(f"Verifier not available, skipping: {name}")
                return None
            result = await verifier.verify(intent, screenshot)
        except Exception as e:
            logger.warning(f"Verifier {name} failed: {e}")
            return None
        return ModelJudgement(model=name, result=result, weight=weight)

    async def _verify_advanced(
        self, intent: DesignIntent, screenshot: ScreenshotData, config: VerificationConfig
    ) -> VerificationResult:
        advanced = config.advanced_config
        if advanced is None:
            raise ConfigurationError("Advanced tier requires advanced_config")
        enabled = [m for m in advanced.models if m.enabled]
        if not enabled:
            raise ConfigurationError("No models enabled for advanced verification")

        start = time.monotonic()
        judged = await asyncio.gather(
            *[self._run_judge(m.model, m.weight, intent, screenshot) for m in enabled]
        )
        judgements = [j for j in judged if j is not None]
        if not judgements:
            raise VerificationError("All verifiers failed")

        fusion = self.fusion.fuse(judgements)
        results = [j.result for j in judgements]
        acceptable = (
            fusion.fused_score >= self._acceptance_threshold
            and fusion.consensus >= advanced.consensus_threshold
        )
        logger.debug(
            f"Advanced verification: fused={fusion.fused_score:.2f} "
            f"consensus={fusion.consensus:.2f} models={len(judgements)}"
        )

        return VerificationResult(
            score=fusion.fused_score,
            acceptable=acceptable,
            critique=self._build_critique(fusion, results),
            detailed_analysis=DetailedAnalysis(
                categories=average_categories(results),
                issues=aggregate_issues(results),
                strengths=_union(r.strengths for r in results),
                suggestions=_union(r.suggestions for r in results),
            ),
            model_consensus=fusion.consensus,
            confidence=fusion.confidence,
            tier=VerificationTier.ADVANCED,
            model_breakdown=tuple(fusion.model_scores),
            verification_time_ms=(time.monotonic() - start) * 1000,
        )

    def _build_critique(self, fusion: FusionResult, results: list[ModelVerificationResult]) -> str:
        lines = [
            f"Multi-model verification ({len(results)} models)",
            f"Fused score: {fusion.fused_score:.0%}",
            f"Consensus: {fusion.consensus:.0%}",
            "",
            "Model breakdown:",
        ]
        for ms in fusion.model_scores:
            lines.append(f"- {ms.model}: {ms.score:.0%} (weight: {ms.weight:.0%})")
        if results[0].critique:
            lines.extend(["", "Key observations:", results[0].critique])
        return "\n".join(lines)


__all__ = [
    "DEFAULT_VERIFIER_NAMES",
    "DEFAULT_ACCEPTANCE_THRESHOLD",
    "TieredVerifier",
    "aggregate_issues",
    "average_categories",
]
