#!/usr/bin/env python3
"""
Feedback Loop - Generate, render, verify and terminate until a design is good enough.

Each iteration:
1. Decays the sampling temperature along the schedule
2. Asks the StrategyManager for candidates
3. Renders them one at a time, each under a timeout
4. Verifies the rendered ones concurrently and scores them
5. Records the iteration and asks the TerminationPolicy whether to stop
6. Adapts exploration rate and diversity pressure for the next iteration

Iterations run strictly in sequence; adaptive state is threaded from one
iteration to the next and discarded when the run ends.
"""

import asyncio
import inspect
import logging
import time
from collections import defaultdict
from dataclasses import replace
from statistics import fmean, pvariance
from typing import Any, Callable

from .errors import ConfigurationError, NoCandidatesError
from .generators.base import GenerationContext
from .generators.strategy_manager import StrategyManager
from .integrations.metrics import push_iteration_metrics, push_run_metrics
from .integrations.sentry_context import (
    add_loop_breadcrumb,
    capture_loop_error,
    inject_iteration_context,
)
from .models import (
    DEFAULT_ADAPTIVE_CONFIG,
    DEFAULT_AVAILABLE_TOOLS,
    DEFAULT_TEMPERATURE_SCHEDULE,
    AdaptiveConfig,
    DesignAnalytics,
    DesignIntent,
    DesignResult,
    FeedbackIteration,
    FeedbackLoopOptions,
    PerformanceMetrics,
    QualityScore,
    ScoredCandidate,
    TemperatureSchedule,
    TerminationDecision,
)
from .providers import AIProvider
from .rendering import CandidateRenderer, Renderer
from .terminal_reporter import TerminalReporter
from .termination.convergence import analyze_convergence
from .termination.policy import (
    REASON_QUALITY,
    TerminationCriteria,
    TerminationPolicy,
    best_scores,
)
from .verification.tiered import TieredVerifier

logger = logging.getLogger(__name__)

LOW_VARIANCE = 0.01
HIGH_VARIANCE = 0.05
MAX_EXPLORATION_RATE = 0.8
MIN_EXPLORATION_RATE = 0.1
MAX_MIN_DIVERSITY = 0.5

ProgressCallback = Callable[[FeedbackIteration], Any]
ScreenshotCallback = Callable[..., Any]


def adapt(
    adaptive: AdaptiveConfig,
    iteration: int,
    scores: list[float],
    iteration_best: float | None,
    previous_best: float | None,
) -> AdaptiveConfig:
    """
    Return the adaptive state for the next iteration.

    Low score variance raises exploration, high variance lowers it. An
    iteration that fails to beat the previous best raises diversity pressure.
    """
    exploration = adaptive.exploration_rate
    if len(scores) >= 2:
        variance = pvariance(scores)
        if variance < LOW_VARIANCE:
            exploration = min(MAX_EXPLORATION_RATE, exploration + 0.1)
        elif variance > HIGH_VARIANCE:
            exploration = max(MIN_EXPLORATION_RATE, exploration - 0.05)

    min_diversity = adaptive.min_diversity
    if iteration > 1:
        stalled = iteration_best is None or (
            previous_best is not None and iteration_best <= previous_best
        )
        if stalled:
            min_diversity = min(MAX_MIN_DIVERSITY, min_diversity + 0.05)

    return replace(adaptive, exploration_rate=exploration, min_diversity=min_diversity)


def build_analytics(
    iterations: list[FeedbackIteration], scored: list[ScoredCandidate]
) -> DesignAnalytics:
    progression = best_scores(iterations)

    by_strategy: dict[str, list[float]] = defaultdict(list)
    for sc in scored:
        by_strategy[sc.candidate.strategy.value].append(sc.quality_score.overall)

    return DesignAnalytics(
        score_progression=tuple(progression),
        strategy_effectiveness={s: fmean(v) for s, v in by_strategy.items()},
        avg_iteration_time_ms=fmean(it.performance.total_time_ms for it in iterations)
        if iterations
        else 0.0,
        total_cost_estimate=sum(it.performance.estimated_cost for it in iterations),
        convergence_analysis=analyze_convergence(progression),
    )


async def _invoke(callback: Callable[..., Any] | None, *args: Any) -> None:
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.warning(f"Callback {getattr(callback, '__name__', callback)} failed: {e}")


class FeedbackLoop:
    """
    Top-level driver for iterative design generation.

    Usage:
        loop = FeedbackLoop(provider, renderer)
        loop.set_verification_provider("claude", vision_provider)
        result = await loop.run(
            DesignIntent("A pricing card with three tiers"),
            FeedbackLoopOptions(max_iterations=5, quality_threshold=0.85),
        )
        print(result.termination_reason, result.quality_score.overall)
    """

    def __init__(
        self,
        provider: AIProvider | None = None,
        renderer: Renderer | None = None,
        *,
        tiered_verifier: TieredVerifier | None = None,
        strategy_manager: StrategyManager | None = None,
        termination_policy: TerminationPolicy | None = None,
        reporter: TerminalReporter | None = None,
        available_tools: tuple[str, ...] = DEFAULT_AVAILABLE_TOOLS,
    ):
        self.renderer = renderer
        self.tiered_verifier = tiered_verifier or TieredVerifier()
        self.strategy_manager = strategy_manager or StrategyManager()
        self.termination_policy = termination_policy or TerminationPolicy()
        self.reporter = reporter
        self.available_tools = tuple(available_tools)
        self.adaptive_config = DEFAULT_ADAPTIVE_CONFIG
        self.temperature_schedule = DEFAULT_TEMPERATURE_SCHEDULE
        if provider is not None:
            self.set_provider(provider)

    def set_provider(self, provider: AIProvider) -> None:
        """Provider used by every generation strategy."""
        self.strategy_manager.set_provider(provider)

    def set_verification_provider(self, name: str, provider: AIProvider) -> None:
        self.tiered_verifier.set_provider(name, provider)

    def set_renderer(self, renderer: Renderer) -> None:
        self.renderer = renderer

    def configure(
        self,
        adaptive_config: AdaptiveConfig | None = None,
        temperature_schedule: TemperatureSchedule | None = None,
    ) -> None:
        """Set the adaptive defaults copied at the start of each run."""
        if adaptive_config is not None:
            self.adaptive_config = adaptive_config
        if temperature_schedule is not None:
            self.temperature_schedule = temperature_schedule

    async def run(
        self,
        intent: DesignIntent,
        options: FeedbackLoopOptions | None = None,
        on_progress: ProgressCallback | None = None,
        on_screenshot: ScreenshotCallback | None = None,
    ) -> DesignResult:
        """
        Run the loop until the termination policy stops it.

        Args:
            intent: What to design.
            options: Run limits and verification settings.
            on_progress: Called with each completed FeedbackIteration.
            on_screenshot: Called with (candidate, screenshot) per successful render.

        Returns:
            DesignResult for the best candidate of the run. If an iteration
            raises after a candidate has been scored, the partial result is
            returned with termination_reason "Error: <message>".

        Raises:
            ConfigurationError: If no renderer is set.
            NoCandidatesError: If no candidate was ever scored.
        """
        options = options or FeedbackLoopOptions()
        if self.renderer is None:
            raise ConfigurationError("Renderer not set")

        start = time.monotonic()
        criteria = TerminationCriteria(
            max_iterations=options.max_iterations,
            quality_threshold=options.quality_threshold,
            start_time=start,
            timeout_ms=options.timeout_ms,
        )
        renderer = CandidateRenderer(self.renderer, timeout_s=options.render_timeout_ms / 1000)
        self.strategy_manager.reset()

        adaptive = self.adaptive_config
        iterations: list[FeedbackIteration] = []
        scored_all: list[ScoredCandidate] = []
        best: ScoredCandidate | None = None
        termination_reason = ""

        logger.info(
            f"Starting design loop: max_iterations={options.max_iterations}, "
            f"threshold={options.quality_threshold}, tier={options.verification.tier.value}"
        )
        add_loop_breadcrumb("Design loop started", data={"intent": intent.description[:200]})

        try:
            for n in range(1, options.max_iterations + 1):
                adaptive = replace(
                    adaptive, temperature=self.temperature_schedule.temperature_at(n)
                )
                record = await self._run_iteration(
                    n, intent, options, adaptive, renderer, scored_all, best, on_screenshot
                )
                decision = self.termination_policy.evaluate(
                    iterations + [record],
                    criteria,
                    strategy_usage=self.strategy_manager.get_strategy_effectiveness(),
                )
                record = replace(record, termination_check=decision)
                iterations.append(record)
                scored_all.extend(record.candidates)

                previous_best = best.quality_score.overall if best else None
                iteration_best = record.best_candidate
                if iteration_best and (
                    best is None
                    or iteration_best.quality_score.overall > best.quality_score.overall
                ):
                    best = iteration_best

                logger.info(
                    f"Iteration {n}: {len(record.candidates)} scored, best so far "
                    f"{best.quality_score.overall if best else 0.0:.3f}"
                )
                self._observe(record, options)
                await _invoke(on_progress, record)

                adaptive = adapt(
                    adaptive,
                    n,
                    [c.quality_score.overall for c in record.candidates],
                    iteration_best.quality_score.overall if iteration_best else None,
                    previous_best,
                )

                if decision.should_terminate:
                    termination_reason = decision.reason
                    break
                if (
                    options.enable_early_stopping
                    and best is not None
                    and best.quality_score.overall >= options.quality_threshold
                ):
                    termination_reason = REASON_QUALITY
                    break

        except Exception as e:
            capture_loop_error(
                e,
                {"iteration": len(iterations) + 1, "options": options.to_dict()},
            )
            if best is None:
                raise
            logger.error(f"Design loop failed, returning best so far: {e}")
            return self._finish(
                best, iterations, scored_all, start, options, f"Error: {e}", success=False
            )

        if best is None:
            raise NoCandidatesError(
                f"No candidates generated: {len(iterations)} iterations produced "
                "no scored candidate"
            )

        success = best.quality_score.overall >= options.quality_threshold
        return self._finish(
            best, iterations, scored_all, start, options, termination_reason, success=success
        )

    async def _run_iteration(
        self,
        n: int,
        intent: DesignIntent,
        options: FeedbackLoopOptions,
        adaptive: AdaptiveConfig,
        renderer: CandidateRenderer,
        scored_all: list[ScoredCandidate],
        best: ScoredCandidate | None,
        on_screenshot: ScreenshotCallback | None,
    ) -> FeedbackIteration:
        iteration_start = time.monotonic()
        context = GenerationContext(
            intent=intent,
            iteration=n,
            previous_candidates=tuple(scored_all),
            best_candidate=best,
            available_tools=self.available_tools,
        )

        # Generate
        candidates = await self.strategy_manager.generate_candidates(
            context, options.candidates_per_iteration, adaptive
        )
        generated_at = time.monotonic()

        # Render
        rendered = await renderer.render_all(candidates)
        successful = [r for r in rendered if r.render_successful and r.screenshot is not None]
        for r in successful:
            await _invoke(on_screenshot, r.candidate, r.screenshot)
        if candidates and not successful:
            logger.warning(f"Iteration {n}: all {len(candidates)} renders failed")
        rendered_at = time.monotonic()

        # Verify
        results = await asyncio.gather(
            *[
                self.tiered_verifier.verify(intent, r.screenshot, options.verification)
                for r in successful
            ],
            return_exceptions=True,
        )
        scored = []
        for r, result in zip(successful, results):
            if isinstance(result, ConfigurationError):
                raise result
            if isinstance(result, BaseException):
                logger.warning(f"Verification failed for {r.candidate.id}: {result}")
                continue
            scored.append(
                ScoredCandidate(
                    candidate=r.candidate,
                    render=r,
                    verification=result,
                    quality_score=QualityScore.from_verification(result, options.quality_weights),
                )
            )
        verified_at = time.monotonic()

        api_calls = len(scored) + 1
        return FeedbackIteration(
            iteration=n,
            timestamp=time.time(),
            candidates=tuple(scored),
            best_candidate=max(scored, key=lambda c: c.quality_score.overall, default=None),
            termination_check=TerminationDecision(should_terminate=False, confidence=0.0),
            performance=PerformanceMetrics(
                generation_time_ms=(generated_at - iteration_start) * 1000,
                render_time_ms=(rendered_at - generated_at) * 1000,
                verification_time_ms=(verified_at - rendered_at) * 1000,
                total_time_ms=(verified_at - iteration_start) * 1000,
                api_calls=api_calls,
                estimated_cost=api_calls * options.cost_per_api_call,
            ),
            strategies_used=tuple(dict.fromkeys(c.strategy for c in candidates)),
        )

    def _observe(self, record: FeedbackIteration, options: FeedbackLoopOptions) -> None:
        inject_iteration_context(record, options.project)
        if options.push_metrics:
            push_iteration_metrics(record, options.project)
        if self.reporter:
            self.reporter.report_iteration(record)

    def _finish(
        self,
        best: ScoredCandidate,
        iterations: list[FeedbackIteration],
        scored_all: list[ScoredCandidate],
        start: float,
        options: FeedbackLoopOptions,
        termination_reason: str,
        success: bool,
    ) -> DesignResult:
        result = DesignResult(
            success=success,
            final_candidate=best.candidate,
            final_screenshot=best.render.screenshot,
            quality_score=best.quality_score,
            iterations=tuple(iterations),
            total_iterations=len(iterations),
            total_time_ms=(time.monotonic() - start) * 1000,
            termination_reason=termination_reason,
            analytics=build_analytics(iterations, scored_all),
        )
        logger.info(
            f"Design loop finished: {termination_reason} after {len(iterations)} iterations, "
            f"best score {best.quality_score.overall:.3f}"
        )
        if options.push_metrics:
            push_run_metrics(result, options.project)
        if self.reporter:
            self.reporter.report_final(result)
        return result


__all__ = ["FeedbackLoop", "adapt", "build_analytics"]
