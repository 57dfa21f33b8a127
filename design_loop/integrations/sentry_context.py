"""
Sentry context injection for the design loop.

Adds iteration breadcrumbs, run context and error capture to Sentry.
All functions are no-ops when Sentry has not been initialized.
"""

import logging
from typing import TYPE_CHECKING, Any

import sentry_sdk

if TYPE_CHECKING:
    from ..models import FeedbackIteration

logger = logging.getLogger(__name__)


def _is_sentry_initialized() -> bool:
    """Check if Sentry SDK is initialized (has an active client)."""
    try:
        return sentry_sdk.is_initialized()
    except Exception:
        return False


def inject_iteration_context(iteration: "FeedbackIteration", project: str) -> bool:
    """
    Inject the latest iteration into Sentry.

    Adds:
    - Structured context (appears in "Additional Data" section)
    - Searchable tags (project, iteration, best score)
    - Breadcrumb for timeline

    Returns:
        True if context was injected, False otherwise (Sentry unavailable)
    """
    if not _is_sentry_initialized():
        return False

    try:
        best = iteration.best_candidate
        best_score = best.quality_score.overall if best else None
        strategies = [s.value for s in iteration.strategies_used]

        sentry_sdk.set_context(
            "design_loop",
            {
                "project": project,
                "iteration": iteration.iteration,
                "candidates": len(iteration.candidates),
                "best_score": best_score,
                "strategies": strategies,
                "api_calls": iteration.performance.api_calls,
                "duration_ms": iteration.performance.total_time_ms,
                "should_terminate": iteration.termination_check.should_terminate,
            },
        )

        sentry_sdk.set_tag("design_loop.project", project)
        sentry_sdk.set_tag("design_loop.iteration", str(iteration.iteration))
        if best_score is not None:
            sentry_sdk.set_tag("design_loop.best_score", f"{best_score:.2f}")

        sentry_sdk.add_breadcrumb(
            category="design_loop",
            message=f"Iteration {iteration.iteration}: {len(iteration.candidates)} candidates",
            level="info" if iteration.candidates else "warning",
            data={
                "best_score": best_score,
                "strategies": strategies,
                "termination_reason": iteration.termination_check.reason,
            },
        )
        return True

    except Exception as e:
        logger.debug(f"Failed to inject Sentry context: {e}")
        return False


def capture_loop_error(error: Exception, context: dict[str, Any] | None = None) -> bool:
    """
    Capture a run-level loop error with context.

    Uses an isolated scope to avoid polluting global context and sets a
    fingerprint so errors group by the iteration phase that failed.

    Args:
        error: The exception to capture
        context: Optional dict with keys:
            - iteration: Iteration number that failed
            - phase: generate | render | verify | terminate
            - options: FeedbackLoopOptions.to_dict()

    Returns:
        True if error was captured, False otherwise (Sentry unavailable)
    """
    if not _is_sentry_initialized():
        return False

    context = context or {}
    try:
        with sentry_sdk.new_scope() as scope:
            if "options" in context:
                scope.set_context("design_loop_options", context["options"])
            if "iteration" in context:
                scope.set_extra("iteration", context["iteration"])

            phase = context.get("phase", "unknown")
            scope.fingerprint = ["design-loop-error", phase]
            scope.set_tag("design_loop.error", "true")
            scope.set_tag("design_loop.phase", phase)

            sentry_sdk.capture_exception(error)
        return True

    except Exception as e:
        logger.debug(f"Failed to capture design loop error to Sentry: {e}")
        return False


def add_loop_breadcrumb(message: str, level: str = "info", data: dict[str, Any] | None = None) -> bool:
    """Add a design loop breadcrumb to the Sentry timeline."""
    if not _is_sentry_initialized():
        return False

    try:
        sentry_sdk.add_breadcrumb(
            category="design_loop",
            message=message,
            level=level,
            data=data or {},
        )
        return True
    except Exception as e:
        logger.debug(f"Failed to add Sentry breadcrumb: {e}")
        return False


__all__ = ["inject_iteration_context", "capture_loop_error", "add_loop_breadcrumb"]
