#!/usr/bin/env python3
"""
Terminal Reporter - Rich progress display for the design loop.
"""

from rich.console import Console
from rich.table import Table

from .models import DesignResult, FeedbackIteration
from .termination.policy import (
    REASON_CONVERGED,
    REASON_MAX_ITERATIONS,
    REASON_QUALITY,
    REASON_TIMEOUT,
)


class TerminalReporter:
    """
    Terminal reporter for design loop progress.

    Displays per-iteration scores and strategies, and a final summary.
    Every report method returns the plain text it printed.

    Usage:
        reporter = TerminalReporter()
        loop = FeedbackLoop(provider, renderer, reporter=reporter)
    """

    def __init__(self, use_rich: bool = True, console: Console | None = None):
        """
        Args:
            use_rich: Print through a rich Console; plain print() otherwise
            console: Console to print to (a new one by default)
        """
        self._use_rich = use_rich
        self._console = console or (Console() if use_rich else None)

    @property
    def use_rich(self) -> bool:
        return self._use_rich

    def format_score_bar(self, score: float, width: int = 40) -> str:
        """
        Create visual progress bar for a score.

        Returns:
            Bar string like "[=========>          ] 45%"
        """
        score = max(0.0, min(1.0, score))
        filled = int(score * width)

        bar = "[" + "=" * filled + ">" * (1 if filled < width else 0)
        bar = bar[: width + 1]
        bar += " " * max(0, width - len(bar) + 1) + "]"
        return f"{bar} {score * 100:.0f}%"

    def _emit(self, output: str, style: str | None = None) -> None:
        if self._use_rich and self._console:
            self._console.print(output, style=style, markup=False, highlight=False)
        else:
            print(output)

    def report_iteration(self, iteration: FeedbackIteration) -> str:
        """Display one completed iteration."""
        lines = [f"Iteration {iteration.iteration}: {len(iteration.candidates)} candidates"]

        best = iteration.best_candidate
        if best is not None:
            lines.append(f"Best: {self.format_score_bar(best.quality_score.overall)}")
            lines.append(f"Strategy: {best.candidate.strategy.value}")
        else:
            lines.append("Best: no candidate scored")

        if iteration.strategies_used:
            lines.append(
                "Strategies: " + ", ".join(s.value for s in iteration.strategies_used)
            )
        lines.append(
            f"Time: {iteration.performance.total_time_ms:.0f}ms, "
            f"API calls: {iteration.performance.api_calls}"
        )

        check = iteration.termination_check
        if check.should_terminate:
            lines.append(f"Status: STOPPING ({check.reason})")
        else:
            lines.append("Status: Continuing...")

        output = "\n".join(lines)
        self._emit(output, style=None if best else "yellow")
        return output

    def report_final(self, result: DesignResult) -> str:
        """Display the final run summary."""
        reason_descriptions = {
            REASON_QUALITY: "Quality threshold reached!",
            REASON_MAX_ITERATIONS: "Maximum iterations reached",
            REASON_TIMEOUT: "Time budget exhausted",
            REASON_CONVERGED: "Scores converged",
        }
        reason = reason_descriptions.get(result.termination_reason, result.termination_reason)

        lines = [
            "=" * 50,
            "DESIGN COMPLETE" if result.success else "DESIGN STOPPED",
            "=" * 50,
            f"Final score: {self.format_score_bar(result.quality_score.overall)}",
            f"Iterations: {result.total_iterations}",
            f"Total time: {result.total_time_ms / 1000:.1f}s",
            f"Termination reason: {reason}",
            "=" * 50,
        ]
        output = "\n".join(lines)
        self._emit(output, style="bold green" if result.success else "bold yellow")

        if self._use_rich and self._console and result.analytics:
            table = Table(title="Strategy effectiveness")
            table.add_column("Strategy")
            table.add_column("Mean score", justify="right")
            for strategy, score in sorted(
                result.analytics.strategy_effectiveness.items(), key=lambda kv: -kv[1]
            ):
                table.add_row(strategy, f"{score:.2f}")
            self._console.print(table)

        return output


__all__ = ["TerminalReporter"]
