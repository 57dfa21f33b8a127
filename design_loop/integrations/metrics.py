"""
Prometheus metrics integration for the design loop.

Pushes per-iteration metrics to a Prometheus Pushgateway for Grafana
dashboards. Push failures are logged and never fail the run.

Environment variables:
- DESIGN_LOOP_PUSHGATEWAY_URL: Pushgateway URL (default: localhost:9091)
"""

import logging
import os
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, push_to_gateway

if TYPE_CHECKING:
    from ..models import DesignResult, FeedbackIteration

logger = logging.getLogger(__name__)

PUSHGATEWAY_URL = os.environ.get("DESIGN_LOOP_PUSHGATEWAY_URL", "localhost:9091")
JOB_NAME = "design_loop"

# Isolated registry for design loop metrics (don't pollute global)
_registry = None
_iterations_total = None
_candidates_total = None
_best_score = None
_iteration_duration = None
_runs_total = None


def _initialize_metrics() -> CollectorRegistry:
    """Initialize metrics on first use (lazy initialization)."""
    global _registry, _iterations_total, _candidates_total, _best_score
    global _iteration_duration, _runs_total

    if _registry is not None:
        return _registry

    _registry = CollectorRegistry()

    _iterations_total = Counter(
        "design_loop_iterations_total",
        "Total design loop iterations",
        ["project"],
        registry=_registry,
    )

    _candidates_total = Counter(
        "design_loop_candidates_total",
        "Scored candidates by generation strategy",
        ["project", "strategy"],
        registry=_registry,
    )

    _best_score = Gauge(
        "design_loop_best_score",
        "Best quality score of the latest iteration",
        ["project"],
        registry=_registry,
    )

    _iteration_duration = Histogram(
        "design_loop_iteration_duration_seconds",
        "Wall time per iteration",
        ["project"],
        buckets=[1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
        registry=_registry,
    )

    _runs_total = Counter(
        "design_loop_runs_total",
        "Completed design loop runs",
        ["project", "result"],
        registry=_registry,
    )

    return _registry


def _push(project: str) -> bool:
    try:
        push_to_gateway(
            gateway=PUSHGATEWAY_URL,
            job=JOB_NAME,
            grouping_key={"project": project},
            registry=_registry,
        )
        logger.debug(f"Metrics pushed to {PUSHGATEWAY_URL} for project {project}")
        return True
    except Exception as e:
        logger.warning(f"Failed to push metrics to Pushgateway: {e}")
        return False


def push_iteration_metrics(iteration: "FeedbackIteration", project: str) -> bool:
    """
    Record one iteration and push to the Pushgateway.

    Returns:
        True if metrics were pushed successfully, False otherwise
    """
    _initialize_metrics()

    _iterations_total.labels(project=project).inc()
    for scored in iteration.candidates:
        _candidates_total.labels(
            project=project, strategy=scored.candidate.strategy.value
        ).inc()
    if iteration.best_candidate is not None:
        _best_score.labels(project=project).set(
            iteration.best_candidate.quality_score.overall
        )
    _iteration_duration.labels(project=project).observe(
        iteration.performance.total_time_ms / 1000.0
    )
    return _push(project)


def push_run_metrics(result: "DesignResult", project: str) -> bool:
    """Record a finished run and push to the Pushgateway."""
    _initialize_metrics()
    _runs_total.labels(
        project=project, result="success" if result.success else "failure"
    ).inc()
    _best_score.labels(project=project).set(result.quality_score.overall)
    return _push(project)


def clear_metrics() -> None:
    """Clear all metrics (useful for testing)."""
    global _registry, _iterations_total, _candidates_total, _best_score
    global _iteration_duration, _runs_total
    _registry = None
    _iterations_total = None
    _candidates_total = None
    _best_score = None
    _iteration_duration = None
    _runs_total = None


__all__ = ["push_iteration_metrics", "push_run_metrics", "clear_metrics", "PUSHGATEWAY_URL"]
