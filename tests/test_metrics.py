#!/usr/bin/env python3
"""Unit tests for metrics.py - Prometheus Metrics Integration."""

from unittest.mock import MagicMock, patch

import pytest

from design_loop.integrations import metrics
from design_loop.integrations.metrics import (
    clear_metrics,
    push_iteration_metrics,
    push_run_metrics,
)
from design_loop.models import GenerationStrategy


def make_iteration(best_score=0.72, strategies=("refinement", "mutation")):
    candidates = [
        MagicMock(candidate=MagicMock(strategy=GenerationStrategy(s))) for s in strategies
    ]
    best = MagicMock()
    best.quality_score.overall = best_score
    iteration = MagicMock()
    iteration.candidates = candidates
    iteration.best_candidate = best if best_score is not None else None
    iteration.performance.total_time_ms = 2500.0
    return iteration


@pytest.fixture(autouse=True)
def reset_metrics():
    clear_metrics()
    yield
    clear_metrics()


class TestPushIterationMetrics:
    """Tests for push_iteration_metrics()."""

    def test_records_and_pushes(self):
        """Test counters, gauge and histogram are recorded before pushing."""
        with patch("design_loop.integrations.metrics.push_to_gateway") as push:
            assert push_iteration_metrics(make_iteration(), "shop") is True

        registry = metrics._registry
        assert registry.get_sample_value(
            "design_loop_iterations_total", {"project": "shop"}
        ) == 1.0
        assert registry.get_sample_value(
            "design_loop_candidates_total", {"project": "shop", "strategy": "mutation"}
        ) == 1.0
        assert registry.get_sample_value("design_loop_best_score", {"project": "shop"}) == 0.72
        assert registry.get_sample_value(
            "design_loop_iteration_duration_seconds_sum", {"project": "shop"}
        ) == pytest.approx(2.5)

        kwargs = push.call_args.kwargs
        assert kwargs["job"] == "design_loop"
        assert kwargs["grouping_key"] == {"project": "shop"}
        assert kwargs["registry"] is registry

    def test_iteration_without_best(self):
        """Test an iteration with nothing scored leaves the gauge unset."""
        with patch("design_loop.integrations.metrics.push_to_gateway"):
            push_iteration_metrics(make_iteration(best_score=None, strategies=()), "shop")

        assert metrics._registry.get_sample_value("design_loop_best_score", {"project": "shop"}) is None

    def test_push_failure_returns_false(self):
        """Test a Pushgateway failure is logged, not raised."""
        with patch(
            "design_loop.integrations.metrics.push_to_gateway",
            side_effect=ConnectionError("refused"),
        ):
            assert push_iteration_metrics(make_iteration(), "shop") is False


class TestPushRunMetrics:
    """Tests for push_run_metrics()."""

    def test_counts_result(self):
        """Test runs are counted by success or failure."""
        result = MagicMock(success=False)
        result.quality_score.overall = 0.6
        with patch("design_loop.integrations.metrics.push_to_gateway"):
            assert push_run_metrics(result, "shop") is True

        assert metrics._registry.get_sample_value(
            "design_loop_runs_total", {"project": "shop", "result": "failure"}
        ) == 1.0


class TestClearMetrics:
    """Tests for clear_metrics()."""

    def test_resets_registry(self):
        """Test clearing drops the registry so it is rebuilt on next use."""
        with patch("design_loop.integrations.metrics.push_to_gateway"):
            push_iteration_metrics(make_iteration(), "shop")
        first = metrics._registry
        clear_metrics()
        assert metrics._registry is None

        with patch("design_loop.integrations.metrics.push_to_gateway"):
            push_iteration_metrics(make_iteration(), "shop")
        assert metrics._registry is not first
        assert metrics._registry.get_sample_value(
            "design_loop_iterations_total", {"project": "shop"}
        ) == 1.0
