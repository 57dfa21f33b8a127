"""
Design Loop Integrations

Observability hooks called by the feedback loop:
- metrics: Prometheus metrics to Pushgateway
- sentry_context: Sentry breadcrumbs, context and error capture
"""

from .metrics import push_iteration_metrics, push_run_metrics
from .sentry_context import (
    add_loop_breadcrumb,
    capture_loop_error,
    inject_iteration_context,
)

__all__ = [
    "push_iteration_metrics",
    "push_run_metrics",
    "inject_iteration_context",
    "capture_loop_error",
    "add_loop_breadcrumb",
]
