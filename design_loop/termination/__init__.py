"""
Termination - Stop/continue decisions for the design loop.

Components:
- TerminationPolicy: Precedence-ordered termination evaluation
- analyze_convergence: Plateau and oscillation detection
- is_stagnant: Low-variance detection over recent scores
"""

from .convergence import analyze_convergence, count_reversals, is_stagnant
from .policy import (
    REASON_CONVERGED,
    REASON_MAX_ITERATIONS,
    REASON_QUALITY,
    REASON_TIMEOUT,
    TerminationCriteria,
    TerminationPolicy,
)

__all__ = [
    # Policy
    "TerminationPolicy",
    "TerminationCriteria",
    "REASON_MAX_ITERATIONS",
    "REASON_TIMEOUT",
    "REASON_QUALITY",
    "REASON_CONVERGED",
    # Convergence
    "analyze_convergence",
    "count_reversals",
    "is_stagnant",
]
