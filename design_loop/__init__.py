"""
Design Loop - Iterative generate, render, verify and terminate loop for UI designs.

Components:
- FeedbackLoop: Top-level driver with adaptive hyperparameters
- StrategyManager: Per-iteration allocation across six generation strategies
- TieredVerifier: Single-judge and multi-judge (fused, consensus-gated) verification
- TerminationPolicy: Max iterations, timeout, quality and convergence stopping
"""

from .errors import (
    ConfigurationError,
    DesignLoopError,
    GenerationError,
    NoCandidatesError,
    VerificationError,
    VerifierUnavailableError,
)
from .feedback_loop import FeedbackLoop
from .generators import GenerationContext, StrategyManager, StrategySelection
from .models import (
    AdaptiveConfig,
    AdvancedVerificationConfig,
    DesignCandidate,
    DesignIntent,
    DesignResult,
    FeedbackIteration,
    FeedbackLoopOptions,
    GenerationStrategy,
    ModelWeight,
    QualityScore,
    ScreenshotData,
    TemperatureSchedule,
    VerificationConfig,
    VerificationResult,
    VerificationTier,
)
from .providers import AIProvider, ProviderCapabilities, ProviderMessage, ProviderResponse
from .rendering import CandidateRenderer, Renderer, create_seed, parse_seed, validate_seed
from .termination import TerminationCriteria, TerminationPolicy
from .verification import ScoreFusion, TieredVerifier, Verifier

__version__ = "0.1.0"

__all__ = [
    # Driver
    "FeedbackLoop",
    "FeedbackLoopOptions",
    "DesignResult",
    "FeedbackIteration",
    # Generation
    "StrategyManager",
    "StrategySelection",
    "GenerationContext",
    "GenerationStrategy",
    "AdaptiveConfig",
    "TemperatureSchedule",
    # Verification
    "TieredVerifier",
    "Verifier",
    "ScoreFusion",
    "VerificationConfig",
    "AdvancedVerificationConfig",
    "ModelWeight",
    "VerificationResult",
    "VerificationTier",
    "QualityScore",
    # Termination
    "TerminationPolicy",
    "TerminationCriteria",
    # Data
    "DesignIntent",
    "DesignCandidate",
    "ScreenshotData",
    # Collaborators
    "AIProvider",
    "ProviderCapabilities",
    "ProviderMessage",
    "ProviderResponse",
    "Renderer",
    "CandidateRenderer",
    "create_seed",
    "parse_seed",
    "validate_seed",
    # Errors
    "DesignLoopError",
    "ConfigurationError",
    "VerifierUnavailableError",
    "GenerationError",
    "VerificationError",
    "NoCandidatesError",
]
