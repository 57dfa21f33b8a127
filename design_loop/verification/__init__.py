"""
Verification - Judging rendered candidates.

Components:
- Verifier: One vision-capable judge model
- ScoreFusion: Weighted fusion and consensus across judges
- TieredVerifier: Standard and advanced tier dispatch
"""

from .score_fusion import FusionResult, ModelJudgement, ScoreFusion, calculate_consensus
from .tiered import DEFAULT_VERIFIER_NAMES, TieredVerifier
from .verifier import OLLAMA_VISION_MODELS, Verifier, parse_verification_response

__all__ = [
    # Judges
    "Verifier",
    "parse_verification_response",
    "OLLAMA_VISION_MODELS",
    # Fusion
    "ScoreFusion",
    "ModelJudgement",
    "FusionResult",
    "calculate_consensus",
    # Tiers
    "TieredVerifier",
    "DEFAULT_VERIFIER_NAMES",
]
