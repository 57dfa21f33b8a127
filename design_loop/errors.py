#!/usr/bin/env python3
"""
Design Loop Errors - Exception taxonomy.

Configuration errors fail the calling operation immediately. Per-sample
failures are absorbed by the batch that owns them. GenerationError and
VerificationError signal that a whole batch produced nothing usable.
"""


class DesignLoopError(Exception):
    """Base class for design loop errors."""

    pass


class ConfigurationError(DesignLoopError):
    """Setup defect: missing provider, verifier or advanced-tier config."""

    pass


class VerifierUnavailableError(ConfigurationError):
    """Named verifier is registered but cannot currently verify."""

    pass


class GenerationError(DesignLoopError):
    """Every requested sample of a generator failed."""

    pass


class VerificationError(DesignLoopError):
    """A judge response was unusable, or every judge dropped out."""

    pass


class NoCandidatesError(DesignLoopError):
    """A run finished without ever scoring a candidate."""

    pass


__all__ = [
    "DesignLoopError",
    "ConfigurationError",
    "VerifierUnavailableError",
    "GenerationError",
    "VerificationError",
    "NoCandidatesError",
]
