#!/usr/bin/env python3
"""
Fresh Generator - Restarts from scratch, steering away from what was tried.
"""

from dataclasses import dataclass

from ..models import GenerationStrategy
from .base import BaseGenerator, GenerationContext, GeneratorConfig, SampleRequest


@dataclass
class FreshConfig(GeneratorConfig):
    temperature: float = 0.9
    max_avoid_patterns: int = 5


class FreshGenerator(BaseGenerator):
    """Ignores prior designs except to list their strengths as patterns to avoid."""

    strategy = GenerationStrategy.FRESH
    config_class = FreshConfig

    def patterns_to_avoid(self, context: GenerationContext) -> list[str]:
        patterns = []
        for c in context.previous_candidates:
            for strength in c.verification.detailed_analysis.strengths:
                if strength not in patterns:
                    patterns.append(strength)
        return patterns[: self.config.max_avoid_patterns]

    def build_requests(self, context: GenerationContext, count: int) -> list[SampleRequest]:
        lines = [
            "Create a completely new design for the request above.",
            "Take a distinctly different creative direction from earlier attempts.",
        ]
        avoid = self.patterns_to_avoid(context)
        if avoid:
            lines.append("Earlier attempts already explored these; do something different:")
            lines.extend(f"- {p}" for p in avoid)
        prompt = "\n".join(lines)
        return [SampleRequest(prompt=prompt, temperature=self.config.temperature) for _ in range(count)]


__all__ = ["FreshConfig", "FreshGenerator"]
