#!/usr/bin/env python3
"""
Initial Generator - Seeds iteration 1 with a temperature spread.
"""

from dataclasses import dataclass

from ..models import GenerationStrategy, clamp
from .base import BaseGenerator, GenerationContext, GeneratorConfig, SampleRequest


@dataclass
class InitialConfig(GeneratorConfig):
    vary_temperature: bool = True
    temperature_spread: float = 0.3


class InitialGenerator(BaseGenerator):
    """Samples `count` designs from scratch, spreading temperature for diversity."""

    strategy = GenerationStrategy.INITIAL
    config_class = InitialConfig

    def temperatures(self, count: int) -> list[float]:
        base = self.config.temperature
        if not self.config.vary_temperature or count == 1:
            return [clamp(base, 0.1, 1.0)] * count
        spread = self.config.temperature_spread
        low, high = base - spread, base + spread
        step = (high - low) / (count - 1)
        return [clamp(low + step * i, 0.1, 1.0) for i in range(count)]

    def build_requests(self, context: GenerationContext, count: int) -> list[SampleRequest]:
        prompt = (
            "Create a complete design for the request above. Build the layout, "
            "content and styling from scratch."
        )
        if context.intent.required_elements:
            prompt += " Include every required element."
        return [
            SampleRequest(prompt=prompt, temperature=t, extra_metadata={"variant": i})
            for i, t in enumerate(self.temperatures(count))
        ]


__all__ = ["InitialConfig", "InitialGenerator"]
