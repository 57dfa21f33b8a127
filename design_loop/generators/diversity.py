#!/usr/bin/env python3
"""
Diversity Generator - Forces variation along named design dimensions.

Each sample is assigned 1-3 dimensions to vary, round-robin over
DIVERSITY_DIMENSIONS, and is told which layout, color and density patterns
earlier candidates already used.
"""

import re
from dataclasses import dataclass

from ..models import GenerationStrategy
from ..rendering import parse_seed
from .base import BaseGenerator, GenerationContext, GeneratorConfig, SampleRequest

DIVERSITY_DIMENSIONS = (
    "layout_structure",
    "color_theme",
    "visual_density",
    "component_style",
    "hierarchy_flow",
)

_HEX_COLOR_RE = re.compile(r"#[0-9a-fA-F]{6}\b|#[0-9a-fA-F]{3}\b")


@dataclass
class DiversityConfig(GeneratorConfig):
    divergence_level: float = 0.7
    max_dimensions: int = 3


@dataclass(frozen=True)
class ObservedPatterns:
    layouts: tuple[str, ...] = ()
    colors: tuple[str, ...] = ()
    density: str | None = None


class DiversityGenerator(BaseGenerator):
    strategy = GenerationStrategy.DIVERSITY
    config_class = DiversityConfig

    @property
    def sampling_temperature(self) -> float:
        return min(1.0, 0.8 + self.config.divergence_level * 0.2)

    def dimensions_for(self, index: int) -> list[str]:
        size = min(1 + index % 3, max(1, self.config.max_dimensions))
        n = len(DIVERSITY_DIMENSIONS)
        return [DIVERSITY_DIMENSIONS[(index + k) % n] for k in range(size)]

    def observe_patterns(self, context: GenerationContext) -> ObservedPatterns:
        layouts, colors, call_counts = [], [], []
        for c in context.previous_candidates:
            try:
                calls = parse_seed(c.candidate.seed)
            except ValueError:
                continue
            call_counts.append(len(calls))
            for call in calls:
                args = call.get("args") or {}
                if call.get("tool") == "set_auto_layout":
                    layout = args.get("direction") or args.get("mode") or "auto_layout"
                    if layout not in layouts:
                        layouts.append(str(layout))
                for color in _HEX_COLOR_RE.findall(str(args)):
                    color = color.lower()
                    if color not in colors:
                        colors.append(color)

        density = None
        if call_counts:
            avg = sum(call_counts) / len(call_counts)
            density = "dense" if avg > 15 else "sparse" if avg < 6 else "moderate"
        return ObservedPatterns(tuple(layouts), tuple(colors[:8]), density)

    def build_requests(self, context: GenerationContext, count: int) -> list[SampleRequest]:
        observed = self.observe_patterns(context)
        avoid = []
        if observed.layouts:
            avoid.append(f"- layouts: {', '.join(observed.layouts)}")
        if observed.colors:
            avoid.append(f"- colors: {', '.join(observed.colors)}")
        if observed.density:
            avoid.append(f"- density: {observed.density}")

        requests = []
        for i in range(count):
            dims = self.dimensions_for(i)
            lines = [
                "Create a design for the request above that deliberately diverges "
                "from earlier attempts.",
                f"Vary these dimensions substantially: {', '.join(dims)}.",
                f"Divergence level: {self.config.divergence_level:.1f} (0 = subtle, 1 = radical).",
            ]
            if avoid:
                lines.append("Avoid these observed patterns:")
                lines.extend(avoid)
            requests.append(
                SampleRequest(
                    prompt="\n".join(lines),
                    temperature=self.sampling_temperature,
                    focus=",".join(dims),
                    extra_metadata={"dimensions": dims},
                )
            )
        return requests


__all__ = ["DIVERSITY_DIMENSIONS", "DiversityConfig", "DiversityGenerator"]
