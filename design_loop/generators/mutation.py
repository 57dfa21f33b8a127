#!/usr/bin/env python3
"""
Mutation Generator - Applies targeted random variations to good candidates.
"""

from dataclasses import dataclass

from ..models import GenerationStrategy, ScoredCandidate
from .base import BaseGenerator, GenerationContext, GeneratorConfig, SampleRequest, describe_seed

MUTATION_TYPES = (
    "color_shift",
    "spacing_adjust",
    "size_variation",
    "layout_tweak",
    "style_shift",
    "element_swap",
)

MUTATION_INSTRUCTIONS = {
    "color_shift": "Shift the color palette while keeping contrast readable.",
    "spacing_adjust": "Adjust padding, gaps and margins.",
    "size_variation": "Vary the sizes of key elements.",
    "layout_tweak": "Rearrange the layout structure slightly.",
    "style_shift": "Change visual styling such as corner radius, strokes and effects.",
    "element_swap": "Swap or replace one or two elements with alternatives.",
}


@dataclass
class MutationConfig(GeneratorConfig):
    intensity: float = 0.5
    temperature_boost: float = 0.2
    min_parent_score: float = 0.5


class MutationGenerator(BaseGenerator):
    """Round-robins over good candidates crossed with the mutation palette."""

    strategy = GenerationStrategy.MUTATION
    config_class = MutationConfig

    def parent_pool(self, candidates: list[ScoredCandidate]) -> list[ScoredCandidate]:
        """Candidates above min_parent_score, or the single best if none are."""
        ranked = sorted(candidates, key=lambda c: c.quality_score.overall, reverse=True)
        good = [c for c in ranked if c.quality_score.overall > self.config.min_parent_score]
        return good or ranked[:1]

    def build_requests(self, context: GenerationContext, count: int) -> list[SampleRequest]:
        pool = self.parent_pool(list(context.previous_candidates))
        if not pool:
            return []

        temperature = min(1.0, self.config.temperature + self.config.temperature_boost)
        requests = []
        for i in range(count):
            parent = pool[i % len(pool)]
            kind = MUTATION_TYPES[i % len(MUTATION_TYPES)]
            prompt = "\n".join(
                [
                    f"Apply a {kind} mutation to this design "
                    f"(intensity {self.config.intensity:.1f}).",
                    MUTATION_INSTRUCTIONS[kind],
                    "Keep everything else intact.",
                    "Current tool calls:",
                    describe_seed(parent.candidate.seed),
                    "Return the full mutated design.",
                ]
            )
            requests.append(
                SampleRequest(
                    prompt=prompt,
                    temperature=temperature,
                    parent_id=parent.candidate.id,
                    parent_scores=(parent.quality_score.overall,),
                    focus=kind,
                    extra_metadata={"mutation": kind},
                )
            )
        return requests


__all__ = ["MUTATION_TYPES", "MutationConfig", "MutationGenerator"]
