#!/usr/bin/env python3
"""
Refinement Generator - Improves promising candidates on their weakest category.
"""

from dataclasses import dataclass

from ..models import GenerationStrategy, ScoredCandidate
from .base import BaseGenerator, GenerationContext, GeneratorConfig, SampleRequest, describe_seed


@dataclass
class RefinementConfig(GeneratorConfig):
    min_score: float = 0.3
    max_score: float = 0.95


class RefinementGenerator(BaseGenerator):
    """
    Refines candidates that have room to improve.

    Eligible candidates score strictly between min_score and max_score;
    the highest-scored are refined first, one sample each.
    """

    strategy = GenerationStrategy.REFINEMENT
    config_class = RefinementConfig

    def select_parents(self, context: GenerationContext, count: int) -> list[ScoredCandidate]:
        eligible = [
            c
            for c in context.previous_candidates
            if self.config.min_score < c.quality_score.overall < self.config.max_score
        ]
        eligible.sort(key=lambda c: c.quality_score.overall, reverse=True)
        return eligible[:count]

    def build_requests(self, context: GenerationContext, count: int) -> list[SampleRequest]:
        requests = []
        for parent in self.select_parents(context, count):
            analysis = parent.verification.detailed_analysis
            weakest = analysis.categories.weakest()
            lines = [
                "Improve this existing design.",
                f"Current score: {parent.quality_score.overall:.2f}",
                f"Weakest area: {weakest} ({analysis.categories.as_dict()[weakest]:.2f})",
                f"Judge critique: {parent.verification.critique}",
                "Current tool calls:",
                describe_seed(parent.candidate.seed),
            ]
            if analysis.issues:
                lines.append("Issues to fix:")
                lines.extend(f"- [{i.severity.value}] {i.description}" for i in analysis.issues)
            if analysis.suggestions:
                lines.append("Suggestions:")
                lines.extend(f"- {s}" for s in analysis.suggestions)
            if analysis.strengths:
                lines.append("Preserve these strengths:")
                lines.extend(f"- {s}" for s in analysis.strengths)
            lines.append(f"Return the full improved design, focusing on {weakest}.")

            requests.append(
                SampleRequest(
                    prompt="\n".join(lines),
                    temperature=self.config.temperature,
                    parent_id=parent.candidate.id,
                    parent_scores=(parent.quality_score.overall,),
                    focus=weakest,
                )
            )
        return requests


__all__ = ["RefinementConfig", "RefinementGenerator"]
