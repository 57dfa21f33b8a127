#!/usr/bin/env python3
"""
Crossover Generator - Synthesizes hybrids from the strongest candidates.
"""

from dataclasses import dataclass

from ..models import CATEGORY_NAMES, GenerationStrategy, ScoredCandidate
from .base import BaseGenerator, GenerationContext, GeneratorConfig, SampleRequest, describe_seed


@dataclass
class CrossoverConfig(GeneratorConfig):
    max_parents: int = 3


class CrossoverGenerator(BaseGenerator):
    """
    Combines parents chosen for complementary strengths.

    Parent set per sample: the overall best, then the best candidate in each
    category, then the remaining top scorers, up to max_parents. The fill
    rotates with the sample index so samples do not all share one parent set.
    """

    strategy = GenerationStrategy.CROSSOVER
    config_class = CrossoverConfig

    def select_parents(
        self, candidates: list[ScoredCandidate], sample_index: int = 0
    ) -> tuple[list[ScoredCandidate], dict[str, str]]:
        """Return (parents, {category: contributing parent id})."""
        limit = max(2, self.config.max_parents)
        ranked = sorted(candidates, key=lambda c: c.quality_score.overall, reverse=True)
        parents = [ranked[0]]
        contributions = {}

        for category in CATEGORY_NAMES:
            top = max(
                candidates,
                key=lambda c: c.verification.detailed_analysis.categories.as_dict()[category],
            )
            contributions[category] = top.candidate.id
            if top not in parents and len(parents) < limit:
                parents.append(top)

        rest = [c for c in ranked if c not in parents]
        if rest:
            offset = sample_index % len(rest)
            for c in rest[offset:] + rest[:offset]:
                if len(parents) >= limit:
                    break
                parents.append(c)
        return parents, contributions

    def build_requests(self, context: GenerationContext, count: int) -> list[SampleRequest]:
        candidates = list(context.previous_candidates)
        if len(candidates) < 2:
            return []

        requests = []
        for i in range(count):
            parents, contributions = self.select_parents(candidates, i)
            lines = ["Combine the best aspects of these designs into one hybrid design."]
            for n, parent in enumerate(parents, 1):
                cats = parent.verification.detailed_analysis.categories.as_dict()
                strong = [c for c, pid in contributions.items() if pid == parent.candidate.id]
                lines.append(
                    f"\nParent {n} (score {parent.quality_score.overall:.2f}, "
                    + ", ".join(f"{k} {v:.2f}" for k, v in cats.items())
                    + ")"
                )
                if strong:
                    lines.append(f"Take its {', '.join(strong)}.")
                lines.append(describe_seed(parent.candidate.seed))
            lines.append("\nReturn the full hybrid design.")

            parent_ids = tuple(p.candidate.id for p in parents)
            requests.append(
                SampleRequest(
                    prompt="\n".join(lines),
                    temperature=self.config.temperature,
                    parent_id=parent_ids[0],
                    parent_ids=parent_ids,
                    parent_scores=tuple(p.quality_score.overall for p in parents),
                    extra_metadata={"parent_count": len(parents)},
                )
            )
        return requests


__all__ = ["CrossoverConfig", "CrossoverGenerator"]
