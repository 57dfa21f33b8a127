#!/usr/bin/env python3
"""
Generator Base - Shared contract for all generation strategies.

A generator turns a GenerationContext into candidate seeds by sampling the
AI provider once per requested candidate. Samples run concurrently; a sample
whose provider call raises or whose reply does not parse is dropped.
"""

import asyncio
import dataclasses
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from ..errors import ConfigurationError, GenerationError
from ..models import (
    DEFAULT_AVAILABLE_TOOLS,
    CandidateMetadata,
    DesignCandidate,
    DesignIntent,
    GenerationStrategy,
    ScoredCandidate,
    generate_id,
)
from ..providers import AIProvider, ProviderMessage, extract_json
from ..rendering import create_seed, parse_seed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationContext:
    """Immutable snapshot handed to every generator for one iteration."""

    intent: DesignIntent
    iteration: int
    previous_candidates: tuple[ScoredCandidate, ...] = ()
    best_candidate: ScoredCandidate | None = None
    available_tools: tuple[str, ...] = DEFAULT_AVAILABLE_TOOLS


@dataclass
class GeneratorConfig:
    temperature: float = 0.7
    max_tokens: int = 4096


@dataclass(frozen=True)
class SampleRequest:
    """One provider call a generator wants to make."""

    prompt: str
    temperature: float
    parent_id: str | None = None
    parent_ids: tuple[str, ...] = ()
    parent_scores: tuple[float, ...] = ()
    focus: str | None = None
    extra_metadata: dict[str, Any] = field(default_factory=dict)


def parse_tool_calls(text: str) -> list[dict[str, Any]] | None:
    """
    Pull a list of tool calls out of a provider reply.

    The array may be bare, fenced in a code block, or surrounded by prose.
    Returns None when no usable tool calls are found.
    """
    data = extract_json(text)
    if data is None:
        return None
    if isinstance(data, dict):
        if isinstance(data.get("toolCalls"), list):
            data = data["toolCalls"]
        elif "tool" in data:
            data = [data]
        else:
            return None
    if not isinstance(data, list):
        return None

    calls = [
        {"tool": item["tool"], "args": item.get("args") or {}}
        for item in data
        if isinstance(item, dict) and isinstance(item.get("tool"), str)
    ]
    return calls or None


def describe_seed(seed: str, limit: int = 20) -> str:
    """Short textual listing of a seed's tool calls for use in prompts."""
    try:
        calls = parse_seed(seed)
    except ValueError:
        return seed[:500]
    lines = [f"- {c.get('tool')}({c.get('args', {})})" for c in calls[:limit]]
    if len(calls) > limit:
        lines.append(f"- ... {len(calls) - limit} more")
    return "\n".join(lines)


class BaseGenerator(ABC):
    """
    Base class for strategy generators.

    Subclasses set `strategy`, a `config_class`, and implement
    build_requests(); the base class handles sampling, parsing and
    candidate construction.
    """

    strategy: GenerationStrategy
    config_class: type[GeneratorConfig] = GeneratorConfig

    def __init__(self, provider: AIProvider | None = None, **config: Any):
        self.provider = provider
        self.config = self.config_class(**config)

    def set_provider(self, provider: AIProvider) -> None:
        self.provider = provider

    def configure(self, options: dict[str, Any]) -> None:
        """
        Apply a partial config update.

        Raises:
            ValueError: If an option name is unknown.
        """
        known = {f.name for f in dataclasses.fields(self.config)}
        unknown = set(options) - known
        if unknown:
            raise ValueError(f"Unknown {self.strategy.value} options: {sorted(unknown)}")
        self.config = dataclasses.replace(self.config, **options)

    @abstractmethod
    def build_requests(self, context: GenerationContext, count: int) -> list[SampleRequest]:
        """Return one SampleRequest per candidate to sample."""

    def system_prompt(self, context: GenerationContext) -> str:
        tools = ", ".join(context.available_tools)
        return (
            "You are a UI designer that builds designs by emitting tool calls.\n"
            f"Available tools: {tools}\n"
            'Respond with a JSON array of tool calls: [{"tool": "<name>", "args": {...}}]. '
            "Only use the available tools.\n\n"
            f"{context.intent.to_prompt()}"
        )

    async def generate(self, context: GenerationContext, count: int) -> list[DesignCandidate]:
        """
        Generate up to `count` candidates.

        Raises:
            ConfigurationError: If no provider is set.
            GenerationError: If samples were requested and all of them failed.
        """
        if self.provider is None:
            raise ConfigurationError("Provider not set")
        if count <= 0:
            return []

        requests = self.build_requests(context, count)
        if not requests:
            return []

        system_prompt = self.system_prompt(context)
        results = await asyncio.gather(
            *[self._sample(context, system_prompt, req) for req in requests],
            return_exceptions=True,
        )

        candidates = []
        for req, result in zip(requests, results):
            if isinstance(result, BaseException):
                logger.warning(f"{self.strategy.value} sample failed: {result}")
            elif result is None:
                logger.warning(f"{self.strategy.value} sample returned no parseable tool calls")
            else:
                candidates.append(result)

        if not candidates:
            raise GenerationError(
                f"{self.strategy.value} generation failed: all {len(requests)} samples failed"
            )
        logger.debug(f"{self.strategy.value}: {len(candidates)}/{len(requests)} samples succeeded")
        return candidates

    async def _sample(
        self, context: GenerationContext, system_prompt: str, req: SampleRequest
    ) -> DesignCandidate | None:
        response = await self.provider.send_message(
            [ProviderMessage(role="user", content=req.prompt)],
            system_prompt=system_prompt,
            temperature=req.temperature,
            max_tokens=self.config.max_tokens,
        )
        tool_calls = parse_tool_calls(response.content)
        if tool_calls is None:
            return None

        seed_metadata = {
            "strategy": self.strategy.value,
            "iteration": context.iteration,
            "temperature": req.temperature,
            **req.extra_metadata,
        }
        return DesignCandidate(
            id=generate_id(),
            seed=create_seed(tool_calls, seed_metadata),
            strategy=self.strategy,
            iteration=context.iteration,
            metadata=CandidateMetadata(
                temperature=req.temperature,
                confidence=self.estimate_confidence(req),
                parent_scores=req.parent_scores,
                refinement_focus=req.focus,
            ),
            parent_id=req.parent_id,
            parent_ids=req.parent_ids,
        )

    def estimate_confidence(self, req: SampleRequest) -> float:
        if req.parent_scores:
            return max(req.parent_scores)
        return 0.5


__all__ = [
    "GenerationContext",
    "GeneratorConfig",
    "SampleRequest",
    "BaseGenerator",
    "parse_tool_calls",
    "describe_seed",
]
