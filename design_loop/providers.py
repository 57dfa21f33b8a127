#!/usr/bin/env python3
"""
AI Providers - Interface to the text/vision model backends.

The transport is implemented elsewhere; this module only fixes the shape of
the conversation and offers helpers to pull JSON out of free-text replies.
"""

import json
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL)
_OPEN_BRACKET_RE = re.compile(r"[\[{]")
_DECODER = json.JSONDecoder()


@dataclass(frozen=True)
class ProviderCapabilities:
    vision: bool = False


@dataclass(frozen=True)
class ProviderMessage:
    """One chat message. images are base64 PNG payloads."""

    role: str
    content: str
    images: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProviderResponse:
    content: str
    usage: dict[str, int] = field(default_factory=dict)


@runtime_checkable
class AIProvider(Protocol):
    """
    Contract every model backend satisfies.

    Errors raised by send_message are scoped to the single calling operation.
    """

    capabilities: ProviderCapabilities

    def is_connected(self) -> bool: ...

    async def send_message(
        self,
        messages: list[ProviderMessage],
        *,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ) -> ProviderResponse: ...


def iter_json_values(text: str) -> Iterator[Any]:
    """
    Yield every JSON value that can be read out of a model reply.

    Fenced code blocks come first, then the whole reply, then values decoded
    at each `{` or `[` in the order they appear in the text.
    """
    payloads = [m.strip() for m in _FENCE_RE.findall(text)]
    payloads.append(text.strip())
    for payload in payloads:
        if not payload:
            continue
        try:
            yield json.loads(payload)
        except json.JSONDecodeError:
            continue

    for match in _OPEN_BRACKET_RE.finditer(text):
        try:
            value, _ = _DECODER.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        yield value


def extract_json(text: str) -> Any | None:
    """Return the first JSON value found in a model reply, or None."""
    return next(iter_json_values(text), None)


__all__ = [
    "ProviderCapabilities",
    "ProviderMessage",
    "ProviderResponse",
    "AIProvider",
    "extract_json",
    "iter_json_values",
]
