#!/usr/bin/env python3
"""
Verifier - One vision-capable judge model.

Sends the intent and a screenshot to the judge and parses its reply into a
ModelVerificationResult. Replies are expected as JSON; when that shape is
missing, a numeric score is pulled out of the text instead.
"""

import logging
import math
import re
import time
from dataclasses import dataclass, replace
from typing import Any

from ..errors import ConfigurationError, VerificationError
from ..models import (
    CATEGORY_NAMES,
    DesignIntent,
    DesignIssue,
    IssueSeverity,
    ModelVerificationResult,
    ScreenshotData,
    VerificationCategories,
    clamp,
)
from ..providers import AIProvider, ProviderMessage, iter_json_values

logger = logging.getLogger(__name__)

# Local vision-capable models usable through an Ollama provider.
OLLAMA_VISION_MODELS = (
    "llava",
    "llava:13b",
    "llava:34b",
    "llama3.2-vision",
    "bakllava",
    "moondream",
)

FALLBACK_CONFIDENCE = 0.5
DEFAULT_CONFIDENCE = 0.7

_SCORE_PATTERNS = (
    re.compile(r'"?score"?\s*[:=]\s*(\d+(?:\.\d+)?)', re.IGNORECASE),
    re.compile(r"(\d+(?:\.\d+)?)\s*/\s*10\b"),
)

VERIFICATION_SYSTEM_PROMPT = """You are an expert UI design reviewer.
Compare the screenshot against the design request and respond with JSON only:
{
  "score": <0-1>,
  "confidence": <0-1>,
  "categories": {"layout": <0-1>, "fidelity": <0-1>, "completeness": <0-1>, "polish": <0-1>},
  "issues": [{"type": "...", "severity": "critical|major|minor", "description": "...", "suggestion": "..."}],
  "strengths": ["..."],
  "suggestions": ["..."],
  "critique": "..."
}"""


@dataclass
class VerifierConfig:
    temperature: float = 0.2
    max_tokens: int = 2048
    model: str | None = None


def _as_score(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return clamp(number) if math.isfinite(number) else default


def _is_verdict(value: Any) -> bool:
    if not isinstance(value, dict) or "score" not in value:
        return False
    try:
        return math.isfinite(float(value["score"]))
    except (TypeError, ValueError):
        return False


def _parse_issues(raw: Any) -> tuple[DesignIssue, ...]:
    issues = []
    for item in raw if isinstance(raw, list) else []:
        if not isinstance(item, dict) or not item.get("description"):
            continue
        try:
            severity = IssueSeverity(str(item.get("severity", "minor")).lower())
        except ValueError:
            severity = IssueSeverity.MINOR
        issues.append(
            DesignIssue(
                type=str(item.get("type", "general")),
                severity=severity,
                description=str(item["description"]),
                suggestion=item.get("suggestion"),
            )
        )
    return tuple(issues)


def _strings(raw: Any) -> tuple[str, ...]:
    return tuple(str(s) for s in raw) if isinstance(raw, list) else ()


def parse_verification_response(model: str, text: str) -> ModelVerificationResult:
    """
    Parse a judge reply.

    Raises:
        VerificationError: If neither JSON nor a recognizable score is present.
    """
    data = next((v for v in iter_json_values(text) if _is_verdict(v)), None)
    if data is not None:
        score = _as_score(data["score"], 0.0)
        raw_cats = data.get("categories") if isinstance(data.get("categories"), dict) else {}
        categories = VerificationCategories(
            **{name: _as_score(raw_cats.get(name), score) for name in CATEGORY_NAMES}
        )
        return ModelVerificationResult(
            model=model,
            score=score,
            confidence=_as_score(data.get("confidence"), DEFAULT_CONFIDENCE),
            critique=str(data.get("critique", "")),
            categories=categories,
            issues=_parse_issues(data.get("issues")),
            strengths=_strings(data.get("strengths")),
            suggestions=_strings(data.get("suggestions")),
            raw_response=text,
        )

    for pattern in _SCORE_PATTERNS:
        match = pattern.search(text)
        if match:
            value = float(match.group(1))
            score = clamp(value / 10 if value > 1 else value)
            logger.debug(f"{model}: fell back to text score extraction ({score:.2f})")
            return ModelVerificationResult(
                model=model,
                score=score,
                confidence=FALLBACK_CONFIDENCE,
                critique=text.strip(),
                categories=VerificationCategories.uniform(score),
                raw_response=text,
            )

    raise VerificationError(f"{model}: could not parse a score from response")


class Verifier:
    """
    A named judge backed by an AI provider.

    Usage:
        verifier = Verifier("claude", provider)
        if await verifier.is_available():
            result = await verifier.verify(intent, screenshot)
    """

    def __init__(self, name: str, provider: AIProvider | None = None, **config: Any):
        self.name = name
        self.provider = provider
        self.config = VerifierConfig(**config)

    def set_provider(self, provider: AIProvider) -> None:
        self.provider = provider

    async def is_available(self) -> bool:
        """Provider set, connected and vision-capable."""
        if self.provider is None:
            return False
        return bool(self.provider.is_connected() and self.provider.capabilities.vision)

    def build_prompt(self, intent: DesignIntent) -> str:
        return (
            f"{intent.to_prompt()}\n\n"
            "Evaluate how well the attached screenshot fulfils this request."
        )

    async def verify(self, intent: DesignIntent, screenshot: ScreenshotData) -> ModelVerificationResult:
        """
        Judge one screenshot.

        Raises:
            ConfigurationError: If no provider is set.
            VerificationError: If the reply cannot be parsed.
        """
        if self.provider is None:
            raise ConfigurationError(f"{self.name} verifier: provider not set")

        start = time.monotonic()
        response = await self.provider.send_message(
            [ProviderMessage(role="user", content=self.build_prompt(intent), images=(screenshot.full,))],
            system_prompt=VERIFICATION_SYSTEM_PROMPT,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        result = parse_verification_response(self.name, response.content)
        elapsed_ms = (time.monotonic() - start) * 1000
        logger.debug(f"{self.name} scored {result.score:.2f} in {elapsed_ms:.0f}ms")
        return replace(result, response_time_ms=elapsed_ms)


__all__ = [
    "OLLAMA_VISION_MODELS",
    "VerifierConfig",
    "Verifier",
    "parse_verification_response",
]
