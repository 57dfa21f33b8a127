#!/usr/bin/env python3
"""
Candidate Rendering - Seeds, renderer interface and screenshot capture.

A candidate's seed is a JSON document of tool calls the renderer replays on
its drawing surface. Rendering shares that one surface, so CandidateRenderer
serializes renders and races each one against a timeout.
"""

import asyncio
import base64
import io
import json
import logging
import time
from typing import Any, Protocol, runtime_checkable

from PIL import Image

from .models import DesignCandidate, RenderedCandidate, ScreenshotData

logger = logging.getLogger(__name__)

FULL_MAX_DIMENSION = 1920
THUMBNAIL_MAX_DIMENSION = 256


# =============================================================================
# Seeds
# =============================================================================


def create_seed(tool_calls: list[dict[str, Any]], metadata: dict[str, Any] | None = None) -> str:
    """Serialize tool calls and generation metadata into a candidate seed."""
    return json.dumps({"toolCalls": tool_calls, "metadata": metadata or {}})


def parse_seed(seed: str) -> list[dict[str, Any]]:
    """
    Parse a seed into its tool calls.

    Accepts {"toolCalls": [...]}, a bare list of calls, or a single
    {"tool": ..., "args": ...} object.

    Raises:
        ValueError: If the seed is not JSON or has none of those shapes.
    """
    try:
        data = json.loads(seed)
    except json.JSONDecodeError as e:
        raise ValueError(f"Seed is not valid JSON: {e}") from e

    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        if isinstance(data.get("toolCalls"), list):
            return data["toolCalls"]
        if "tool" in data:
            return [data]
    raise ValueError("Seed must be a list of tool calls or an object with toolCalls")


def validate_seed(seed: str) -> list[str]:
    """Return structural problems with a seed. Empty list means valid."""
    try:
        calls = parse_seed(seed)
    except ValueError as e:
        return [str(e)]

    errors = []
    if not calls:
        errors.append("Seed contains no tool calls")
    for i, call in enumerate(calls):
        if not isinstance(call, dict):
            errors.append(f"Tool call {i} is not an object")
            continue
        if not isinstance(call.get("tool"), str) or not call["tool"]:
            errors.append(f"Tool call {i} is missing a tool name")
        if "args" in call and not isinstance(call["args"], dict):
            errors.append(f"Tool call {i} has non-object args")
    return errors


# =============================================================================
# Screenshots
# =============================================================================


def _encode_png(image: Image.Image) -> str:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def screenshot_from_image(
    image: Image.Image,
    device_pixel_ratio: float = 1.0,
    full_max_dimension: int = FULL_MAX_DIMENSION,
    thumbnail_max_dimension: int = THUMBNAIL_MAX_DIMENSION,
) -> ScreenshotData:
    """
    Build ScreenshotData from a rendered image.

    The full image is downscaled to fit full_max_dimension; the thumbnail to
    thumbnail_max_dimension. Aspect ratio is preserved for both.
    """
    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA")

    full = image.copy()
    full.thumbnail((full_max_dimension, full_max_dimension))
    thumb = image.copy()
    thumb.thumbnail((thumbnail_max_dimension, thumbnail_max_dimension))

    return ScreenshotData(
        full=_encode_png(full),
        thumbnail=_encode_png(thumb),
        dimensions=image.size,
        device_pixel_ratio=device_pixel_ratio,
    )


def decode_screenshot(data: str) -> Image.Image:
    """Decode a base64 PNG payload back into an image."""
    return Image.open(io.BytesIO(base64.b64decode(data)))


# =============================================================================
# Renderer
# =============================================================================


@runtime_checkable
class Renderer(Protocol):
    """External collaborator that turns a candidate into a screenshot."""

    async def render_candidate(self, candidate: DesignCandidate) -> RenderedCandidate: ...


class CandidateRenderer:
    """
    Serialized, timeout-guarded access to a Renderer.

    A render that exceeds the timeout is cancelled and reported as a failed
    RenderedCandidate. Renderer exceptions are reported the same way.

    Usage:
        renderer = CandidateRenderer(my_renderer, timeout_s=10.0)
        results = await renderer.render_all(candidates)
    """

    def __init__(self, renderer: Renderer, timeout_s: float = 10.0):
        if timeout_s <= 0:
            raise ValueError(f"timeout_s must be positive, got {timeout_s}")
        self.renderer = renderer
        self.timeout_s = timeout_s
        self._lock = asyncio.Lock()

    async def render(self, candidate: DesignCandidate) -> RenderedCandidate:
        async with self._lock:
            start = time.monotonic()
            try:
                return await asyncio.wait_for(
                    self.renderer.render_candidate(candidate), timeout=self.timeout_s
                )
            except asyncio.TimeoutError:
                error = f"Render timeout after {int(self.timeout_s * 1000)}ms"
            except Exception as e:
                error = str(e) or type(e).__name__

            logger.warning(f"Render failed for {candidate.id}: {error}")
            return RenderedCandidate(
                candidate=candidate,
                screenshot=None,
                render_successful=False,
                render_time_ms=(time.monotonic() - start) * 1000,
                error=error,
            )

    async def render_all(self, candidates: list[DesignCandidate]) -> list[RenderedCandidate]:
        """Render candidates one at a time, in order."""
        results = []
        for candidate in candidates:
            results.append(await self.render(candidate))
        return results


__all__ = [
    "create_seed",
    "parse_seed",
    "validate_seed",
    "screenshot_from_image",
    "decode_screenshot",
    "Renderer",
    "CandidateRenderer",
]
