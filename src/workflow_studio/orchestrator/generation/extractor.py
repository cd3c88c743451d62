"""Recover a JSON value from free-form CLI output.

The CLI may answer with raw JSON, JSON wrapped in a ```json fence, or prose
followed by a fenced block. Extraction uses string positions rather than
regular expressions because the payload itself may contain fence markers.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

logger = logging.getLogger(__name__)

JSON_FENCE = "```json"
FENCE = "```"

Strategy = Literal["fenced", "raw_object", "embedded_fence", "fallback"]


@dataclass(frozen=True, slots=True)
class ExtractedJson:
    value: Any
    strategy: Strategy


def _fenced(trimmed: str) -> str | None:
    if trimmed.startswith(JSON_FENCE) and trimmed.endswith(FENCE):
        return trimmed[len(JSON_FENCE) : -len(FENCE)].strip()
    return None


def _raw_object(trimmed: str) -> str | None:
    return trimmed if trimmed.startswith("{") else None


def _embedded_fence(trimmed: str) -> str | None:
    start = trimmed.find(JSON_FENCE)
    if start == -1:
        return None
    content_start = start + len(JSON_FENCE)
    # Last closing fence, not the first: the payload may contain fences.
    end = trimmed.rfind(FENCE)
    if end <= content_start:
        return None
    return trimmed[content_start:end].strip()


def _fallback(trimmed: str) -> str | None:
    return trimmed


_STRATEGIES: tuple[tuple[Strategy, Callable[[str], str | None]], ...] = (
    ("fenced", _fenced),
    ("raw_object", _raw_object),
    ("embedded_fence", _embedded_fence),
    ("fallback", _fallback),
)


def extract_json(output: str) -> ExtractedJson | None:
    """Return the first JSON value any strategy can parse, or None.

    Strategies run in order; a strategy whose candidate fails to parse yields
    to the next one. ``None`` means no strategy produced valid JSON (a JSON
    ``null`` payload comes back as ``ExtractedJson(value=None, ...)``).
    """

    trimmed = output.strip()
    for name, candidate_for in _STRATEGIES:
        candidate = candidate_for(trimmed)
        if candidate is None:
            continue
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        logger.debug("Extracted JSON from CLI output", extra={"strategy": name})
        return ExtractedJson(value=value, strategy=name)
    return None


def parse_cli_output(output: str) -> Any | None:
    """Convenience wrapper returning just the value (None when nothing parsed)."""

    extracted = extract_json(output)
    return extracted.value if extracted is not None else None
