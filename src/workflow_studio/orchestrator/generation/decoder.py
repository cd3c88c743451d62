"""Decode `--output-format stream-json` output into classified chunks.

The CLI writes one JSON event per line. Segments arrive from the pipe in
arbitrary sizes, so partial lines are buffered until their newline.

Two accumulators are kept per run:
- display text: everything shown to the user, tool-use annotations included
- explanatory text: assistant prose only, kept in chat history
"""

from __future__ import annotations

import json
import logging
from typing import Any

from workflow_studio.orchestrator.generation.models import ContentType, StreamChunk

logger = logging.getLogger(__name__)

_TOOL_DETAIL_KEYS: tuple[str, ...] = ("file_path", "path", "pattern", "command", "url")


def describe_tool_use(item: dict[str, Any]) -> str:
    name = item.get("name")
    label = name if isinstance(name, str) and name else "tool"
    tool_input = item.get("input")
    if isinstance(tool_input, dict):
        for key in _TOOL_DETAIL_KEYS:
            value = tool_input.get(key)
            if isinstance(value, str) and value:
                return f"{label}: {value}"
    return label


class StreamDecoder:
    def __init__(self) -> None:
        self._buffer = ""
        self._display = ""
        self._explanatory = ""
        self.result_text: str | None = None

    @property
    def display_text(self) -> str:
        return self._display

    @property
    def explanatory_text(self) -> str:
        return self._explanatory

    def feed(self, segment: str) -> list[StreamChunk]:
        """Consume a raw segment; return chunks for every completed line, in order."""

        self._buffer += segment
        *lines, self._buffer = self._buffer.split("\n")
        chunks: list[StreamChunk] = []
        for line in lines:
            chunks.extend(self._decode_line(line))
        return chunks

    def flush(self) -> list[StreamChunk]:
        """Decode whatever is left once the stream has ended."""

        tail, self._buffer = self._buffer, ""
        if not tail.strip():
            return []
        return self._decode_line(tail)

    def _decode_line(self, line: str) -> list[StreamChunk]:
        stripped = line.strip()
        if not stripped:
            return []
        try:
            event = json.loads(stripped)
        except json.JSONDecodeError:
            # Plain text output (or a CLI warning) is treated as prose.
            return [self._emit("text", line + "\n")]
        if not isinstance(event, dict):
            return [self._emit("text", line + "\n")]
        return self._decode_event(event)

    def _decode_event(self, event: dict[str, Any]) -> list[StreamChunk]:
        event_type = event.get("type")

        if event_type == "assistant":
            message = event.get("message")
            content = message.get("content") if isinstance(message, dict) else None
            if isinstance(content, str):
                return [self._emit("text", content)] if content else []
            if not isinstance(content, list):
                return []
            chunks: list[StreamChunk] = []
            for item in content:
                if not isinstance(item, dict):
                    continue
                if item.get("type") == "text":
                    text = item.get("text")
                    if isinstance(text, str) and text:
                        chunks.append(self._emit("text", text))
                elif item.get("type") == "tool_use":
                    chunks.append(self._emit("tool_use", f"[tool] {describe_tool_use(item)}\n"))
            return chunks

        if event_type == "stream_event":
            inner = event.get("event")
            delta = inner.get("delta") if isinstance(inner, dict) else None
            if isinstance(delta, dict) and delta.get("type") == "text_delta":
                text = delta.get("text")
                if isinstance(text, str) and text:
                    return [self._emit("text", text)]
            return []

        if event_type == "result":
            result = event.get("result")
            if isinstance(result, str):
                self.result_text = result
            return []

        logger.debug("Ignoring stream event", extra={"event_type": event_type})
        return []

    def _emit(self, content_type: ContentType, text: str) -> StreamChunk:
        # Chunks share the accumulator strings.
        self._display += text
        if content_type == "text":
            self._explanatory += text
        return StreamChunk(
            content_type=content_type,
            text=text,
            display_text=self._display,
            explanatory_text=self._explanatory,
        )
