from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Normalization of raw provider responses into `CallResult`, whichever tool
calling dialect the model used: native tool calls, tool calls encoded as a
JSON object in the text, or inline marker tokens.
"""

import re
from typing import Any, Generator, Iterator

from .errors import LLMEmptyResponseError
from .tool_names import ToolNameCodec, ToolNameMapping
from .types import CallResult, ProviderResponse, ToolCall
from .utils import safe_json_loads

_TOOL_CALL_MARKERS = re.compile(
    r"<\|tool_calls_section_begin\|>|<\|tool_call_begin\|>",
    re.IGNORECASE,
)
_MARKER_TOKEN = re.compile(r"<\|[^|]*\|>")


def iter_json_candidates(text: str) -> Iterator[str]:
    """
    Lazily yield balanced `{...}` spans of `text`, left to right.

    A span opens at a `{` seen at depth 0 and closes at the `}` that brings
    depth back to 0. Braces inside double-quoted strings of an open span are
    ignored; stray `}` at depth 0 are skipped. If a span is still open at the
    end of the text, scanning resumes right after its opening brace, counting
    braces only.
    """
    unclosed = yield from _scan_spans(text, 0, track_strings=True)
    if unclosed is not None:
        yield from _scan_spans(text, unclosed + 1, track_strings=False)


def _scan_spans(
    text: str,
    pos: int,
    *,
    track_strings: bool,
) -> Generator[str, None, int | None]:
    """Yield closed spans from `pos`; return the start of a span left open, if any."""
    depth = 0
    start = -1
    in_string = False
    escape = False

    for i in range(pos, len(text)):
        ch = text[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"' and depth > 0 and track_strings:
            in_string = True
            continue

        if ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start : i + 1]

    return start if depth > 0 else None


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Return the first candidate span that decodes to a JSON object."""
    for candidate in iter_json_candidates(text):
        obj = safe_json_loads(candidate)
        if obj is not None:
            return obj
    return None


def strip_marker_tokens(text: str) -> str:
    return _MARKER_TOKEN.sub("", text).strip()


class ResponseParser:
    """Turns one `ProviderResponse` into a `CallResult`; first match wins."""

    def __init__(self, codec: ToolNameCodec | None = None) -> None:
        self.codec = codec or ToolNameCodec()

    def parse(
        self,
        response: ProviderResponse,
        mapping: ToolNameMapping | None = None,
    ) -> CallResult:
        text = (response.text or "").strip()

        if response.tool_calls:
            return CallResult(
                content=text or None,
                tool_calls=[
                    ToolCall(
                        name=self.codec.restore(tc.name, mapping),
                        arguments=tc.arguments,
                        id=tc.id,
                    )
                    for tc in response.tool_calls
                ],
                needs_more_work=True,
            )

        if not text:
            raise LLMEmptyResponseError("LLM returned empty response")

        obj = extract_json_object(text)
        if obj is not None and ("toolCalls" in obj or obj.get("content")):
            return self._from_json_object(obj, mapping)

        cleaned = strip_marker_tokens(text)
        if _TOOL_CALL_MARKERS.search(text):
            return CallResult(content=cleaned, needs_more_work=True)

        return CallResult(content=cleaned or text)

    def _from_json_object(
        self,
        obj: dict[str, Any],
        mapping: ToolNameMapping | None,
    ) -> CallResult:
        tool_calls: list[ToolCall] | None = None
        raw_calls = obj.get("toolCalls")
        if isinstance(raw_calls, list):
            tool_calls = []
            for item in raw_calls:
                if not isinstance(item, dict) or not isinstance(item.get("name"), str):
                    continue
                tool_calls.append(
                    ToolCall(
                        name=self.codec.restore(item["name"], mapping),
                        arguments=item.get("arguments", {}),
                        id=item.get("id") if isinstance(item.get("id"), str) else None,
                    )
                )

        content = obj.get("content")
        if content is not None and not isinstance(content, str):
            content = str(content)

        needs_more_work = obj.get("needsMoreWork")
        if not isinstance(needs_more_work, bool):
            needs_more_work = None
        # Tool calls always continue; plain {"content": ...} replies do not get forced.
        if tool_calls:
            needs_more_work = True

        return CallResult(
            content=content,
            tool_calls=tool_calls,
            needs_more_work=needs_more_work,
        )
