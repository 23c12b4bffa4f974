from __future__ import annotations

"""
Shared transport-side normalization helpers used across provider adapters.
"""

from dataclasses import asdict, is_dataclass
from typing import Any

from ...types import RawToolCall, Usage
from ...utils import safe_json_loads


def to_plain_dict(value: Any) -> dict[str, Any]:
    """Best-effort conversion of SDK/provider objects into plain dictionaries."""
    if isinstance(value, dict):
        return value

    if hasattr(value, "model_dump"):
        try:
            dumped = value.model_dump()
            if isinstance(dumped, dict):
                return dumped
        except Exception:
            pass

    if hasattr(value, "to_dict"):
        try:
            dumped = value.to_dict()
            if isinstance(dumped, dict):
                return dumped
        except Exception:
            pass

    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)

    if hasattr(value, "__dict__"):
        return dict(value.__dict__)

    return {}


def first_choice(raw_dict: dict[str, Any]) -> dict[str, Any]:
    """Return the first `choices[]` entry of a chat-completions payload."""
    choices = raw_dict.get("choices")
    if not isinstance(choices, list) or not choices:
        return {}
    return to_plain_dict(choices[0])


def extract_text_from_content(content: Any) -> str:
    """Extract plain text from common OpenAI/LiteLLM content shapes."""
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        out: list[str] = []
        for item in content:
            if isinstance(item, str):
                out.append(item)
                continue

            if not isinstance(item, dict):
                continue

            text = item.get("text")
            if isinstance(text, str):
                out.append(text)
        return "".join(out)

    if isinstance(content, dict):
        text = content.get("text")
        if isinstance(text, str):
            return text

    return ""


def extract_usage(raw_dict: dict[str, Any]) -> Usage:
    """Normalize usage token counters from provider payloads."""
    usage = raw_dict.get("usage")
    if not isinstance(usage, dict):
        usage = to_plain_dict(usage) if usage is not None else {}
    if not usage:
        return Usage()

    input_tokens = usage.get("prompt_tokens")
    if input_tokens is None:
        input_tokens = usage.get("input_tokens")

    output_tokens = usage.get("completion_tokens")
    if output_tokens is None:
        output_tokens = usage.get("output_tokens")

    total_tokens = usage.get("total_tokens")
    return Usage(
        input_tokens=input_tokens if isinstance(input_tokens, int) else None,
        output_tokens=output_tokens if isinstance(output_tokens, int) else None,
        total_tokens=total_tokens if isinstance(total_tokens, int) else None,
    )


def extract_tool_calls(raw_tool_calls: Any) -> list[RawToolCall]:
    """Extract native tool calls (still under sanitized names) from a chat message."""
    if not isinstance(raw_tool_calls, list):
        return []

    out: list[RawToolCall] = []
    for item in raw_tool_calls:
        tc = to_plain_dict(item)
        function = tc.get("function")
        if not isinstance(function, dict):
            function = to_plain_dict(function) if function is not None else {}

        name = function.get("name")
        if not isinstance(name, str) or not name:
            continue

        args_obj: dict[str, Any] = {}
        raw_args = function.get("arguments")
        if isinstance(raw_args, dict):
            args_obj = raw_args
        elif isinstance(raw_args, str):
            parsed = safe_json_loads(raw_args)
            if isinstance(parsed, dict):
                args_obj = parsed

        call_id = tc.get("id") if isinstance(tc.get("id"), str) else None
        out.append(RawToolCall(name=name, arguments=args_obj, id=call_id))

    return out


def extract_text_delta(chunk: Any) -> str:
    """Text fragment carried by one streamed chat-completions chunk."""
    delta = first_choice(to_plain_dict(chunk)).get("delta")
    if delta is None:
        return ""
    content = to_plain_dict(delta).get("content")
    return content if isinstance(content, str) else ""
