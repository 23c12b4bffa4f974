from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the provider-agnostic types used by llmrelay.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field


JSONPrimitive: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONSchema: TypeAlias = dict[str, JSONValue]

Role = Literal["system", "user", "assistant"]
ConversationRole = Literal["user", "assistant"]


@dataclass(frozen=True, slots=True)
class ChatMessage:
    role: Role
    content: str


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """
    A tool offered to the model. `name` may carry a namespace separator
    (for example `server:tool`); it is sanitized per invocation.
    """

    name: str
    description: str = ""
    input_schema: JSONSchema = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


@dataclass(frozen=True, slots=True)
class ToolCall:
    """
    Data-only representation of a model-returned tool call, with the
    original (unsanitized) tool name restored.
    """

    name: str
    arguments: Any = field(default_factory=dict)
    id: str | None = None


@dataclass(frozen=True, slots=True)
class CallResult:
    """
    Normalized outcome of one invocation.

    `needs_more_work` is True whenever tool calls are present. It stays None
    for plain text so the caller can apply its own continuation heuristic.
    """

    content: str | None = None
    tool_calls: list[ToolCall] | None = None
    needs_more_work: bool | None = None


@dataclass(frozen=True, slots=True)
class Usage:
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None


@dataclass(frozen=True, slots=True)
class ProviderMessage:
    role: ConversationRole
    content: str


@dataclass(frozen=True, slots=True)
class ProviderTool:
    """Tool definition as sent over the wire, under its sanitized name."""

    name: str
    description: str
    parameters: JSONSchema


@dataclass(frozen=True, slots=True)
class ProviderRequest:
    """
    Provider-shaped payload produced by the request builder.

    Leading system text travels separately from the conversation turns.
    """

    model: str
    system: str | None = None
    messages: list[ProviderMessage] = field(default_factory=list)
    tools: list[ProviderTool] | None = None
    timeout_s: float | None = None


@dataclass(frozen=True, slots=True)
class RawToolCall:
    """A native tool call as reported by the provider (sanitized name)."""

    name: str
    arguments: Any = field(default_factory=dict)
    id: str | None = None


@dataclass(frozen=True, slots=True)
class ProviderResponse:
    text: str = ""
    tool_calls: list[RawToolCall] = field(default_factory=list)
    finish_reason: str | None = None
    usage: Usage = field(default_factory=Usage)
    model: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RetryProgress:
    """
    Retry status pushed to the progress observer.

    `max_attempts` is None for rate-limited retries, which are unbounded.
    """

    is_retrying: bool
    attempt: int
    delay_seconds: int
    reason: str = ""
    started_at: float = 0.0
    max_attempts: int | None = None
    delay_ms: float = 0.0


RetryProgressCallback = Callable[[RetryProgress], None | Awaitable[None]]
StreamChunkCallback = Callable[[str, str], None | Awaitable[None]]


class CompletionVerification(BaseModel):
    """Verdict returned by a completion-verification call."""

    model_config = ConfigDict(populate_by_name=True)

    is_complete: bool = Field(alias="isComplete", strict=True)
    confidence: float | None = None
    missing_items: list[str] | None = Field(default=None, alias="missingItems")
    reason: str | None = None
