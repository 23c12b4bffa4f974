from __future__ import annotations

"""
Request shaping: turns a flat conversation into a provider payload.
"""

from typing import Sequence

from .tool_names import ToolNameMapping
from .types import ChatMessage, ProviderMessage, ProviderRequest, ProviderTool, ToolDefinition


def split_system_messages(
    messages: Sequence[ChatMessage],
) -> tuple[str | None, list[ProviderMessage]]:
    """
    Separate system text from conversation turns.

    System contents are joined with a blank line; every other message keeps
    its relative order. Providers like Anthropic only accept the system
    prompt as a separate field.
    """
    system_parts: list[str] = []
    turns: list[ProviderMessage] = []

    for message in messages:
        if message.role == "system":
            system_parts.append(message.content)
        else:
            turns.append(ProviderMessage(role=message.role, content=message.content))

    return ("\n\n".join(system_parts) if system_parts else None), turns


def build_chat_request(
    messages: Sequence[ChatMessage],
    *,
    model: str,
    tools: Sequence[ToolDefinition] | None = None,
    mapping: ToolNameMapping | None = None,
    timeout_s: float | None = None,
) -> ProviderRequest:
    system, turns = split_system_messages(messages)

    provider_tools: list[ProviderTool] | None = None
    if tools and mapping is not None:
        by_original = {tool.name: tool for tool in tools}
        provider_tools = [
            ProviderTool(
                name=sanitized,
                description=by_original[original].description or f"Tool: {original}",
                parameters=by_original[original].input_schema
                or {"type": "object", "properties": {}},
            )
            for sanitized, original in mapping.names.items()
            if original in by_original
        ]

    return ProviderRequest(
        model=model,
        system=system,
        messages=turns,
        tools=provider_tools,
        timeout_s=timeout_s,
    )


def build_prompt_request(
    prompt: str,
    *,
    model: str,
    timeout_s: float | None = None,
) -> ProviderRequest:
    """Single user turn, no system split and no tool catalog."""
    return ProviderRequest(
        model=model,
        messages=[ProviderMessage(role="user", content=prompt)],
        timeout_s=timeout_s,
    )
