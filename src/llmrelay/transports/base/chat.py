from __future__ import annotations

"""
Shared base transport for providers exposing OpenAI-style chat completions.

This class centralizes:
  - `ProviderRequest` -> chat-completions payload mapping
  - response/tool-call extraction
  - stream chunk normalization into text fragments

Concrete transports only implement the provider call itself.
"""

import copy
import inspect
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator

from ..shared.normalization import (
    extract_text_delta,
    extract_text_from_content,
    extract_tool_calls,
    extract_usage,
    first_choice,
    to_plain_dict,
)
from ...config import LLMConfig
from ...types import ProviderRequest, ProviderResponse


class ChatTransport(ABC):
    """Provider-agnostic base for chat-completions compatible transports."""

    def __init__(self, *, config: LLMConfig | None = None) -> None:
        self.config = config or LLMConfig.from_env()

    def with_config(self, config: LLMConfig) -> "ChatTransport":
        """Return a copy of this transport bound to another endpoint config."""
        clone = copy.copy(self)
        clone.config = config
        return clone

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Stable provider id (e.g. 'openai', 'litellm')."""

    async def generate(self, request: ProviderRequest) -> ProviderResponse:
        """Execute one non-streaming call and normalize the result."""
        payload = self._build_payload(request, stream=False)
        raw = await self._completion_create(payload)
        return self._normalize_response(raw)

    async def open_stream(self, request: ProviderRequest) -> AsyncIterator[str]:
        """
        Open a streaming call and return an iterator of text fragments.

        Awaiting this covers the connection phase only; fragments arrive as
        the iterator is consumed. Closing the iterator closes the provider
        stream.
        """
        payload = self._build_payload(request, stream=True)
        raw_stream = await self._completion_create(payload)

        async def _iter() -> AsyncIterator[str]:
            try:
                async for chunk in raw_stream:
                    delta = extract_text_delta(chunk)
                    if delta:
                        yield delta
            finally:
                await self._close_stream(raw_stream)

        return _iter()

    def _build_payload(self, request: ProviderRequest, *, stream: bool) -> dict[str, Any]:
        """Map a `ProviderRequest` into a chat-completions payload."""
        messages: list[dict[str, Any]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.extend({"role": m.role, "content": m.content} for m in request.messages)

        payload: dict[str, Any] = {
            "model": request.model,
            "messages": messages,
            "stream": stream,
        }

        if request.tools:
            payload["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.parameters,
                    },
                }
                for tool in request.tools
            ]
            payload["tool_choice"] = "auto"

        timeout = request.timeout_s if request.timeout_s is not None else self.config.timeout_s
        if timeout is not None:
            payload["timeout"] = timeout

        return payload

    def _normalize_response(self, raw: Any) -> ProviderResponse:
        """Normalize a raw chat-completions payload into `ProviderResponse`."""
        raw_dict = to_plain_dict(raw)
        choice = first_choice(raw_dict)
        message = to_plain_dict(choice.get("message"))

        finish_reason = choice.get("finish_reason")
        model = raw_dict.get("model")

        return ProviderResponse(
            text=extract_text_from_content(message.get("content")),
            tool_calls=extract_tool_calls(message.get("tool_calls")),
            finish_reason=finish_reason if isinstance(finish_reason, str) else None,
            usage=extract_usage(raw_dict),
            model=model if isinstance(model, str) else None,
            raw=raw_dict,
        )

    async def _close_stream(self, raw_stream: Any) -> None:
        close = getattr(raw_stream, "aclose", None) or getattr(raw_stream, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result

    @abstractmethod
    async def _completion_create(self, payload: dict[str, Any]) -> Any:
        """Provider transport hook for chat-completions calls."""
