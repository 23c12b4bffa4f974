from __future__ import annotations

"""
OpenAI-backed transport built on top of the shared chat-completions base.

Works against any OpenAI-compatible endpoint (NVIDIA NIM, Groq, local
gateways) through `config.api_base_url`.
"""

from typing import Any

from ..base.chat import ChatTransport
from ...errors import LLMConfigurationError


class OpenAITransport(ChatTransport):
    """Concrete transport using `openai.AsyncOpenAI` chat completions."""

    @property
    def provider_id(self) -> str:
        return "openai"

    async def _completion_create(self, payload: dict[str, Any]) -> Any:
        """Dispatch chat/stream payload to the chat completions API."""
        client = self._build_client()
        return await client.chat.completions.create(**payload)

    def _build_client(self) -> Any:
        """Construct AsyncOpenAI client from shared config."""
        if not self.config.api_key:
            raise LLMConfigurationError("An API key is required for the openai transport")

        try:
            from openai import AsyncOpenAI
        except Exception as e:  # pragma: no cover - environment dependent
            raise LLMConfigurationError(
                "openai package is not installed. Install it with: pip install openai"
            ) from e

        kwargs: dict[str, Any] = {
            "api_key": self.config.api_key,
            # Retries are owned by RetryExecutor.
            "max_retries": 0,
        }
        if self.config.api_base_url:
            kwargs["base_url"] = self.config.api_base_url

        return AsyncOpenAI(**kwargs)
