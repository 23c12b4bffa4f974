from __future__ import annotations

"""
LiteLLM-backed transport built on top of the shared chat-completions base.
"""

from typing import Any

from ..base.chat import ChatTransport
from ...errors import LLMConfigurationError


class LiteLLMTransport(ChatTransport):
    """Concrete transport using `litellm.acompletion`."""

    @property
    def provider_id(self) -> str:
        return "litellm"

    async def _completion_create(self, payload: dict[str, Any]) -> Any:
        """Dispatch chat/stream payload to `litellm.acompletion`."""
        try:
            from litellm import acompletion
        except Exception as e:  # pragma: no cover - environment dependent
            raise LLMConfigurationError(
                "litellm is not installed. Install the dependency to use LiteLLMTransport."
            ) from e

        return await acompletion(**self._with_transport_defaults(payload))

    def _with_transport_defaults(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Apply config-level transport defaults without overriding explicit extras."""
        out = dict(payload)
        # Retries are owned by RetryExecutor.
        out.setdefault("num_retries", 0)
        if self.config.api_base_url:
            out.setdefault("api_base", self.config.api_base_url)
        if self.config.api_key:
            out.setdefault("api_key", self.config.api_key)
        return out
