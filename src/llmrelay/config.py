from __future__ import annotations
import os

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

"""
from dataclasses import dataclass

from .errors import LLMConfigurationError

DEFAULT_API_BASE_URL = "https://integrate.api.nvidia.com/v1"
DEFAULT_MODEL = "nvidia/llama-3.1-nemotron-70b-instruct"


@dataclass(frozen=True, slots=True)
class LLMConfig:
    # Models
    model: str = DEFAULT_MODEL
    completion_model: str | None = None

    # Endpoint
    api_base_url: str | None = DEFAULT_API_BASE_URL
    api_key: str | None = None
    timeout_s: float | None = None

    # Reliability
    max_retries: int = 3
    base_delay_ms: float = 1000.0
    max_delay_ms: float = 30000.0

    # Name prefixes some OpenAI-compatible gateways prepend to tool names
    gateway_tool_prefixes: tuple[str, ...] = ("proxy_",)

    @property
    def effective_completion_model(self) -> str:
        return self.completion_model or self.model

    def validate(self) -> "LLMConfig":
        if self.max_retries < 0:
            raise LLMConfigurationError("max_retries must be >= 0")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise LLMConfigurationError("retry delays must be >= 0")
        if not self.model.strip():
            raise LLMConfigurationError("model must be non-empty")
        return self

    @staticmethod
    def from_env() -> "LLMConfig":
        timeout = os.getenv("LLMRELAY_TIMEOUT_S")
        prefixes = os.getenv("LLMRELAY_GATEWAY_TOOL_PREFIXES", "proxy_")
        return LLMConfig(
            model=os.getenv("LLMRELAY_MODEL", DEFAULT_MODEL),
            completion_model=os.getenv("LLMRELAY_COMPLETION_MODEL"),
            api_base_url=os.getenv("LLMRELAY_API_BASE_URL", DEFAULT_API_BASE_URL),
            api_key=os.getenv("LLMRELAY_API_KEY"),
            timeout_s=float(timeout) if timeout else None,
            max_retries=int(os.getenv("LLMRELAY_MAX_RETRIES", "3")),
            base_delay_ms=float(os.getenv("LLMRELAY_BASE_DELAY_MS", "1000")),
            max_delay_ms=float(os.getenv("LLMRELAY_MAX_DELAY_MS", "30000")),
            gateway_tool_prefixes=tuple(
                p.strip() for p in prefixes.split(",") if p.strip()
            ),
        ).validate()
