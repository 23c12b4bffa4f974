from __future__ import annotations

"""
Factory utilities for constructing concrete provider transports.
"""

import os
from typing import TYPE_CHECKING, Callable

from .config import LLMConfig
from .errors import LLMConfigurationError

if TYPE_CHECKING:
    from .transports.base.chat import ChatTransport


TransportFactory = Callable[[LLMConfig], "ChatTransport"]
_BUILTIN_TRANSPORTS = {"openai", "litellm"}
_REGISTRY: dict[str, TransportFactory] = {}


def register_transport(
    name: str,
    factory: TransportFactory,
    *,
    overwrite: bool = False,
) -> None:
    """Register a custom transport factory by name."""
    key = name.strip().lower()
    if not key:
        raise ValueError("Transport name must be non-empty")

    if (not overwrite) and key in _REGISTRY:
        raise ValueError(f"Transport already registered: {key}")

    _REGISTRY[key] = factory


def available_transports() -> list[str]:
    """Return built-in and runtime-registered transport names."""
    return sorted(set(_BUILTIN_TRANSPORTS) | set(_REGISTRY.keys()))


def create_transport(
    name: str,
    *,
    config: LLMConfig | None = None,
) -> "ChatTransport":
    """Create a transport instance for a specific transport key."""
    key = name.strip().lower()
    if not key:
        raise LLMConfigurationError("Transport name must be non-empty")

    cfg = config or LLMConfig.from_env()
    factory = _REGISTRY.get(key) or _builtin_factory(key)
    return factory(cfg)


def create_transport_from_env(*, config: LLMConfig | None = None) -> "ChatTransport":
    """Create a transport using `LLMRELAY_TRANSPORT` (defaults to `openai`)."""
    return create_transport(os.getenv("LLMRELAY_TRANSPORT", "openai"), config=config)


def _builtin_factory(name: str) -> TransportFactory:
    """Resolve built-in transport factories lazily to avoid hard imports."""
    if name == "openai":
        from .transports.adapters.openai import OpenAITransport

        return lambda cfg: OpenAITransport(config=cfg)

    if name == "litellm":
        from .transports.adapters.litellm import LiteLLMTransport

        return lambda cfg: LiteLLMTransport(config=cfg)

    raise LLMConfigurationError(
        f"Unknown transport '{name}'. Available: {', '.join(available_transports())}"
    )
