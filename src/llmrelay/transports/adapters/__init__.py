"""Provider transport implementations."""

from .litellm import LiteLLMTransport
from .openai import OpenAITransport

__all__ = [
    "OpenAITransport",
    "LiteLLMTransport",
]
