"""Provider transport package.

Structure:
- `adapters/`: provider-specific transport implementations
- `base/`: reusable transport base classes
- `shared/`: reusable normalization/mapping utilities
"""

from .adapters import LiteLLMTransport, OpenAITransport
from .base import ChatTransport

__all__ = [
    "ChatTransport",
    "OpenAITransport",
    "LiteLLMTransport",
]
