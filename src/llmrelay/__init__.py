"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

llmrelay: model invocation with tool-name sanitization, multi-dialect
response parsing, classified retries and session-scoped cancellation.
"""

from .abort import AbortCoordinator, CancellationHandle, StopContext
from .classification import classify
from .config import LLMConfig
from .errors import (
    ErrorKind,
    LLMCancelledError,
    LLMConfigurationError,
    LLMEmptyResponseError,
    LLMError,
    LLMInvalidResponseError,
    LLMPermanentError,
    LLMRateLimitError,
    LLMRetriesExhaustedError,
    LLMRetryableError,
    LLMToolCallingUnsupportedError,
)
from .factory import (
    available_transports,
    create_transport,
    create_transport_from_env,
    register_transport,
)
from .invoker import LLMInvoker
from .observability import (
    DiagnosticsSink,
    LLMLifecycleEvent,
    LLMObserver,
    LoggingDiagnosticsSink,
)
from .request_builder import build_chat_request, build_prompt_request, split_system_messages
from .response_parser import ResponseParser, extract_json_object
from .retry import RetryExecutor
from .tool_names import ToolNameCodec, ToolNameMapping
from .types import (
    CallResult,
    ChatMessage,
    CompletionVerification,
    ProviderRequest,
    ProviderResponse,
    RetryProgress,
    ToolCall,
    ToolDefinition,
    Usage,
)

__all__ = [
    "AbortCoordinator",
    "CancellationHandle",
    "StopContext",
    "classify",
    "LLMConfig",
    "ErrorKind",
    "LLMCancelledError",
    "LLMConfigurationError",
    "LLMEmptyResponseError",
    "LLMError",
    "LLMInvalidResponseError",
    "LLMPermanentError",
    "LLMRateLimitError",
    "LLMRetriesExhaustedError",
    "LLMRetryableError",
    "LLMToolCallingUnsupportedError",
    "available_transports",
    "create_transport",
    "create_transport_from_env",
    "register_transport",
    "LLMInvoker",
    "DiagnosticsSink",
    "LLMLifecycleEvent",
    "LLMObserver",
    "LoggingDiagnosticsSink",
    "build_chat_request",
    "build_prompt_request",
    "split_system_messages",
    "ResponseParser",
    "extract_json_object",
    "RetryExecutor",
    "ToolNameCodec",
    "ToolNameMapping",
    "CallResult",
    "ChatMessage",
    "CompletionVerification",
    "ProviderRequest",
    "ProviderResponse",
    "RetryProgress",
    "ToolCall",
    "ToolDefinition",
    "Usage",
]
