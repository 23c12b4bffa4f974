from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the error taxonomy and custom exceptions for llmrelay.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of one failed attempt, produced by `classify`."""

    CANCELLED = "cancelled"
    TOOL_CALLING_UNSUPPORTED = "tool_calling_unsupported"
    EMPTY_RESPONSE = "empty_response"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    PERMANENT = "permanent"

    @property
    def retryable(self) -> bool:
        return self in (
            ErrorKind.EMPTY_RESPONSE,
            ErrorKind.RATE_LIMITED,
            ErrorKind.TRANSIENT,
        )

    @property
    def uses_backoff(self) -> bool:
        """Empty responses retry immediately; other retryable kinds wait."""
        return self in (ErrorKind.RATE_LIMITED, ErrorKind.TRANSIENT)

    @property
    def bounded(self) -> bool:
        """Rate limits are the only retryable kind without an attempt ceiling."""
        return self is not ErrorKind.RATE_LIMITED


class LLMError(Exception):
    """Base exception for all llmrelay errors."""

    kind: ErrorKind | None = None


class LLMConfigurationError(LLMError):
    pass


class LLMInvalidResponseError(LLMError):
    """
    The LLM returned a response that we couldn't parse or validate.
    """

    pass


class LLMCancelledError(LLMError):
    """Raised when a call is aborted by an emergency stop or a session stop."""

    kind = ErrorKind.CANCELLED


class LLMToolCallingUnsupportedError(LLMError):
    """
    The selected model/endpoint rejects tool definitions.

    Carries the model identifier so callers can suggest switching models.
    """

    kind = ErrorKind.TOOL_CALLING_UNSUPPORTED

    def __init__(self, model: str, message: str | None = None) -> None:
        self.model = model
        super().__init__(
            message
            or (
                f'Model "{model}" does not support tool/function calling. '
                "Please switch to a model that supports tool calling."
            )
        )


class LLMEmptyResponseError(LLMInvalidResponseError):
    """The provider returned neither text nor tool calls."""

    kind = ErrorKind.EMPTY_RESPONSE


class LLMRetryableError(LLMError):
    """
    Transient failures: server errors, timeouts, network issues, etc.
    These errors may be retried with backoff.
    """

    kind = ErrorKind.TRANSIENT


class LLMRateLimitError(LLMRetryableError):
    """Rate-limited failure. Retried with backoff and no attempt ceiling."""

    kind = ErrorKind.RATE_LIMITED


class LLMPermanentError(LLMError):
    """Non-retryable provider failure (4xx or unrecognised error)."""

    kind = ErrorKind.PERMANENT


class LLMRetriesExhaustedError(LLMError):
    """Raised when a retryable failure persists past `max_retries`."""

    kind = ErrorKind.PERMANENT

    def __init__(self, message: str, *, attempts: int, last_kind: ErrorKind) -> None:
        self.attempts = attempts
        self.last_kind = last_kind
        super().__init__(message)


_ERROR_TYPES: dict[ErrorKind, type[LLMError]] = {
    ErrorKind.CANCELLED: LLMCancelledError,
    ErrorKind.EMPTY_RESPONSE: LLMEmptyResponseError,
    ErrorKind.RATE_LIMITED: LLMRateLimitError,
    ErrorKind.TRANSIENT: LLMRetryableError,
    ErrorKind.PERMANENT: LLMPermanentError,
}


def error_for_kind(kind: ErrorKind, message: str) -> LLMError:
    """Build the typed error for a classified failure."""
    if kind is ErrorKind.TOOL_CALLING_UNSUPPORTED:
        return LLMToolCallingUnsupportedError("unknown", message)
    return _ERROR_TYPES[kind](message)
