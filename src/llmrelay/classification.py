from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Error classification for the retry executor. `classify` is the only place
that inspects ad hoc attributes and messages of foreign exceptions.
"""

import asyncio
import socket

from .errors import ErrorKind, LLMError

_EMPTY_RESPONSE_PHRASES = (
    "empty response",
    "empty content",
    "no text",
    "no content",
)

_RATE_LIMIT_PHRASES = (
    "rate limit",
    "429",
)

_TRANSIENT_PHRASES = (
    "500",
    "502",
    "503",
    "504",
    "timeout",
    "timed out",
    "network",
    "connection",
)

_TRANSIENT_TYPES = (
    asyncio.TimeoutError,
    TimeoutError,
    socket.timeout,
    ConnectionError,
)


def error_message(e: BaseException) -> str:
    try:
        return str(e) or ""
    except Exception:
        return repr(e)


def status_code_of(e: BaseException) -> int | None:
    """Read an HTTP status from common SDK error shapes."""
    for attr in ("status_code", "status"):
        val = getattr(e, attr, None)
        if isinstance(val, int) and not isinstance(val, bool):
            return val
        if isinstance(val, str) and val.isdigit():
            return int(val)

    resp = getattr(e, "response", None)
    if resp is not None:
        sc = getattr(resp, "status_code", None) or getattr(resp, "status", None)
        if isinstance(sc, int) and not isinstance(sc, bool):
            return sc
        if isinstance(sc, str) and sc.isdigit():
            return int(sc)

    return None


def is_cancellation(e: BaseException) -> bool:
    if isinstance(e, asyncio.CancelledError):
        return True
    if isinstance(e, LLMError) and e.kind is ErrorKind.CANCELLED:
        return True
    return type(e).__name__ == "AbortError" or "abort" in error_message(e).lower()


def is_empty_response(e: BaseException) -> bool:
    if isinstance(e, LLMError) and e.kind is ErrorKind.EMPTY_RESPONSE:
        return True
    m = error_message(e).lower()
    return any(phrase in m for phrase in _EMPTY_RESPONSE_PHRASES)


def is_rate_limited(e: BaseException) -> bool:
    if isinstance(e, LLMError) and e.kind is ErrorKind.RATE_LIMITED:
        return True
    status = status_code_of(e)
    if status is not None:
        return status == 429
    m = error_message(e).lower()
    return any(phrase in m for phrase in _RATE_LIMIT_PHRASES)


def is_tool_calling_unsupported(e: BaseException) -> bool:
    """
    Provider rejected the tool catalog. Only meaningful when tools were sent.

    NVIDIA endpoints answer 404 with "Function ... Not found" for models
    without tool support.
    """
    m = error_message(e).lower()
    if status_code_of(e) == 404 and ("function" in m or "not found" in m):
        return True
    if "function" in m and "not found" in m:
        return True
    return "does not support" in m and ("tool" in m or "function" in m)


def classify(e: BaseException) -> ErrorKind:
    """
    Map one failed attempt to an `ErrorKind`, in priority order:

      1. cancellation markers
      2. tool-calling-unsupported
      3. empty-response messages
      4. structured fields (`is_retryable`, then HTTP status)
      5. message/exception-type heuristics
    """
    if is_cancellation(e):
        return ErrorKind.CANCELLED

    if isinstance(e, LLMError) and e.kind is ErrorKind.TOOL_CALLING_UNSUPPORTED:
        return ErrorKind.TOOL_CALLING_UNSUPPORTED

    if is_empty_response(e):
        return ErrorKind.EMPTY_RESPONSE

    if isinstance(e, LLMError) and e.kind is not None:
        return e.kind

    explicit = getattr(e, "is_retryable", None)
    if isinstance(explicit, bool):
        if not explicit:
            return ErrorKind.PERMANENT
        return ErrorKind.RATE_LIMITED if is_rate_limited(e) else ErrorKind.TRANSIENT

    status = status_code_of(e)
    if status is not None:
        if status == 429:
            return ErrorKind.RATE_LIMITED
        if 500 <= status < 600 or status in (408, 504):
            return ErrorKind.TRANSIENT
        if 400 <= status < 500:
            return ErrorKind.PERMANENT

    m = error_message(e).lower()
    if any(phrase in m for phrase in _RATE_LIMIT_PHRASES):
        return ErrorKind.RATE_LIMITED
    if isinstance(e, _TRANSIENT_TYPES):
        return ErrorKind.TRANSIENT
    if any(phrase in m for phrase in _TRANSIENT_PHRASES):
        return ErrorKind.TRANSIENT

    return ErrorKind.PERMANENT
