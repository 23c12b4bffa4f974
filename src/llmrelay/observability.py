from __future__ import annotations

"""
Typed observability primitives: lifecycle events for observers and the
diagnostics sink terminal failures are reported to.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Literal, Protocol

from .types import Usage


LLMLifecycleEventType = Literal[
    "request_start",
    "retry",
    "request_success",
    "request_error",
    "cancel",
]


@dataclass(frozen=True, slots=True)
class LLMLifecycleEvent:
    """
    One normalized lifecycle event emitted by the retry executor.

    Observer callbacks are best-effort only; their failures never fail a call.
    """

    event_type: LLMLifecycleEventType
    request_id: str
    call_site: str
    model: str | None = None
    attempt: int | None = None
    latency_ms: float | None = None
    usage: Usage | None = None
    error_kind: str | None = None
    error_class: str | None = None
    error_message: str | None = None


class LLMObserver(Protocol):
    """Observer callback protocol used by the retry executor."""

    def __call__(self, event: LLMLifecycleEvent) -> None | Awaitable[None]:
        ...



class DiagnosticsSink(Protocol):
    """Receives every terminal failure before it is raised to the caller."""

    def log_error(
        self,
        source: str,
        message: str,
        error: BaseException | None = None,
        **details: Any,
    ) -> None:
        ...


class LoggingDiagnosticsSink:
    """Default sink: writes terminal failures to the `llmrelay.diagnostics` logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("llmrelay.diagnostics")

    def log_error(
        self,
        source: str,
        message: str,
        error: BaseException | None = None,
        **details: Any,
    ) -> None:
        self.logger.error(
            "[%s] %s: %s %s",
            source,
            message,
            error,
            details or "",
            exc_info=error if isinstance(error, BaseException) else None,
        )
