from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

The retry executor: supervises sequential attempts of one logical call with
error classification, differentiated backoff and cooperative cancellation.
"""

import logging
import random
import time
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from .abort import AbortCoordinator, CancellationHandle
from .classification import classify, error_message
from .config import LLMConfig
from .errors import (
    ErrorKind,
    LLMCancelledError,
    LLMError,
    LLMRetriesExhaustedError,
    error_for_kind,
)
from .observability import (
    DiagnosticsSink,
    LLMLifecycleEvent,
    LLMObserver,
    LoggingDiagnosticsSink,
)
from .types import ProviderResponse, RetryProgress, RetryProgressCallback, Usage
from .utils import backoff_delay, maybe_await

logger = logging.getLogger(__name__)

ReturnT = TypeVar("ReturnT")
AttemptFn = Callable[[CancellationHandle], Awaitable[ReturnT]]


@dataclass(slots=True)
class RetryState:
    attempt: int = 0
    last_error: BaseException | None = None
    is_rate_limited: bool = False


_CLEARED_PROGRESS = RetryProgress(
    is_retrying=False,
    attempt=0,
    delay_seconds=0,
    reason="",
    started_at=0.0,
)


class RetryExecutor:
    """
    Runs `attempt_fn` until it succeeds or fails terminally.

    Each attempt gets a `CancellationHandle` registered with the coordinator
    (or the caller-owned `handle`, which is never registered here). The
    emergency stop and the session stop are checked before every attempt and
    before every backoff sleep; the sleep itself is interruptible.
    """

    def __init__(
        self,
        *,
        coordinator: AbortCoordinator | None = None,
        diagnostics: DiagnosticsSink | None = None,
        observers: list[LLMObserver] | None = None,
        rand: Callable[[], float] = random.random,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.coordinator = coordinator or AbortCoordinator()
        self.diagnostics = diagnostics or LoggingDiagnosticsSink()
        self._observers = list(observers or [])
        self._rand = rand
        self._clock = clock

    async def run(
        self,
        attempt_fn: AttemptFn[ReturnT],
        *,
        config: LLMConfig,
        call_site: str,
        session_id: str | None = None,
        on_retry_progress: RetryProgressCallback | None = None,
        handle: CancellationHandle | None = None,
        model: str | None = None,
        request_id: str | None = None,
    ) -> ReturnT:
        state = RetryState()
        request_id = request_id or uuid.uuid4().hex
        max_retries = config.max_retries

        await self._emit(
            "request_start",
            request_id=request_id,
            call_site=call_site,
            model=model,
            attempt=1,
        )

        while True:
            await self._ensure_not_stopped(
                session_id,
                state,
                on_retry_progress=on_retry_progress,
                request_id=request_id,
                call_site=call_site,
                model=model,
            )

            started_at = time.monotonic()
            try:
                result = await self._attempt(attempt_fn, session_id, handle)
            except Exception as e:
                kind = classify(e)
                state.last_error = e
                state.is_rate_limited = kind is ErrorKind.RATE_LIMITED
                latency_ms = (time.monotonic() - started_at) * 1000.0

                if not kind.retryable:
                    if kind is ErrorKind.CANCELLED:
                        await self._emit(
                            "cancel",
                            request_id=request_id,
                            call_site=call_site,
                            model=model,
                            attempt=state.attempt + 1,
                            error=e,
                            kind=kind,
                        )
                    else:
                        self.diagnostics.log_error(
                            call_site,
                            "Non-retryable API error",
                            e,
                            kind=kind.value,
                        )
                        await self._emit(
                            "request_error",
                            request_id=request_id,
                            call_site=call_site,
                            model=model,
                            attempt=state.attempt + 1,
                            latency_ms=latency_ms,
                            error=e,
                            kind=kind,
                        )
                    await self._notify(on_retry_progress, _CLEARED_PROGRESS)
                    terminal = self._as_llm_error(e, kind)
                    if terminal is e:
                        raise
                    raise terminal from e

                if kind.bounded and state.attempt >= max_retries:
                    attempts = state.attempt + 1
                    self.diagnostics.log_error(
                        call_site,
                        "API call failed after all retries",
                        e,
                        attempts=attempts,
                        kind=kind.value,
                    )
                    await self._emit(
                        "request_error",
                        request_id=request_id,
                        call_site=call_site,
                        model=model,
                        attempt=attempts,
                        latency_ms=latency_ms,
                        error=e,
                        kind=kind,
                    )
                    await self._notify(on_retry_progress, _CLEARED_PROGRESS)
                    raise LLMRetriesExhaustedError(
                        f"LLM call failed after {attempts} attempts: {error_message(e)}",
                        attempts=attempts,
                        last_kind=kind,
                    ) from e

                await self._emit(
                    "retry",
                    request_id=request_id,
                    call_site=call_site,
                    model=model,
                    attempt=state.attempt + 1,
                    latency_ms=latency_ms,
                    error=e,
                    kind=kind,
                )

                if not kind.uses_backoff:
                    logger.info(
                        "Empty response - retrying immediately (attempt %d/%d)",
                        state.attempt + 1,
                        max_retries + 1,
                    )
                    await self._notify(
                        on_retry_progress,
                        RetryProgress(
                            is_retrying=True,
                            attempt=state.attempt + 1,
                            max_attempts=max_retries + 1,
                            delay_seconds=0,
                            reason="Empty response - retrying immediately",
                            started_at=self._clock(),
                        ),
                    )
                    state.attempt += 1
                    continue

                delay_ms = backoff_delay(
                    state.attempt,
                    config.base_delay_ms,
                    config.max_delay_ms,
                    rand=self._rand,
                )
                logger.info(
                    "%s - waiting %.1fs before retry (attempt %d)",
                    "Rate limit" if state.is_rate_limited else "Error",
                    delay_ms / 1000.0,
                    state.attempt + 1,
                )
                await self._notify(
                    on_retry_progress,
                    RetryProgress(
                        is_retrying=True,
                        attempt=state.attempt + 1,
                        max_attempts=None if state.is_rate_limited else max_retries + 1,
                        delay_seconds=round(delay_ms / 1000.0),
                        reason=(
                            "Rate limit exceeded" if state.is_rate_limited else "Request failed"
                        ),
                        started_at=self._clock(),
                        delay_ms=delay_ms,
                    ),
                )
                await self._backoff(
                    delay_ms,
                    session_id,
                    handle,
                    state,
                    on_retry_progress=on_retry_progress,
                    request_id=request_id,
                    call_site=call_site,
                    model=model,
                )
                state.attempt += 1
                continue

            await self._emit(
                "request_success",
                request_id=request_id,
                call_site=call_site,
                model=model,
                attempt=state.attempt + 1,
                latency_ms=(time.monotonic() - started_at) * 1000.0,
                usage=result.usage if isinstance(result, ProviderResponse) else None,
            )
            await self._notify(on_retry_progress, _CLEARED_PROGRESS)
            return result

    async def _attempt(
        self,
        attempt_fn: AttemptFn[ReturnT],
        session_id: str | None,
        handle: CancellationHandle | None,
    ) -> ReturnT:
        if handle is not None:
            return await handle.guard(attempt_fn(handle))

        with self.coordinator.registration(session_id) as attempt_handle:
            return await attempt_handle.guard(attempt_fn(attempt_handle))

    async def _backoff(
        self,
        delay_ms: float,
        session_id: str | None,
        handle: CancellationHandle | None,
        state: RetryState,
        **context: Any,
    ) -> None:
        await self._ensure_not_stopped(session_id, state, **context)
        try:
            # The sleep handle is always registered so session and emergency
            # stops reach it; a caller-owned handle can interrupt it as well.
            with self.coordinator.registration(session_id) as sleep_handle:
                if handle is None:
                    await sleep_handle.sleep(delay_ms / 1000.0)
                else:
                    await handle.guard(sleep_handle.sleep(delay_ms / 1000.0))
        except LLMCancelledError:
            await self._notify(context.get("on_retry_progress"), _CLEARED_PROGRESS)
            raise

    async def _ensure_not_stopped(
        self,
        session_id: str | None,
        state: RetryState,
        *,
        on_retry_progress: RetryProgressCallback | None,
        request_id: str,
        call_site: str,
        model: str | None,
    ) -> None:
        stop = self.coordinator.stop_context
        if stop.is_globally_stopped():
            reason = "Aborted by emergency stop"
        elif stop.is_session_stopped(session_id):
            reason = "Session stopped by kill switch"
        else:
            return

        await self._emit(
            "cancel",
            request_id=request_id,
            call_site=call_site,
            model=model,
            attempt=state.attempt + 1,
        )
        await self._notify(on_retry_progress, _CLEARED_PROGRESS)
        raise LLMCancelledError(reason) from state.last_error

    def _as_llm_error(self, e: Exception, kind: ErrorKind) -> LLMError:
        if isinstance(e, LLMError) and e.kind is kind:
            return e
        return error_for_kind(kind, error_message(e))

    async def _notify(
        self,
        callback: RetryProgressCallback | None,
        progress: RetryProgress,
    ) -> None:
        if callback is None:
            return
        try:
            await maybe_await(callback(progress))
        except Exception:
            logger.warning("Retry progress callback failed", exc_info=True)

    async def _emit(
        self,
        event_type: str,
        *,
        request_id: str,
        call_site: str,
        model: str | None,
        attempt: int | None = None,
        latency_ms: float | None = None,
        usage: Usage | None = None,
        error: BaseException | None = None,
        kind: ErrorKind | None = None,
    ) -> None:
        """Emit one lifecycle event to observers; observer failures are logged only."""
        if not self._observers:
            return

        event = LLMLifecycleEvent(
            event_type=event_type,  # type: ignore[arg-type]
            request_id=request_id,
            call_site=call_site,
            model=model,
            attempt=attempt,
            latency_ms=latency_ms,
            usage=usage,
            error_kind=kind.value if kind is not None else None,
            error_class=type(error).__name__ if error is not None else None,
            error_message=str(error) if error is not None else None,
        )

        for observer in self._observers:
            try:
                await maybe_await(observer(event))
            except Exception:
                logger.debug("Lifecycle observer failed", exc_info=True)
