from __future__ import annotations

import asyncio

import pytest

from llmrelay.abort import AbortCoordinator, CancellationHandle
from llmrelay.config import LLMConfig
from llmrelay.errors import (
    ErrorKind,
    LLMCancelledError,
    LLMEmptyResponseError,
    LLMPermanentError,
    LLMRetriesExhaustedError,
)
from llmrelay.retry import RetryExecutor
from llmrelay.types import ProviderResponse, Usage


def run_async(coro):
    return asyncio.run(coro)


class HTTPError(Exception):
    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class RecordingDiagnostics:
    def __init__(self):
        self.records: list[tuple[str, str, dict]] = []

    def log_error(self, source, message, error=None, **details):
        self.records.append((source, message, details))


def _config(**overrides) -> LLMConfig:
    values = {"max_retries": 2, "base_delay_ms": 1.0, "max_delay_ms": 5.0}
    values.update(overrides)
    return LLMConfig(**values)


def _scripted(outcomes: list):
    """Attempt function replaying `outcomes`: exceptions are raised, values returned."""
    calls = {"n": 0}

    async def attempt(handle):
        idx = min(calls["n"], len(outcomes) - 1)
        calls["n"] += 1
        outcome = outcomes[idx]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    return attempt, calls


def test_success_first_attempt_clears_progress():
    progress = []
    attempt, calls = _scripted(["ok"])

    out = run_async(
        RetryExecutor().run(
            attempt,
            config=_config(),
            call_site="invoke",
            on_retry_progress=progress.append,
        )
    )

    assert out == "ok"
    assert calls["n"] == 1
    assert [p.is_retrying for p in progress] == [False]


def test_transient_failures_exhaust_after_max_retries_plus_one_attempts():
    diagnostics = RecordingDiagnostics()
    progress = []
    attempt, calls = _scripted([HTTPError("service unavailable", 503)])

    with pytest.raises(LLMRetriesExhaustedError) as exc_info:
        run_async(
            RetryExecutor(diagnostics=diagnostics).run(
                attempt,
                config=_config(max_retries=2),
                call_site="invoke",
                on_retry_progress=progress.append,
            )
        )

    assert calls["n"] == 3
    assert exc_info.value.attempts == 3
    assert exc_info.value.last_kind is ErrorKind.TRANSIENT
    assert isinstance(exc_info.value.__cause__, HTTPError)
    assert diagnostics.records[-1][1] == "API call failed after all retries"
    assert diagnostics.records[-1][2]["attempts"] == 3

    retrying = [p for p in progress if p.is_retrying]
    assert len(retrying) == 2
    assert all(p.reason == "Request failed" for p in retrying)
    assert all(0 < p.delay_ms <= 5.0 for p in retrying)
    assert all(p.max_attempts == 3 for p in retrying)
    assert progress[-1].is_retrying is False


def test_rate_limit_retries_beyond_max_retries():
    progress = []
    outcomes = [HTTPError("Too Many Requests", 429)] * 5 + ["done"]
    attempt, calls = _scripted(outcomes)

    out = run_async(
        RetryExecutor().run(
            attempt,
            config=_config(max_retries=1),
            call_site="invoke",
            on_retry_progress=progress.append,
        )
    )

    assert out == "done"
    assert calls["n"] == 6
    retrying = [p for p in progress if p.is_retrying]
    assert len(retrying) == 5
    assert all(p.reason == "Rate limit exceeded" for p in retrying)
    assert all(p.max_attempts is None for p in retrying)
    assert progress[-1].is_retrying is False


def test_empty_response_retries_immediately():
    progress = []
    attempt, calls = _scripted([LLMEmptyResponseError("LLM returned empty response"), "text"])

    out = run_async(
        RetryExecutor().run(
            attempt,
            config=_config(base_delay_ms=10_000.0, max_delay_ms=10_000.0),
            call_site="invoke",
            on_retry_progress=progress.append,
        )
    )

    assert out == "text"
    assert calls["n"] == 2
    first = progress[0]
    assert first.is_retrying is True
    assert first.delay_seconds == 0
    assert first.delay_ms == 0
    assert first.reason == "Empty response - retrying immediately"


def test_empty_response_is_bounded():
    attempt, calls = _scripted([LLMEmptyResponseError("LLM returned empty response")])

    with pytest.raises(LLMRetriesExhaustedError) as exc_info:
        run_async(RetryExecutor().run(attempt, config=_config(max_retries=2), call_site="invoke"))

    assert calls["n"] == 3
    assert exc_info.value.last_kind is ErrorKind.EMPTY_RESPONSE


def test_permanent_error_is_not_retried():
    diagnostics = RecordingDiagnostics()
    progress = []
    attempt, calls = _scripted([HTTPError("invalid api key", 401)])

    with pytest.raises(LLMPermanentError):
        run_async(
            RetryExecutor(diagnostics=diagnostics).run(
                attempt,
                config=_config(),
                call_site="complete",
                on_retry_progress=progress.append,
            )
        )

    assert calls["n"] == 1
    assert diagnostics.records == [("complete", "Non-retryable API error", {"kind": "permanent"})]
    assert [p.is_retrying for p in progress] == [False]


def test_emergency_stop_before_first_attempt():
    coordinator = AbortCoordinator()
    coordinator.emergency_stop()
    attempt, calls = _scripted(["never"])

    with pytest.raises(LLMCancelledError, match="emergency stop"):
        run_async(
            RetryExecutor(coordinator=coordinator).run(
                attempt, config=_config(), call_site="invoke"
            )
        )

    assert calls["n"] == 0


def test_emergency_stop_between_attempts_prevents_further_attempts():
    coordinator = AbortCoordinator()
    progress = []
    calls = {"n": 0}

    async def attempt(handle):
        calls["n"] += 1
        coordinator.emergency_stop()
        raise HTTPError("bad gateway", 502)

    with pytest.raises(LLMCancelledError):
        run_async(
            RetryExecutor(coordinator=coordinator).run(
                attempt,
                config=_config(max_retries=5),
                call_site="invoke",
                on_retry_progress=progress.append,
            )
        )

    assert calls["n"] == 1
    assert progress[-1].is_retrying is False
    assert not coordinator.has_registrations()


def test_session_stop_during_backoff_interrupts_sleep():
    coordinator = AbortCoordinator()
    calls = {"n": 0}

    async def attempt(handle):
        calls["n"] += 1
        raise HTTPError("Too Many Requests", 429)

    async def _run():
        executor = RetryExecutor(coordinator=coordinator)
        task = asyncio.create_task(
            executor.run(
                attempt,
                config=_config(base_delay_ms=10_000.0, max_delay_ms=10_000.0),
                call_site="invoke",
                session_id="s1",
            )
        )
        await asyncio.sleep(0.05)
        coordinator.stop_session("s1")
        with pytest.raises(LLMCancelledError):
            await asyncio.wait_for(task, timeout=2.0)

    run_async(_run())

    assert calls["n"] == 1
    assert not coordinator.has_registrations()


def test_in_flight_attempt_is_cancelled_by_session_stop():
    coordinator = AbortCoordinator()

    async def attempt(handle):
        await asyncio.sleep(10)
        return "late"

    async def _run():
        executor = RetryExecutor(coordinator=coordinator)
        task = asyncio.create_task(
            executor.run(attempt, config=_config(), call_site="invoke", session_id="s1")
        )
        await asyncio.sleep(0.02)
        assert len(coordinator.handles("s1")) == 1
        assert coordinator.stop_session("s1") == 1
        with pytest.raises(LLMCancelledError, match="kill switch"):
            await asyncio.wait_for(task, timeout=2.0)

    run_async(_run())
    assert not coordinator.has_registrations()


def test_lifecycle_events_for_retry_then_success():
    events = []
    attempt, _ = _scripted(
        [
            HTTPError("timeout talking to upstream", 504),
            ProviderResponse(text="ok", usage=Usage(input_tokens=1, output_tokens=2)),
        ]
    )

    run_async(
        RetryExecutor(observers=[events.append]).run(
            attempt,
            config=_config(),
            call_site="invoke",
            model="m",
        )
    )

    assert [e.event_type for e in events] == ["request_start", "retry", "request_success"]
    assert events[1].error_kind == "transient"
    assert events[2].usage == Usage(input_tokens=1, output_tokens=2)
    assert len({e.request_id for e in events}) == 1


def test_failing_callbacks_do_not_fail_the_call():
    def bad_progress(_):
        raise RuntimeError("ui gone")

    def bad_observer(_):
        raise RuntimeError("observer gone")

    attempt, _ = _scripted([HTTPError("unavailable", 503), "ok"])

    out = run_async(
        RetryExecutor(observers=[bad_observer]).run(
            attempt,
            config=_config(),
            call_site="invoke",
            on_retry_progress=bad_progress,
        )
    )

    assert out == "ok"


def test_async_progress_callback_is_awaited():
    seen = []

    async def on_progress(progress):
        await asyncio.sleep(0)
        seen.append(progress.is_retrying)

    attempt, _ = _scripted([HTTPError("unavailable", 503), "ok"])
    run_async(
        RetryExecutor().run(
            attempt, config=_config(), call_site="invoke", on_retry_progress=on_progress
        )
    )

    assert seen == [True, False]


def test_emergency_stop_interrupts_backoff_with_caller_owned_handle():
    coordinator = AbortCoordinator()
    calls = {"n": 0}

    async def attempt(handle):
        calls["n"] += 1
        raise HTTPError("Too Many Requests", 429)

    async def _run():
        handle = CancellationHandle()
        executor = RetryExecutor(coordinator=coordinator)
        task = asyncio.create_task(
            executor.run(
                attempt,
                config=_config(base_delay_ms=10_000.0, max_delay_ms=10_000.0),
                call_site="invoke_streaming",
                handle=handle,
            )
        )
        await asyncio.sleep(0.05)
        coordinator.emergency_stop()
        with pytest.raises(LLMCancelledError):
            await asyncio.wait_for(task, timeout=2.0)
        return handle

    handle = run_async(_run())

    assert calls["n"] == 1
    assert not handle.cancelled
    assert not coordinator.has_registrations()


def test_caller_owned_handle_interrupts_backoff():
    async def attempt(handle):
        raise HTTPError("unavailable", 503)

    async def _run():
        handle = CancellationHandle()
        asyncio.get_running_loop().call_later(0.05, handle.cancel, "caller stop")
        await asyncio.wait_for(
            RetryExecutor().run(
                attempt,
                config=_config(base_delay_ms=10_000.0, max_delay_ms=10_000.0),
                call_site="invoke_streaming",
                handle=handle,
            ),
            timeout=2.0,
        )

    with pytest.raises(LLMCancelledError, match="caller stop"):
        run_async(_run())
