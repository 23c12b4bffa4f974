from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Cancellation primitives: per-call handles, the stop context queried before
each attempt, and the coordinator mapping session ids to live handles.
"""

import asyncio
import inspect
import logging
import uuid
from contextlib import contextmanager
from typing import Awaitable, Iterator, TypeVar

from .errors import LLMCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationHandle:
    """
    Cancellation token for one in-flight call.

    `guard` runs an awaitable as a task and cancels that task as soon as the
    handle fires, so the transport request is aborted rather than ignored.
    """

    def __init__(self) -> None:
        self.id = uuid.uuid4().hex
        self.reason: str | None = None
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Request aborted") -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise LLMCancelledError(self.reason or "Request aborted")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        if self.cancelled:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise LLMCancelledError(self.reason or "Request aborted")

    async def sleep(self, delay_s: float) -> None:
        """Sleep for `delay_s`, raising `LLMCancelledError` if cancelled meanwhile."""
        self.raise_if_cancelled()
        if delay_s <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay_s)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()

    def __repr__(self) -> str:
        return f"CancellationHandle(id={self.id!r}, cancelled={self.cancelled})"


class StopContext:
    """
    Stop flags consulted before every attempt and every backoff sleep.

    Holds the process-wide emergency stop and the set of stopped sessions.
    """

    def __init__(self) -> None:
        self._emergency_stop = False
        self._stopped_sessions: set[str] = set()

    def is_globally_stopped(self) -> bool:
        return self._emergency_stop

    def is_session_stopped(self, session_id: str | None) -> bool:
        return session_id is not None and session_id in self._stopped_sessions

    def should_stop(self, session_id: str | None) -> bool:
        return self.is_globally_stopped() or self.is_session_stopped(session_id)

    def set_emergency_stop(self, value: bool = True) -> None:
        self._emergency_stop = value

    def mark_session_stopped(self, session_id: str) -> None:
        self._stopped_sessions.add(session_id)

    def clear_session(self, session_id: str) -> None:
        self._stopped_sessions.discard(session_id)


class AbortCoordinator:
    """
    Owns the live cancellation handles, keyed by session id.

    Handles registered without a session id go to a session-less pool that
    only the emergency stop reaches.
    """

    def __init__(self, stop_context: StopContext | None = None) -> None:
        self.stop_context = stop_context or StopContext()
        self._sessions: dict[str, set[CancellationHandle]] = {}
        self._global: set[CancellationHandle] = set()

    def register(self, handle: CancellationHandle, session_id: str | None = None) -> None:
        if session_id is None:
            self._global.add(handle)
            return
        self._sessions.setdefault(session_id, set()).add(handle)

    def unregister(self, handle: CancellationHandle, session_id: str | None = None) -> None:
        if session_id is None:
            self._global.discard(handle)
            return
        handles = self._sessions.get(session_id)
        if handles is None:
            return
        handles.discard(handle)
        if not handles:
            del self._sessions[session_id]

    @contextmanager
    def registration(self, session_id: str | None = None) -> Iterator[CancellationHandle]:
        """
        Register a fresh handle for the duration of the block.

        The handle is cancelled up front when a stop is already in effect.
        """
        handle = CancellationHandle()
        self.register(handle, session_id)
        try:
            if self.stop_context.is_globally_stopped():
                handle.cancel("Aborted by emergency stop")
            elif self.stop_context.is_session_stopped(session_id):
                handle.cancel("Session stopped by kill switch")
            yield handle
        finally:
            self.unregister(handle, session_id)

    def handles(self, session_id: str | None = None) -> list[CancellationHandle]:
        if session_id is None:
            return list(self._global)
        return list(self._sessions.get(session_id, ()))

    def has_registrations(self) -> bool:
        return bool(self._global) or bool(self._sessions)

    def stop_session(self, session_id: str, reason: str = "Session stopped by kill switch") -> int:
        """Mark the session stopped and cancel its in-flight handles."""
        self.stop_context.mark_session_stopped(session_id)
        handles = list(self._sessions.get(session_id, ()))
        for handle in handles:
            handle.cancel(reason)
        logger.info("Stopped session %s (%d in-flight call(s) cancelled)", session_id, len(handles))
        return len(handles)

    def resume_session(self, session_id: str) -> None:
        self.stop_context.clear_session(session_id)

    def emergency_stop(self, reason: str = "Aborted by emergency stop") -> int:
        """Set the global stop flag and cancel every registered handle."""
        self.stop_context.set_emergency_stop(True)
        handles = list(self._global)
        for session_handles in self._sessions.values():
            handles.extend(session_handles)
        for handle in handles:
            handle.cancel(reason)
        logger.warning("Emergency stop: %d in-flight call(s) cancelled", len(handles))
        return len(handles)

    def reset_emergency_stop(self) -> None:
        self.stop_context.set_emergency_stop(False)
