from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Utility functions for LLM interactions, including JSON decoding and backoff strategies.
"""
import asyncio
import inspect
import json
import random
from typing import Any, Awaitable, Callable, Dict, Optional, cast


def safe_json_loads(s: str) -> Optional[Dict[str, Any]]:
    try:
        obj = json.loads(s)
        return obj if isinstance(obj, dict) else None
    except Exception:
        return None


def backoff_delay(
    attempt: int,
    base_ms: float,
    max_ms: float,
    *,
    rand: Callable[[], float] = random.random,
) -> float:
    """
    Exponential backoff with +/-25% jitter, in milliseconds.

    attempt=0 => base, attempt=1 => 2*base, etc. The exponential value is
    capped at `max_ms` before jitter; the jittered result is kept within
    [0, max_ms].
    """
    capped = min(base_ms * (2 ** attempt), max_ms)
    jitter = capped * 0.25 * (rand() * 2 - 1)
    return min(max(0.0, capped + jitter), max_ms)


async def maybe_await(result: Any) -> None:
    """Await `result` when a callback returned an awaitable."""
    if inspect.isawaitable(result):
        await cast(Awaitable[Any], result)


def run_sync(coro):
    """
    Run an async coroutine from sync context.
    If already inside a running event loop, raise a clear error.
    """
    try:
        # If this succeeds, we're inside a running event loop context.
        asyncio.get_running_loop()
    except RuntimeError:
        # No running loop in this thread => safe to use asyncio.run
        return asyncio.run(coro)

    # Close the never-awaited coroutine before refusing.
    coro.close()
    raise RuntimeError(
        "Cannot use *_sync methods inside a running event loop. Use async methods instead."
    )
