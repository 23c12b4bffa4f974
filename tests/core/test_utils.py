from __future__ import annotations

import asyncio

import pytest
from pydantic import BaseModel

from llmrelay.errors import LLMInvalidResponseError
from llmrelay.structured import parse_and_validate_json
from llmrelay.utils import backoff_delay, run_sync


class Out(BaseModel):
    value: int


@pytest.mark.parametrize("rand_value", [0.0, 0.5, 1.0])
def test_backoff_grows_exponentially_with_jitter(rand_value):
    for attempt, nominal in [(0, 100.0), (1, 200.0), (2, 400.0)]:
        delay = backoff_delay(attempt, 100.0, 10_000.0, rand=lambda: rand_value)
        assert nominal * 0.75 <= delay <= nominal * 1.25


def test_backoff_is_bounded_by_max_delay():
    for attempt in range(20):
        assert 0 < backoff_delay(attempt, 1000.0, 30_000.0, rand=lambda: 1.0) <= 30_000.0


def test_backoff_midpoint_has_no_jitter():
    assert backoff_delay(3, 1000.0, 30_000.0, rand=lambda: 0.5) == 8000.0


def test_run_sync_outside_loop():
    async def _value():
        return 3

    assert run_sync(_value()) == 3


def test_run_sync_inside_running_loop_raises():
    async def _value():
        return 3

    async def _outer():
        run_sync(_value())

    with pytest.raises(RuntimeError, match="running event loop"):
        asyncio.run(_outer())


def test_parse_and_validate_json():
    assert parse_and_validate_json('noise {"value": 4} noise', Out).value == 4

    with pytest.raises(LLMInvalidResponseError):
        parse_and_validate_json("nothing", Out)
    with pytest.raises(LLMInvalidResponseError):
        parse_and_validate_json('{"value": "x"}', Out)
