from __future__ import annotations

import asyncio
import sys
import types

import pytest

from llmrelay.config import LLMConfig
from llmrelay.transports.adapters.litellm import LiteLLMTransport
from llmrelay.types import ProviderMessage, ProviderRequest


def run_async(coro):
    return asyncio.run(coro)


class _Message:
    def __init__(self, content):
        self.content = content
        self.tool_calls = None


class _Choice:
    def __init__(self, content):
        self.index = 0
        self.message = _Message(content)
        self.finish_reason = "stop"


class _ModelResponse:
    """Attribute-style response like litellm's `ModelResponse`."""

    def __init__(self, model, content):
        self.model = model
        self.choices = [_Choice(content)]
        self.usage = {"prompt_tokens": 2, "completion_tokens": 1, "total_tokens": 3}


@pytest.fixture
def fake_litellm(monkeypatch):
    module = types.ModuleType("litellm")
    calls: list[dict] = []

    async def acompletion(**kwargs):
        calls.append(kwargs)
        if kwargs.get("stream"):

            async def _iter():
                for part in ("lite", "llm"):
                    yield {"choices": [{"index": 0, "delta": {"content": part}}]}

            return _iter()
        return _ModelResponse(kwargs["model"], "hi from litellm")

    module.acompletion = acompletion
    monkeypatch.setitem(sys.modules, "litellm", module)
    return calls


def _request() -> ProviderRequest:
    return ProviderRequest(
        model="groq/llama-3.1-8b-instant",
        messages=[ProviderMessage(role="user", content="hello")],
    )


def test_generate_applies_transport_defaults(fake_litellm):
    transport = LiteLLMTransport(
        config=LLMConfig(api_key="key-1", api_base_url="https://proxy.test/v1")
    )

    out = run_async(transport.generate(_request()))

    assert out.text == "hi from litellm"
    assert out.model == "groq/llama-3.1-8b-instant"
    assert out.usage.total_tokens == 3

    payload = fake_litellm[0]
    assert payload["num_retries"] == 0
    assert payload["api_key"] == "key-1"
    assert payload["api_base"] == "https://proxy.test/v1"
    assert payload["stream"] is False


def test_generate_without_endpoint_settings(fake_litellm):
    transport = LiteLLMTransport(config=LLMConfig(api_key=None, api_base_url=None))

    run_async(transport.generate(_request()))

    payload = fake_litellm[0]
    assert "api_key" not in payload
    assert "api_base" not in payload


def test_open_stream(fake_litellm):
    transport = LiteLLMTransport(config=LLMConfig())

    async def _run():
        stream = await transport.open_stream(_request())
        return [fragment async for fragment in stream]

    assert run_async(_run()) == ["lite", "llm"]
