from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.
"""

import logging
import random
from typing import AsyncIterator, Callable, Sequence

from .abort import AbortCoordinator, CancellationHandle
from .classification import is_tool_calling_unsupported
from .config import LLMConfig
from .errors import (
    LLMCancelledError,
    LLMError,
    LLMInvalidResponseError,
    LLMToolCallingUnsupportedError,
)
from .factory import create_transport_from_env
from .observability import DiagnosticsSink, LLMObserver
from .request_builder import build_chat_request, build_prompt_request
from .response_parser import ResponseParser
from .retry import RetryExecutor
from .structured import parse_and_validate_json
from .tool_names import ToolNameCodec
from .transports.base.chat import ChatTransport
from .types import (
    CallResult,
    ChatMessage,
    CompletionVerification,
    ProviderRequest,
    ProviderResponse,
    RetryProgressCallback,
    StreamChunkCallback,
    ToolDefinition,
)
from .utils import maybe_await, run_sync

logger = logging.getLogger(__name__)


class LLMInvoker:
    """
    Public entry points for model invocation.

      - invoke / invoke_sync: single-shot, tool-call capable
      - invoke_streaming: text-only, incremental delivery
      - complete / complete_sync: plain prompt -> text
      - verify_completion: asks the model whether a task is finished

    Every call is supervised by one `RetryExecutor` and can be cancelled
    through `coordinator` by session id or by the emergency stop.
    """

    def __init__(
        self,
        *,
        config: LLMConfig | None = None,
        transport: ChatTransport | None = None,
        coordinator: AbortCoordinator | None = None,
        diagnostics: DiagnosticsSink | None = None,
        observers: list[LLMObserver] | None = None,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.config = (config or LLMConfig.from_env()).validate()
        self.transport = transport or create_transport_from_env(config=self.config)
        self.coordinator = coordinator or AbortCoordinator()
        self.executor = RetryExecutor(
            coordinator=self.coordinator,
            diagnostics=diagnostics,
            observers=observers,
            rand=rand,
        )

    @classmethod
    def from_env(cls, **kwargs) -> "LLMInvoker":
        """Build an invoker from `LLMRELAY_*` environment variables."""
        return cls(config=LLMConfig.from_env(), **kwargs)

    @property
    def diagnostics(self) -> DiagnosticsSink:
        return self.executor.diagnostics

    async def invoke(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition] | None = None,
        *,
        config: LLMConfig | None = None,
        session_id: str | None = None,
        on_retry_progress: RetryProgressCallback | None = None,
    ) -> CallResult:
        """
        Execute one tool-capable call with retries.

        Tool names are sanitized for the provider and restored in the result.
        """
        cfg = self._resolve_config(config)
        transport = self._transport_for(cfg)
        codec = ToolNameCodec(cfg.gateway_tool_prefixes)
        parser = ResponseParser(codec)
        mapping = codec.build_mapping(tools) if tools else None
        request = build_chat_request(
            messages,
            model=cfg.model,
            tools=tools,
            mapping=mapping,
            timeout_s=cfg.timeout_s,
        )

        logger.debug(
            "invoke: provider=%s messages=%d has_system=%s tools=%d",
            transport.provider_id,
            len(request.messages),
            request.system is not None,
            len(request.tools or ()),
        )

        async def _attempt(handle: CancellationHandle) -> CallResult:
            response = await self._generate(transport, request)
            return parser.parse(response, mapping)

        return await self.executor.run(
            _attempt,
            config=cfg,
            call_site="invoke",
            session_id=session_id,
            on_retry_progress=on_retry_progress,
            model=cfg.model,
        )

    def invoke_sync(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition] | None = None,
        **kwargs,
    ) -> CallResult:
        """Synchronous wrapper around `invoke`."""
        return run_sync(self.invoke(messages, tools, **kwargs))

    async def invoke_streaming(
        self,
        messages: Sequence[ChatMessage],
        on_chunk: StreamChunkCallback,
        *,
        config: LLMConfig | None = None,
        session_id: str | None = None,
        external_cancellation: CancellationHandle | None = None,
    ) -> CallResult:
        """
        Stream a text-only reply, calling `on_chunk(fragment, accumulated)`.

        Only the connection attempt is retried. Stopping mid-stream returns
        the text accumulated so far. A caller-owned `external_cancellation`
        handle is used as is and never registered with the coordinator.
        """
        cfg = self._resolve_config(config)
        transport = self._transport_for(cfg)
        request = build_chat_request(messages, model=cfg.model, timeout_s=cfg.timeout_s)

        if external_cancellation is not None:
            return await self._stream(
                transport, request, on_chunk, cfg, session_id, external_cancellation
            )

        with self.coordinator.registration(session_id) as handle:
            return await self._stream(transport, request, on_chunk, cfg, session_id, handle)

    async def complete(
        self,
        prompt: str,
        *,
        config: LLMConfig | None = None,
        session_id: str | None = None,
        on_retry_progress: RetryProgressCallback | None = None,
    ) -> str:
        """Plain one-shot text generation with retries; no tools, no system split."""
        cfg = self._resolve_config(config)
        transport = self._transport_for(cfg)
        request = build_prompt_request(
            prompt,
            model=cfg.effective_completion_model,
            timeout_s=cfg.timeout_s,
        )

        response = await self.executor.run(
            lambda _handle: transport.generate(request),
            config=cfg,
            call_site="complete",
            session_id=session_id,
            on_retry_progress=on_retry_progress,
            model=request.model,
        )
        return response.text.strip()

    def complete_sync(self, prompt: str, **kwargs) -> str:
        """Synchronous wrapper around `complete`."""
        return run_sync(self.complete(prompt, **kwargs))

    async def verify_completion(
        self,
        messages: Sequence[ChatMessage],
        *,
        config: LLMConfig | None = None,
        session_id: str | None = None,
        on_retry_progress: RetryProgressCallback | None = None,
    ) -> CompletionVerification:
        """
        Ask the model for a `{"isComplete": bool, ...}` verdict.

        Falls back to `is_complete=False` when the call fails or the reply
        cannot be parsed. Cancellation is still raised.
        """
        cfg = self._resolve_config(config)
        transport = self._transport_for(cfg)
        request = build_chat_request(messages, model=cfg.model, timeout_s=cfg.timeout_s)

        try:
            response = await self.executor.run(
                lambda _handle: transport.generate(request),
                config=cfg,
                call_site="verify_completion",
                session_id=session_id,
                on_retry_progress=on_retry_progress,
                model=cfg.model,
            )
        except LLMCancelledError:
            raise
        except LLMError as e:
            return CompletionVerification(is_complete=False, reason=str(e) or "Verification failed")

        try:
            return parse_and_validate_json(response.text.strip(), CompletionVerification)
        except LLMInvalidResponseError:
            logger.warning("Failed to parse verification response as JSON")
            return CompletionVerification(
                is_complete=False,
                reason="Failed to parse verification response",
            )

    async def _generate(
        self,
        transport: ChatTransport,
        request: ProviderRequest,
    ) -> ProviderResponse:
        try:
            return await transport.generate(request)
        except LLMError:
            raise
        except Exception as e:
            if request.tools and is_tool_calling_unsupported(e):
                raise LLMToolCallingUnsupportedError(request.model) from e
            raise

    async def _stream(
        self,
        transport: ChatTransport,
        request: ProviderRequest,
        on_chunk: StreamChunkCallback,
        cfg: LLMConfig,
        session_id: str | None,
        handle: CancellationHandle,
    ) -> CallResult:
        stream: AsyncIterator[str] = await self.executor.run(
            lambda _handle: transport.open_stream(request),
            config=cfg,
            call_site="invoke_streaming",
            session_id=session_id,
            handle=handle,
            model=cfg.model,
        )

        stop = self.coordinator.stop_context
        accumulated = ""
        try:
            while True:
                try:
                    fragment = await handle.guard(anext(stream))
                except StopAsyncIteration:
                    break
                except LLMCancelledError:
                    logger.info("Stream cancelled after %d chars", len(accumulated))
                    break

                accumulated += fragment
                await maybe_await(on_chunk(fragment, accumulated))

                if stop.should_stop(session_id):
                    handle.cancel("Stream stopped")
                    break
                if handle.cancelled:
                    break
        except Exception as e:
            self.diagnostics.log_error("invoke_streaming", "Streaming LLM call failed", e)
            raise
        finally:
            await stream.aclose()

        return CallResult(content=accumulated)

    def _resolve_config(self, config: LLMConfig | None) -> LLMConfig:
        return config.validate() if config is not None else self.config

    def _transport_for(self, cfg: LLMConfig) -> ChatTransport:
        """Reuse the configured transport unless the call targets another endpoint."""
        current = self.transport.config
        if cfg.api_base_url == current.api_base_url and cfg.api_key == current.api_key:
            return self.transport
        return self.transport.with_config(cfg)
