import asyncio
import time
from typing import TYPE_CHECKING, AsyncIterator, List, Optional, Sequence

import structlog

from chatcore.errors import CancellationError, InvalidArgumentError
from chatcore.observability import DELTA_COUNTER, record_generation
from chatcore.schemas import (
    ChatRequest,
    ChatResponse,
    ChatResponseDelta,
    ChatSettings,
    Message,
    Usage,
)
from chatcore.services.notifications import ChatEventDispatcher
from chatcore.services.settings_resolver import resolve_settings
from chatcore.services.streaming import StreamingAggregator
from chatcore.services.usage import UsageAccumulator
from chatcore.utils.cancellation import CancellationToken

if TYPE_CHECKING:
    from chatcore.providers.base import ChatModelAdapter, Transport

logger = structlog.get_logger()


class ChatGenerationOrchestrator:
    """
    Drives one generation call: settings resolution, transport, stream
    aggregation, usage accounting and notifications.

    Usage is committed to the sinks only after the response notification,
    with no suspension point between the commit and the yield. A call that
    fails or is cancelled before then leaves the accumulators and the
    caller's history untouched.
    """

    def __init__(
        self,
        adapter: "ChatModelAdapter",
        transport: "Transport",
        endpoint_id: str,
        *,
        model_settings: Optional[ChatSettings] = None,
        provider_settings: Optional[ChatSettings] = None,
        usage_sinks: Sequence[UsageAccumulator] = (),
        events: Optional[ChatEventDispatcher] = None,
    ):
        self.adapter = adapter
        self.transport = transport
        self.endpoint_id = endpoint_id
        self.model_settings = model_settings
        self.provider_settings = provider_settings
        self.usage_sinks = list(usage_sinks)
        self.events = events or ChatEventDispatcher()

    async def generate(
        self,
        request: ChatRequest,
        settings: Optional[ChatSettings] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> AsyncIterator[ChatResponse]:
        if request is None:
            raise InvalidArgumentError("request must not be None")
        if not isinstance(request, ChatRequest):
            raise InvalidArgumentError(f"expected ChatRequest, got {type(request).__name__}")

        cancellation = cancellation or CancellationToken()
        used_settings = resolve_settings(settings, self.model_settings, self.provider_settings)
        messages: List[Message] = list(request.messages)
        body = self.adapter.build_request_body(messages, used_settings)
        mode = "stream" if used_settings.use_streaming else "unary"

        cancellation.raise_if_cancelled()
        start = time.perf_counter()
        outcome = "error"
        try:
            if used_settings.use_streaming:
                message, usage, warnings = await self._stream(body, cancellation)
            else:
                message, usage, warnings = await self._unary(body, cancellation)
            cancellation.raise_if_cancelled()
            outcome = "ok"
        except (CancellationError, asyncio.CancelledError):
            outcome = "cancelled"
            raise
        finally:
            elapsed = time.perf_counter() - start
            record_generation(self.endpoint_id, mode, outcome, elapsed)

        messages.append(message)
        usage = usage + Usage(time=elapsed)
        response = ChatResponse(
            model_id=self.endpoint_id,
            messages=tuple(messages),
            used_settings=used_settings,
            usage=usage,
            warnings=tuple(warnings),
        )
        logger.info(
            "chat_generation_completed",
            model=self.endpoint_id,
            mode=mode,
            elapsed_ms=int(elapsed * 1000),
            warnings=len(warnings),
        )
        await self.events.publish_response(response)
        # Last suspension point is behind us; usage commits with the yield.
        for sink in self.usage_sinks:
            sink.add_usage(usage)
        yield response

    async def _stream(self, body, cancellation: CancellationToken):
        aggregator = StreamingAggregator(self.adapter, self.endpoint_id)
        stream = self.transport.invoke_streaming(self.endpoint_id, body, cancellation)
        try:
            async for raw in stream:
                cancellation.raise_if_cancelled()
                delta = aggregator.on_chunk(raw)
                if delta:
                    DELTA_COUNTER.labels(self.endpoint_id).inc()
                    await self.events.publish_delta(ChatResponseDelta(content=delta))
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
        text = aggregator.close()
        return Message.assistant(text), aggregator.usage, aggregator.warnings

    async def _unary(self, body, cancellation: CancellationToken):
        payload = await self.transport.invoke_unary(self.endpoint_id, body, cancellation)
        decoded = self.adapter.decode_chunk(payload)
        message = self.adapter.extract_message(decoded)
        usage = self.adapter.extract_usage(decoded) or Usage.empty()
        return message, usage, []
