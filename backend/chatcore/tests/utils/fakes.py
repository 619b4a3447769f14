import asyncio
import json
from typing import Any, Dict, List, Optional

from chatcore.errors import TransportError
from chatcore.providers.bedrock_llama import BedrockProvider, MetaLlamaChatModel
from chatcore.schemas import ChatSettings
from chatcore.services.notifications import ChatObserver


def llama_chunk(text: str, stop: Optional[str] = None, **extra: Any) -> bytes:
    return json.dumps({"generation": text, "stop_reason": stop, **extra}).encode("utf-8")


class FakeTransport:
    """Replays canned chunks/payloads and records every request body."""

    def __init__(
        self,
        chunks: Optional[List[Any]] = None,
        payload: Any = None,
        error: Optional[Exception] = None,
        fail_times: int = 0,
        delay: float = 0.0,
        hold_after: Optional[int] = None,
    ):
        self.chunks = list(chunks or [])
        self.payload = payload
        self.error = error
        self.fail_times = fail_times
        self.delay = delay
        # streaming pauses after hold_after chunks until release is set
        self.hold_after = hold_after
        self.held = asyncio.Event()
        self.release = asyncio.Event()
        self.bodies: List[Dict[str, Any]] = []
        self.calls = 0
        self.yielded = 0

    def _maybe_fail(self):
        self.calls += 1
        # fail_times=0 means every call fails
        if self.error is not None and (not self.fail_times or self.calls <= self.fail_times):
            raise self.error

    async def invoke_unary(self, endpoint_id, body, cancellation):
        self.bodies.append(body)
        self._maybe_fail()
        await asyncio.sleep(self.delay)
        return self.payload

    async def invoke_streaming(self, endpoint_id, body, cancellation):
        self.bodies.append(body)
        self._maybe_fail()
        for chunk in self.chunks:
            if self.yielded == self.hold_after:
                self.held.set()
                await self.release.wait()
            await asyncio.sleep(self.delay)
            self.yielded += 1
            yield chunk


class RecordingObserver(ChatObserver):
    def __init__(self):
        self.deltas: List[str] = []
        self.responses = []

    def on_delta(self, delta):
        self.deltas.append(delta.content)

    def on_response(self, response):
        self.responses.append(response)


class ExplodingObserver(ChatObserver):
    def on_delta(self, delta):
        raise RuntimeError("delta boom")

    async def on_response(self, response):
        raise RuntimeError("response boom")


def make_llama(
    transport: FakeTransport,
    model_settings: Optional[ChatSettings] = None,
    provider_settings: Optional[ChatSettings] = None,
    model_id: str = "meta.llama3-2-90b-instruct-v1:0",
) -> MetaLlamaChatModel:
    provider = BedrockProvider(transport, chat_settings=provider_settings)
    return provider.chat_model(model_id, model_settings)


def transport_error() -> TransportError:
    return TransportError("service unavailable", status_code=503)
