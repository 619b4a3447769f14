from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, AsyncIterator, Dict, Iterator, Optional, Protocol, Sequence, Type

from pydantic import ValidationError

from chatcore.errors import ConfigurationError, DecodingError, TransportError
from chatcore.schemas import (
    ChatRequest,
    ChatResponse,
    ChatSettings,
    Message,
    ResolvedChatSettings,
    Usage,
)
from chatcore.services.notifications import ChatEventDispatcher
from chatcore.services.orchestrator import ChatGenerationOrchestrator
from chatcore.services.usage import UsageAccumulator
from chatcore.utils.cancellation import CancellationToken


@contextmanager
def chunk_fields(what: str = "chunk") -> Iterator[None]:
    """Turn shape errors raised while reading chunk fields into DecodingError."""
    try:
        yield
    except (ValidationError, TypeError, AttributeError, KeyError, IndexError) as e:
        raise DecodingError(f"malformed {what}: {e}") from e


class Transport(Protocol):
    """
    Moves request bodies to a vendor endpoint and raw responses back.

    Implementations raise TransportError on network or provider failure.
    """

    def invoke_streaming(
        self, endpoint_id: str, body: Dict[str, Any], cancellation: CancellationToken
    ) -> AsyncIterator[Any]:
        ...

    async def invoke_unary(
        self, endpoint_id: str, body: Dict[str, Any], cancellation: CancellationToken
    ) -> Any:
        ...


class ChatModelAdapter(ABC):
    """What a model family must provide for the generation orchestrator."""

    @abstractmethod
    def build_request_body(
        self, messages: Sequence[Message], settings: ResolvedChatSettings
    ) -> Dict[str, Any]:
        raise NotImplementedError

    def decode_chunk(self, raw: Any) -> Any:
        """Parse one raw chunk or payload; raise DecodingError if it has the wrong shape."""
        return raw

    @abstractmethod
    def extract_delta_text(self, chunk: Any) -> str:
        raise NotImplementedError

    @abstractmethod
    def is_terminal_chunk(self, chunk: Any) -> bool:
        raise NotImplementedError

    @abstractmethod
    def extract_message(self, payload: Any) -> Message:
        raise NotImplementedError

    def extract_usage(self, chunk: Any) -> Optional[Usage]:
        return None


class MissingTransport:
    async def invoke_unary(self, endpoint_id, body, cancellation):
        raise TransportError(f"no transport configured for {endpoint_id}")

    async def invoke_streaming(self, endpoint_id, body, cancellation):
        raise TransportError(f"no transport configured for {endpoint_id}")
        yield  # pragma: no cover


class ChatProvider:
    name: str = "provider"
    model_class: Optional[Type["ChatModel"]] = None

    def __init__(self, transport: Optional[Transport] = None, chat_settings: Optional[ChatSettings] = None):
        self.transport = transport or MissingTransport()
        self.chat_settings = chat_settings
        self.usage = UsageAccumulator()

    def chat_model(self, model_id: str, settings: Optional[ChatSettings] = None) -> "ChatModel":
        if self.model_class is None:
            raise ConfigurationError("model_class", f"{type(self).__name__} has no default chat model class")
        return self.model_class(self, model_id, settings)


class ChatModel(ChatModelAdapter):
    """
    One model of a provider.

    Keeps its own usage total and observers; the provider's usage total
    receives the same Usage from every call.
    """

    def __init__(self, provider: ChatProvider, id: str, settings: Optional[ChatSettings] = None):
        self.provider = provider
        self.id = id
        self.settings = settings
        self.usage = UsageAccumulator()
        self.events = ChatEventDispatcher()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"

    def _orchestrator(self) -> ChatGenerationOrchestrator:
        return ChatGenerationOrchestrator(
            adapter=self,
            transport=self.provider.transport,
            endpoint_id=self.id,
            model_settings=self.settings,
            provider_settings=self.provider.chat_settings,
            usage_sinks=(self.usage, self.provider.usage),
            events=self.events,
        )

    async def generate(
        self,
        request: ChatRequest,
        settings: Optional[ChatSettings] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> AsyncIterator[ChatResponse]:
        async for response in self._orchestrator().generate(request, settings, cancellation):
            yield response

    async def complete(
        self,
        request: ChatRequest,
        settings: Optional[ChatSettings] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> ChatResponse:
        response = None
        async for response in self.generate(request, settings, cancellation):
            pass
        return response
