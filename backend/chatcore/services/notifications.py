import inspect
from typing import Any, Awaitable, Callable, List, Optional, Union

import structlog

from chatcore.schemas import ChatResponse, ChatResponseDelta

logger = structlog.get_logger()

Handler = Callable[[Any], Union[None, Awaitable[None]]]


class ChatObserver:
    """
    Receives the events of generation calls.

    Override either hook; both may be plain or async methods.
    """

    def on_delta(self, delta: ChatResponseDelta) -> Union[None, Awaitable[None]]:
        return None

    def on_response(self, response: ChatResponse) -> Union[None, Awaitable[None]]:
        return None


class CallbackObserver(ChatObserver):
    def __init__(self, on_delta: Optional[Handler] = None, on_response: Optional[Handler] = None):
        self._on_delta = on_delta
        self._on_response = on_response

    def on_delta(self, delta):
        if self._on_delta is not None:
            return self._on_delta(delta)
        return None

    def on_response(self, response):
        if self._on_response is not None:
            return self._on_response(response)
        return None


class ChatEventDispatcher:
    """
    Fans generation events out to registered observers.

    A failing observer is logged and skipped; the generation call and the
    remaining observers carry on.
    """

    def __init__(self) -> None:
        self._observers: List[ChatObserver] = []

    def subscribe(self, observer: ChatObserver) -> ChatObserver:
        self._observers.append(observer)
        return observer

    def unsubscribe(self, observer: ChatObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    @property
    def observers(self) -> List[ChatObserver]:
        return list(self._observers)

    async def publish_delta(self, delta: ChatResponseDelta) -> None:
        await self._publish("on_delta", delta)

    async def publish_response(self, response: ChatResponse) -> None:
        await self._publish("on_response", response)

    async def _publish(self, hook: str, event: Any) -> None:
        for observer in list(self._observers):
            try:
                result = getattr(observer, hook)(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("observer_failed", hook=hook, observer=type(observer).__name__)
