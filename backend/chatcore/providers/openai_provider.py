import os
from typing import Any, AsyncIterator, Dict, Optional, Sequence

import openai
from openai import AsyncOpenAI

from chatcore.core.config import settings
from chatcore.errors import DecodingError, TransportError
from chatcore.providers.base import ChatModel, ChatProvider, chunk_fields
from chatcore.schemas import Message, ResolvedChatSettings, ToolCall, Usage
from chatcore.utils.cancellation import CancellationToken


def _build_client() -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY or os.getenv("OPENAI_API_KEY"),
        organization=settings.OPENAI_ORG or None,
        project=settings.OPENAI_PROJECT or None,
        base_url=settings.OPENAI_BASE_URL or None,
        timeout=settings.OPENAI_TIMEOUT_SECONDS,
    )


def _transport_error(e: openai.OpenAIError) -> TransportError:
    return TransportError(f"openai: {e}", status_code=getattr(e, "status_code", None))


class OpenAITransport:
    def __init__(self, client: Optional[AsyncOpenAI] = None):
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            try:
                self._client = _build_client()
            except openai.OpenAIError as e:
                raise _transport_error(e) from e
        return self._client

    async def invoke_unary(
        self, endpoint_id: str, body: Dict[str, Any], cancellation: CancellationToken
    ) -> Any:
        try:
            return await self.client.chat.completions.create(model=endpoint_id, stream=False, **body)
        except openai.OpenAIError as e:
            raise _transport_error(e) from e

    async def invoke_streaming(
        self, endpoint_id: str, body: Dict[str, Any], cancellation: CancellationToken
    ) -> AsyncIterator[Any]:
        try:
            stream = await self.client.chat.completions.create(model=endpoint_id, stream=True, **body)
        except openai.OpenAIError as e:
            raise _transport_error(e) from e
        try:
            async for event in stream:
                # event is a ChatCompletionChunk
                yield event
        except openai.OpenAIError as e:
            raise _transport_error(e) from e
        finally:
            await stream.close()


class OpenAIChatModel(ChatModel):

    def _to_openai_messages(self, messages: Sequence[Message]):
        # Pass through roles/content
        return [{"role": m.role.value, "content": m.content} for m in messages]

    def build_request_body(
        self, messages: Sequence[Message], settings: ResolvedChatSettings
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "messages": self._to_openai_messages(messages),
            "temperature": settings.temperature,
            "max_tokens": settings.max_tokens,
            "top_p": settings.top_p,
        }
        if settings.stop_sequences:
            body["stop"] = list(settings.stop_sequences)
        if settings.user:
            body["user"] = settings.user
        if settings.use_streaming:
            # usage arrives in a trailing chunk after the stop chunk
            body["stream_options"] = {"include_usage": True}
        return body

    def decode_chunk(self, raw: Any) -> Any:
        if not hasattr(raw, "choices"):
            raise DecodingError(f"expected a chat completion object, got {type(raw).__name__}")
        return raw

    def extract_delta_text(self, chunk: Any) -> str:
        # usage-only chunks carry no choices
        if not chunk.choices:
            return ""
        with chunk_fields("delta"):
            content = chunk.choices[0].delta.content
        if content is not None and not isinstance(content, str):
            raise DecodingError(f"delta content must be a string, got {type(content).__name__}")
        return content or ""

    def is_terminal_chunk(self, chunk: Any) -> bool:
        if not chunk.choices:
            return False
        with chunk_fields("finish_reason"):
            return (chunk.choices[0].finish_reason or "").lower() == "stop"

    def extract_message(self, payload: Any) -> Message:
        if not payload.choices:
            return Message.assistant("")
        with chunk_fields("completion"):
            message = payload.choices[0].message
            tool_calls = tuple(
                ToolCall(
                    id=tc.id,
                    tool_name=tc.function.name,
                    tool_arguments=tc.function.arguments or "",
                )
                for tc in (message.tool_calls or [])
            )
            return Message.assistant(message.content or "", tool_calls=tool_calls)

    def extract_usage(self, chunk: Any) -> Optional[Usage]:
        usage = getattr(chunk, "usage", None)
        if usage is None:
            return None
        with chunk_fields("usage"):
            return Usage(
                input_tokens=getattr(usage, "prompt_tokens", None) or 0,
                output_tokens=getattr(usage, "completion_tokens", None) or 0,
            )


class OpenAIProvider(ChatProvider):
    name = "openai"
    model_class = OpenAIChatModel

    def __init__(self, transport=None, chat_settings=None):
        super().__init__(
            transport or OpenAITransport(),
            chat_settings if chat_settings is not None else settings.provider_chat_settings(),
        )
