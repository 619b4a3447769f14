import json
from typing import Any, Dict, Optional, Sequence

from chatcore.errors import DecodingError
from chatcore.providers.base import ChatModel, ChatProvider, chunk_fields
from chatcore.schemas import Message, ResolvedChatSettings, Usage
from chatcore.utils.prompt import to_simple_prompt


def _load_json(raw: Any) -> Dict[str, Any]:
    # Bedrock response streams wrap each payload part as {"chunk": {"bytes": b"..."}}
    if isinstance(raw, dict) and isinstance(raw.get("chunk"), dict):
        raw = raw["chunk"].get("bytes", b"")
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodingError(f"payload is not utf-8: {e}") from e
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DecodingError(f"payload is not valid JSON: {e.msg}") from e
    if not isinstance(raw, dict):
        raise DecodingError(f"expected a JSON object, got {type(raw).__name__}")
    return raw


class MetaLlamaChatModel(ChatModel):
    """Meta Llama text generation served through Amazon Bedrock."""

    def build_request_body(
        self, messages: Sequence[Message], settings: ResolvedChatSettings
    ) -> Dict[str, Any]:
        prompt = to_simple_prompt(messages)
        return {
            "inputs": [{"role": "user", "content": prompt}],
            "parameters": {
                "prompt": prompt,
                "max_new_tokens": settings.max_tokens,
                "temperature": settings.temperature,
                "top_p": settings.top_p,
            },
        }

    def decode_chunk(self, raw: Any) -> Dict[str, Any]:
        chunk = _load_json(raw)
        generation = chunk.get("generation")
        if generation is not None and not isinstance(generation, str):
            raise DecodingError(f"'generation' must be a string, got {type(generation).__name__}")
        return chunk

    def extract_delta_text(self, chunk: Dict[str, Any]) -> str:
        return chunk.get("generation") or ""

    def is_terminal_chunk(self, chunk: Dict[str, Any]) -> bool:
        stop_reason = chunk.get("stop_reason") or ""
        return str(stop_reason).upper() == "STOP"

    def extract_message(self, payload: Dict[str, Any]) -> Message:
        return Message.assistant(payload.get("generation") or "")

    def extract_usage(self, chunk: Dict[str, Any]) -> Optional[Usage]:
        # Streamed token counts are running totals, so only the final chunk counts.
        with chunk_fields("usage metadata"):
            return self._usage(chunk)

    def _usage(self, chunk: Dict[str, Any]) -> Optional[Usage]:
        metrics = chunk.get("amazon-bedrock-invocationMetrics")
        if isinstance(metrics, dict):
            return Usage(
                input_tokens=metrics.get("inputTokenCount") or 0,
                output_tokens=metrics.get("outputTokenCount") or 0,
            )
        if chunk.get("stop_reason") is None:
            return None
        return Usage(
            input_tokens=chunk.get("prompt_token_count") or 0,
            output_tokens=chunk.get("generation_token_count") or 0,
        )


class BedrockProvider(ChatProvider):
    """
    Amazon Bedrock models. The transport (signed bedrock-runtime client) is
    supplied by the caller.
    """
    name = "bedrock"
    model_class = MetaLlamaChatModel
