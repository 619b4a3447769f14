from typing import TYPE_CHECKING, Mapping, Tuple

from chatcore.errors import InvalidArgumentError

if TYPE_CHECKING:
    from chatcore.providers.base import ChatModel, ChatProvider


def resolve_model(
    model_ref: str,
    providers: Mapping[str, "ChatProvider"],
    default_provider: str = "openai",
) -> Tuple["ChatModel", str]:
    """
    Resolve a chat model by provider prefix (e.g., 'openai:gpt-4o-mini').
    Returns (chat_model, normalized_ref).
    """
    if not model_ref:
        raise InvalidArgumentError("model reference must not be empty")
    prefix, sep, model_id = model_ref.partition(":")
    if not sep:
        # no prefix, fall back to the default provider
        prefix, model_id = default_provider, model_ref
    provider = providers.get(prefix)
    if provider is None:
        raise InvalidArgumentError(f"unknown provider '{prefix}' in model reference '{model_ref}'")
    if not model_id:
        raise InvalidArgumentError(f"model reference '{model_ref}' names no model")
    return provider.chat_model(model_id), f"{prefix}:{model_id}"
