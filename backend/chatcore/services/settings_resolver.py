from typing import Any, Callable, Dict, Optional

from chatcore.errors import ConfigurationError
from chatcore.schemas import ChatSettings, ResolvedChatSettings

DEFAULT_CHAT_SETTINGS = ResolvedChatSettings(
    max_tokens=2048,
    temperature=0.5,
    top_p=0.9,
    top_k=250,
    stop_sequences=(),
    user="",
    use_streaming=False,
)

# field -> (check, description of the allowed range)
_CONSTRAINTS: Dict[str, tuple[Callable[[Any], bool], str]] = {
    "max_tokens": (lambda v: v >= 1, "must be >= 1"),
    "temperature": (lambda v: 0.0 <= v <= 2.0, "must be within [0, 2]"),
    "top_p": (lambda v: 0.0 <= v <= 1.0, "must be within [0, 1]"),
    "top_k": (lambda v: v >= 0, "must be >= 0"),
}


def resolve_settings(
    call: Optional[ChatSettings] = None,
    model: Optional[ChatSettings] = None,
    provider: Optional[ChatSettings] = None,
    defaults: ResolvedChatSettings = DEFAULT_CHAT_SETTINGS,
) -> ResolvedChatSettings:
    """
    Merge the call, model and provider settings layers.

    Every field is resolved on its own: the first layer that sets it wins,
    otherwise the built-in default is used. Values outside their allowed
    range raise ConfigurationError naming the field; nothing is clamped.
    """
    layers = [layer for layer in (call, model, provider) if layer is not None]
    values: Dict[str, Any] = {}
    for name in ChatSettings.model_fields:
        value = next(
            (getattr(layer, name) for layer in layers if getattr(layer, name) is not None),
            getattr(defaults, name),
        )
        constraint = _CONSTRAINTS.get(name)
        if constraint is not None:
            check, description = constraint
            if not check(value):
                raise ConfigurationError(name, f"{value!r} {description}")
        values[name] = value
    return ResolvedChatSettings(**values)
