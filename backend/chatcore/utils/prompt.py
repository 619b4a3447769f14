from typing import Iterable

from chatcore.schemas import Message


def to_simple_prompt(messages: Iterable[Message]) -> str:
    """Flatten a conversation into one prompt string, one message per line."""
    return "\n".join(m.content for m in messages)
