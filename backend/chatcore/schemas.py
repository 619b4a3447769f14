from enum import Enum
from typing import Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolCall(BaseModel):
    """
    A tool invocation requested by the model.

    tool_arguments is whatever the model generated, usually JSON. It may be
    invalid or reference parameters the tool does not define; callers validate
    it before running the tool.
    """
    model_config = ConfigDict(frozen=True)

    id: str = ""
    tool_name: str = ""
    tool_arguments: str = ""


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str = ""
    tool_calls: Tuple[ToolCall, ...] = ()

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: Tuple[ToolCall, ...] = ()) -> "Message":
        return cls(role=MessageRole.ASSISTANT, content=content, tool_calls=tool_calls)


class ChatRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    messages: Tuple[Message, ...]

    @classmethod
    def from_text(cls, text: str) -> "ChatRequest":
        return cls(messages=(Message.user(text),))


# Settings layers: call, model and provider each hold one of these.
# None means "not set here, ask the next layer".
class ChatSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    stop_sequences: Optional[Tuple[str, ...]] = None
    user: Optional[str] = None
    use_streaming: Optional[bool] = None


class ResolvedChatSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_tokens: int
    temperature: float
    top_p: float
    top_k: int
    stop_sequences: Tuple[str, ...]
    user: str
    use_streaming: bool


class ChatResponseDelta(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str


class Usage(BaseModel):
    model_config = ConfigDict(frozen=True)

    input_tokens: int = 0
    output_tokens: int = 0
    time: float = Field(default=0.0, description="Elapsed wall time in seconds")

    @classmethod
    def empty(cls) -> "Usage":
        return cls()

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: "Usage") -> "Usage":
        if not isinstance(other, Usage):
            return NotImplemented
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            time=self.time + other.time,
        )


class ChatResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    model_id: str
    messages: Tuple[Message, ...]
    used_settings: ResolvedChatSettings
    usage: Usage
    warnings: Tuple[str, ...] = ()

    @property
    def last_message(self) -> Message:
        return self.messages[-1]

    @property
    def content(self) -> str:
        return self.last_message.content
