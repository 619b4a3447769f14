from typing import Optional


class ChatCoreError(Exception):
    """Base class for every error raised by chatcore."""


class InvalidArgumentError(ChatCoreError, ValueError):
    """The request handed to a generation call is missing or malformed."""


class ConfigurationError(ChatCoreError):
    """A resolved settings field violates its domain constraint."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class TransportError(ChatCoreError):
    """Network or provider failure reported by a transport."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class CancellationError(ChatCoreError):
    """A generation call was cancelled through its cancellation token."""


class DecodingError(ChatCoreError):
    """A raw chunk or payload could not be parsed into the expected shape."""
