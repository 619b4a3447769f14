import pytest

from chatcore.schemas import ChatRequest, Message
from chatcore.tests.utils.fakes import RecordingObserver


@pytest.fixture
def hi_request() -> ChatRequest:
    return ChatRequest(messages=(Message.user("Hi"),))


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()
