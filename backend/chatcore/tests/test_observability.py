import pytest

from chatcore.observability import metrics_payload
from chatcore.schemas import ChatRequest, ChatSettings
from chatcore.tests.utils.fakes import FakeTransport, llama_chunk, make_llama


@pytest.mark.asyncio
async def test_generation_metrics_are_exposed():
    model = make_llama(
        FakeTransport(chunks=[llama_chunk("ok"), b"broken", llama_chunk("", stop="stop")]),
        model_id="metrics-check",
    )
    await model.complete(ChatRequest.from_text("Hi"), ChatSettings(use_streaming=True))

    body, content_type = metrics_payload()
    text = body.decode("utf-8")

    assert content_type.startswith("text/plain")
    assert 'chat_generations_total{model="metrics-check",mode="stream",outcome="ok"} 1.0' in text
    assert 'chat_stream_chunks_skipped_total{model="metrics-check"} 1.0' in text
    assert 'chat_deltas_total{model="metrics-check"} 1.0' in text
