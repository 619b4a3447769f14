import pytest

from chatcore.schemas import Usage
from chatcore.services.streaming import StreamingAggregator, StreamState
from chatcore.tests.utils.fakes import FakeTransport, llama_chunk, make_llama


@pytest.fixture
def aggregator() -> StreamingAggregator:
    return StreamingAggregator(make_llama(FakeTransport()), "llama")


def test_state_machine(aggregator):
    assert aggregator.state is StreamState.OPEN
    aggregator.on_chunk(llama_chunk("Hel"))
    assert aggregator.state is StreamState.ACCUMULATING
    aggregator.on_chunk(llama_chunk("lo!", stop="stop"))
    assert aggregator.state is StreamState.CLOSED
    assert aggregator.terminated


@pytest.mark.parametrize(
    "texts",
    [
        ["a", "b", "c"],
        ["", "Hel", "", "", "lo", "", "!"],
        ["", "", ""],
        ["multi\nline ", "ünïcödé", " 🙂"],
    ],
)
def test_buffer_is_concatenation_in_arrival_order(aggregator, texts):
    for text in texts:
        aggregator.on_chunk(llama_chunk(text))
    assert aggregator.close() == "".join(texts)


def test_empty_chunk_returns_empty_delta(aggregator):
    assert aggregator.on_chunk(llama_chunk("")) == ""
    assert aggregator.on_chunk({"stop_reason": None}) == ""


def test_terminal_detection_is_case_insensitive(aggregator):
    aggregator.on_chunk(llama_chunk("x", stop="STOP"))
    assert aggregator.closed


def test_other_stop_reasons_are_not_terminal(aggregator):
    aggregator.on_chunk(llama_chunk("x", stop="length"))
    assert not aggregator.closed


def test_terminal_chunk_without_text_closes(aggregator):
    aggregator.on_chunk(llama_chunk("Hello"))
    assert aggregator.on_chunk(llama_chunk("", stop="stop")) == ""
    assert aggregator.closed
    assert aggregator.text == "Hello"


def test_late_chunks_are_ignored(aggregator):
    aggregator.on_chunk(llama_chunk("Hello!", stop="stop"))
    assert aggregator.on_chunk(llama_chunk(" more")) is None
    assert aggregator.close() == "Hello!"


def test_end_of_stream_without_stop_keeps_buffer(aggregator):
    aggregator.on_chunk(llama_chunk("partial "))
    aggregator.on_chunk(llama_chunk("output"))
    assert aggregator.close() == "partial output"
    assert not aggregator.terminated
    assert aggregator.state is StreamState.CLOSED


def test_malformed_chunk_is_skipped_with_warning(aggregator):
    chunks = [
        llama_chunk("one "),
        llama_chunk("two "),
        b"{not json",
        llama_chunk("three "),
        llama_chunk("four"),
    ]
    results = [aggregator.on_chunk(c) for c in chunks]

    assert results[2] is None
    assert aggregator.close() == "one two three four"
    assert len(aggregator.warnings) == 1
    assert "chunk 3" in aggregator.warnings[0]


def test_wrong_shape_chunk_is_skipped(aggregator):
    assert aggregator.on_chunk(b"[1, 2]") is None
    assert aggregator.on_chunk({"generation": 42}) is None
    assert len(aggregator.warnings) == 2


def test_usage_is_read_from_final_chunk_only(aggregator):
    aggregator.on_chunk(llama_chunk("a", prompt_token_count=5, generation_token_count=1))
    aggregator.on_chunk(llama_chunk("b", generation_token_count=2))
    aggregator.on_chunk(
        llama_chunk(
            "",
            stop="stop",
            **{"amazon-bedrock-invocationMetrics": {"inputTokenCount": 5, "outputTokenCount": 2}},
        )
    )
    assert aggregator.usage == Usage(input_tokens=5, output_tokens=2)


def test_late_chunk_usage_is_folded_but_text_is_ignored(aggregator):
    aggregator.on_chunk(llama_chunk("Hello!", stop="stop"))
    late = llama_chunk(
        " extra",
        **{"amazon-bedrock-invocationMetrics": {"inputTokenCount": 7, "outputTokenCount": 3}},
    )

    assert aggregator.on_chunk(late) is None
    assert aggregator.text == "Hello!"
    assert aggregator.usage == Usage(input_tokens=7, output_tokens=3)


def test_bad_usage_metadata_is_skipped_with_warning(aggregator):
    aggregator.on_chunk(llama_chunk("a"))
    bad = llama_chunk("b", **{"amazon-bedrock-invocationMetrics": {"inputTokenCount": "n/a"}})

    assert aggregator.on_chunk(bad) is None
    aggregator.on_chunk(llama_chunk("c", stop="stop"))
    assert aggregator.close() == "ac"
    assert len(aggregator.warnings) == 1
    assert "usage metadata" in aggregator.warnings[0]
