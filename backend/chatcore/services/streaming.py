from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional

import structlog

from chatcore.errors import DecodingError
from chatcore.observability import SKIPPED_CHUNK_COUNTER
from chatcore.schemas import Usage

if TYPE_CHECKING:
    from chatcore.providers.base import ChatModelAdapter

logger = structlog.get_logger()


class StreamState(str, Enum):
    OPEN = "open"
    ACCUMULATING = "accumulating"
    CLOSED = "closed"


class StreamingAggregator:
    """
    Folds the chunks of one streamed call into the final assistant text.

    Text is appended in arrival order and never rewritten. A chunk that fails
    to decode is skipped with a warning. Once a terminal chunk closes the
    stream, the text of later chunks is ignored. If the stream ends without a terminal
    chunk, close() still yields everything buffered so far.
    """

    def __init__(self, adapter: "ChatModelAdapter", model_id: str = ""):
        self._adapter = adapter
        self._model_id = model_id
        self._parts: List[str] = []
        self.state = StreamState.OPEN
        self.terminated = False
        self.chunks = 0
        self.usage = Usage.empty()
        self.warnings: List[str] = []

    @property
    def closed(self) -> bool:
        return self.state is StreamState.CLOSED

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def on_chunk(self, raw: Any) -> Optional[str]:
        """
        Feed one raw chunk; returns its delta text ("" for chunks without
        text) or None when the chunk was skipped or arrived after close.

        Chunks after close still contribute usage (trailing usage-only
        chunks), but their text is never appended.
        """
        late = self.closed
        if not late:
            self.state = StreamState.ACCUMULATING
        self.chunks += 1
        delta, terminal = "", False
        try:
            chunk = self._adapter.decode_chunk(raw)
            usage = self._adapter.extract_usage(chunk)
            if not late:
                delta = self._adapter.extract_delta_text(chunk) or ""
                terminal = self._adapter.is_terminal_chunk(chunk)
        except DecodingError as e:
            warning = f"chunk {self.chunks} skipped: {e}"
            self.warnings.append(warning)
            SKIPPED_CHUNK_COUNTER.labels(self._model_id).inc()
            logger.warning("stream_chunk_skipped", model=self._model_id, chunk=self.chunks, err=str(e))
            return None

        if usage is not None:
            self.usage = self.usage + usage
        if late:
            logger.debug("stream_late_chunk_ignored", model=self._model_id, chunk=self.chunks)
            return None

        if delta:
            self._parts.append(delta)
        if terminal:
            self.terminated = True
            self.close()
        return delta

    def close(self) -> str:
        if not self.closed:
            self.state = StreamState.CLOSED
            if not self.terminated:
                logger.info("stream_ended_without_stop", model=self._model_id, chunks=self.chunks)
        return self.text
