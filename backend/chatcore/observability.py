from typing import Tuple

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

GENERATION_COUNTER = Counter(
    "chat_generations_total", "Total chat generation calls", ["model", "mode", "outcome"]
)
GENERATION_LATENCY = Histogram(
    "chat_generation_latency_seconds", "Chat generation latency", ["model", "mode"]
)
DELTA_COUNTER = Counter("chat_deltas_total", "Streamed deltas published", ["model"])
SKIPPED_CHUNK_COUNTER = Counter(
    "chat_stream_chunks_skipped_total", "Stream chunks skipped as undecodable", ["model"]
)


def record_generation(model: str, mode: str, outcome: str, latency: float) -> None:
    GENERATION_COUNTER.labels(model, mode, outcome).inc()
    GENERATION_LATENCY.labels(model, mode).observe(latency)


def metrics_payload() -> Tuple[bytes, str]:
    """Prometheus exposition body and its content type, for the host's /metrics route."""
    return generate_latest(), CONTENT_TYPE_LATEST
