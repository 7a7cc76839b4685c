"""Prometheus collectors for gateway requests."""

from __future__ import annotations

from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


REQUESTS = Counter(
    "gateway_requests_total",
    "Capability requests handled by the gateway",
    ["capability", "outcome"],
)
REQUEST_DURATION = Histogram(
    "gateway_request_seconds",
    "Capability request latency, including the backend round trip",
    ["capability"],
    buckets=(0.1, 0.25, 0.5, 1, 2, 4, 8, 16, 32, float("inf")),
)
TTS_AUDIO_BYTES = Histogram(
    "gateway_tts_audio_bytes",
    "Size of synthesized audio payloads",
    buckets=(4096, 16384, 65536, 262144, 1048576, 4194304, float("inf")),
)


def observe_request(capability: str, outcome: str, duration_seconds: float) -> None:
    REQUESTS.labels(capability=capability, outcome=outcome).inc()
    REQUEST_DURATION.labels(capability=capability).observe(duration_seconds)


def render_latest() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REQUESTS",
    "REQUEST_DURATION",
    "TTS_AUDIO_BYTES",
    "observe_request",
    "render_latest",
]
