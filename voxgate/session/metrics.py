"""Prometheus metrics for the transcription gateway.

Defined metrics:
- voxgate_active_connections: Gauge of accepted WebSocket connections
- voxgate_recognizer_opens_total: Backend session open attempts by result (ok, error)
- voxgate_recognizer_endings_total: Backend sessions finished by reason (stopped, ended, error)
- voxgate_transcripts_total: Transcript events relayed by kind (partial, final)
- voxgate_prebuffer_evicted_bytes_total: Audio bytes dropped by prebuffer overflow
- voxgate_backend_write_failures_total: Backend writes that raised or signalled backpressure
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

active_connections = Gauge(
    "voxgate_active_connections",
    "Number of accepted WebSocket streaming connections",
)

recognizer_opens_total = Counter(
    "voxgate_recognizer_opens_total",
    "Backend recognition session open attempts by result",
    ["result"],
)

recognizer_endings_total = Counter(
    "voxgate_recognizer_endings_total",
    "Backend recognition sessions finished by reason",
    ["reason"],
)

transcripts_total = Counter(
    "voxgate_transcripts_total",
    "Transcript events relayed to clients by kind",
    ["kind"],
)

prebuffer_evicted_bytes_total = Counter(
    "voxgate_prebuffer_evicted_bytes_total",
    "Audio bytes discarded because the prebuffer was full",
)

backend_write_failures_total = Counter(
    "voxgate_backend_write_failures_total",
    "Backend audio writes that failed or signalled backpressure",
    ["kind"],
)
