"""Audio format and session constants shared by the gateway.

Single source of truth for the PCM format accepted on the WebSocket, the
prebuffer sizing derived from it and the session drain timeout.
"""

from __future__ import annotations

# --- PCM 16-bit format ---
# Clients send signed 16-bit little-endian mono samples. The encoding is fixed.
BYTES_PER_SAMPLE_INT16: int = 2
PCM16_FORMAT: str = "pcm16"
BACKEND_ENCODING: str = "LINEAR16"

# --- Standard sample rates ---
DEFAULT_SAMPLE_RATE: int = 16000
MIN_SAMPLE_RATE: int = 8000
MAX_SAMPLE_RATE: int = 48000

# --- Prebuffer ---
# 3 seconds of 16kHz mono PCM16 (3 * 16000 * 2).
DEFAULT_PREBUFFER_MAX_BYTES: int = 96_000

# --- Session ---
# Max seconds a stop waits for trailing backend results.
DEFAULT_DRAIN_TIMEOUT_S: float = 2.0

# --- Recognition limits ---
MAX_PHRASE_HINTS: int = 500
MAX_ALTERNATIVE_LANGUAGES: int = 3
# Hints echoed back in config-ack are truncated to keep the ack small.
ACK_PHRASE_HINTS_PREVIEW: int = 10
