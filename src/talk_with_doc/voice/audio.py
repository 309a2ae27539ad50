"""
PCM16 audio helpers shared by the client and the server.

Wire audio is mono, 16-bit signed little-endian PCM, base64 encoded inside
JSON frames. For transcription an utterance is reassembled in sequence order
and wrapped in a WAV container.
"""

import base64
import io
import wave
from dataclasses import dataclass
from typing import Iterable

import numpy as np

DEFAULT_SAMPLE_RATE = 16000


@dataclass(frozen=True)
class AudioChunk:
    """One decoded audio frame of an utterance."""

    data: bytes
    sequence: int
    sample_rate: int = DEFAULT_SAMPLE_RATE
    timestamp: int = 0


def float_to_pcm16(samples) -> bytes:
    """Encode float samples in [-1, 1] to PCM16 LE; out of range values are clamped."""
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 0x8000, clipped * 0x7FFF)
    return scaled.astype("<i2").tobytes()


def encode_audio(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_audio(data: str) -> bytes:
    """Decode base64 audio; raises ValueError on malformed input."""
    return base64.b64decode(data, validate=True)


def rms(samples) -> float:
    """Root mean square of float samples."""
    arr = np.asarray(samples, dtype=np.float64)
    if arr.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(arr * arr)))


def normalized_volume(samples) -> float:
    """Bounded [0, 1] volume for UI feedback; thresholds compare raw RMS."""
    return min(1.0, rms(samples) * 10)


def assemble_utterance(chunks: Iterable[AudioChunk]) -> tuple[bytes, int]:
    """
    Reassemble an utterance from chunks in sequence order.

    Transport order is not trusted; chunks are sorted by their sequence
    numbers, so any arrival order of the same chunks yields identical bytes.

    Returns:
        tuple[bytes, int]: Concatenated PCM and the sample rate of the first chunk
    """
    ordered = sorted(chunks, key=lambda chunk: chunk.sequence)
    if not ordered:
        return b"", DEFAULT_SAMPLE_RATE
    return b"".join(chunk.data for chunk in ordered), ordered[0].sample_rate


def pcm16_to_wav(pcm: bytes, sample_rate: int = DEFAULT_SAMPLE_RATE) -> bytes:
    """Wrap mono PCM16 in a WAV container."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)
    return buffer.getvalue()
