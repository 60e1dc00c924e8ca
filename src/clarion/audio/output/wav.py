"""Decode the WAV container returned by the one-shot endpoint."""

from __future__ import annotations

import io
import wave
from dataclasses import dataclass

from ...core.errors import DecodeError


@dataclass(frozen=True)
class DecodedAudio:
    pcm: bytes  # little-endian int16, interleaved
    sample_rate: int
    channels: int


def decode_wav(data: bytes) -> DecodedAudio:
    """Extract 16-bit PCM frames from a WAV payload."""
    if not data:
        raise DecodeError("Empty audio payload")
    try:
        with wave.open(io.BytesIO(data), "rb") as wav_file:
            if wav_file.getsampwidth() != 2:
                raise DecodeError(f"Unsupported sample width: {wav_file.getsampwidth() * 8} bits")
            return DecodedAudio(
                pcm=wav_file.readframes(wav_file.getnframes()),
                sample_rate=wav_file.getframerate(),
                channels=wav_file.getnchannels(),
            )
    except (wave.Error, EOFError) as e:
        raise DecodeError(f"Invalid WAV payload: {e}") from e
