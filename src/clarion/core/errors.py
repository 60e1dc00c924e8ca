"""Error taxonomy for the speech pipeline.

Every error carries the pipeline stage it happened in so log lines can be
traced back to connect/send/receive/decode/playback without a stack trace.
"""

from __future__ import annotations

from typing import Optional


class ClarionError(Exception):
    """Base class for speech pipeline errors."""

    stage: str = "unknown"

    def __init__(self, message: str, *, stage: Optional[str] = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage

    def __str__(self) -> str:
        return f"[{self.stage}] {super().__str__()}"


class ConfigurationError(ClarionError):
    """No credential configured; speaking is a logged no-op."""

    stage = "config"


class TransportError(ClarionError):
    """Connect/send/receive failure or request timeout. Terminal for the utterance."""

    stage = "connect"


class ProviderError(ClarionError):
    """Provider answered with a non-success status (REST or WebSocket handshake)."""

    stage = "request"

    def __init__(self, message: str, *, status_code: Optional[int] = None, stage: Optional[str] = None):
        super().__init__(message, stage=stage)
        self.status_code = status_code


class CancellationError(ClarionError):
    """Utterance stopped explicitly or superseded by a newer speak call."""

    stage = "cancel"


class DecodeError(ClarionError):
    """Audio payload could not be decoded into PCM frames."""

    stage = "decode"


class PlaybackError(ClarionError):
    """Audio output device could not be opened."""

    stage = "playback"
