"""Core module.

Keep this module lightweight: audio and tts import errors/events from here,
so the orchestrator is imported from clarion.core.speech directly.
"""

from .errors import (
    CancellationError,
    ClarionError,
    ConfigurationError,
    DecodeError,
    PlaybackError,
    ProviderError,
    TransportError,
)
from .events import SessionState, SpeechPath, SpeechState, SpeechStatus, Utterance

__all__ = [
    "CancellationError",
    "ClarionError",
    "ConfigurationError",
    "DecodeError",
    "PlaybackError",
    "ProviderError",
    "SessionState",
    "SpeechPath",
    "SpeechState",
    "SpeechStatus",
    "TransportError",
    "Utterance",
]
