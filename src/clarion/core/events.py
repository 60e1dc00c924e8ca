from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union


class SpeechPath(str, Enum):
    """How an utterance is synthesized."""
    REST = "rest"      # one-shot request, whole text
    STREAM = "stream"  # WebSocket session, chunked text


class SpeechState(str, Enum):
    IDLE = "idle"
    SPEAKING_REST = "speaking-rest"
    SPEAKING_STREAM = "speaking-stream"


class SessionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(frozen=True)
class Utterance:
    """Text accepted for speaking. Superseded, never mutated, by later speak/stop calls."""

    text: str
    voice: str
    path: SpeechPath


@dataclass(frozen=True)
class SpeechStatus:
    """Observable status pushed to listeners on every change."""

    state: SpeechState = SpeechState.IDLE
    is_session_open: bool = False

    @property
    def is_speaking(self) -> bool:
        return self.state is not SpeechState.IDLE


# Streaming session events, consumed by the orchestrator in arrival order


@dataclass(frozen=True)
class AudioFrame:
    """Raw linear16 PCM from the provider."""
    data: bytes


@dataclass(frozen=True)
class ControlFrame:
    """Parsed JSON control message from the provider (Metadata, Flushed, Warning, ...)."""
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SessionClosed:
    """Session ended on the provider side or by a transport error. Emitted once."""
    error: Optional[Exception] = None


SessionEvent = Union[AudioFrame, ControlFrame, SessionClosed]
