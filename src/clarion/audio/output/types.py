"""Audio output data types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol, runtime_checkable

import numpy as np

# Deepgram linear16 output: signed 16-bit PCM, 48 kHz, mono
SAMPLE_RATE = 48000
CHANNELS = 1


@dataclass
class PlaybackBuffer:
    """One scheduled unit of decoded audio (float32, interleaved)."""

    frames: np.ndarray
    channels: int = CHANNELS
    completed: bool = False

    @property
    def frame_count(self) -> int:
        return len(self.frames) // self.channels


@runtime_checkable
class AudioSink(Protocol):
    """Protocol for audio output destinations. Buffers play in schedule order."""

    def start(self) -> None:
        """Open the output device."""
        ...

    def schedule(self, buffer: PlaybackBuffer, on_complete: Callable[[], None]) -> None:
        """Queue buffer after everything already scheduled; on_complete fires once it has played."""
        ...

    def drain(self) -> None:
        """Let audio already handed to the device finish playing, then close."""
        ...

    def stop(self) -> None:
        """Halt output and drop anything not yet played."""
        ...


AudioSinkFactory = Callable[[int, int], AudioSink]
