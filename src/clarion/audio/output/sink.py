"""sounddevice output sink (callback mode)."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable, Deque, Optional, Tuple

import numpy as np
import sounddevice as sd

from ...core.errors import PlaybackError
from .types import CHANNELS, SAMPLE_RATE, PlaybackBuffer

logger = logging.getLogger("Sink")

# Callback block size: ~10 ms at 48 kHz
PLAYBACK_BLOCKSIZE = 480


class SoundDeviceSink:
    """
    Plays scheduled PlaybackBuffers through a sounddevice OutputStream.

    The PortAudio callback drains buffers strictly in schedule order and calls
    each buffer's completion once its last frame has been handed to the device.
    On underrun the callback writes silence and keeps the stream open.
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        channels: int = CHANNELS,
        *,
        blocksize: int = PLAYBACK_BLOCKSIZE,
        device: Optional[int] = None,
    ):
        self._sample_rate = sample_rate
        self._channels = channels
        self._blocksize = blocksize
        self._device = device
        self._pending: Deque[Tuple[PlaybackBuffer, Callable[[], None]]] = deque()
        self._offset = 0
        self._lock = threading.Lock()
        self._stream: Optional[sd.OutputStream] = None

    @property
    def active(self) -> bool:
        return self._stream is not None

    def start(self) -> None:
        if self._stream is not None:
            return
        logger.info(
            "Opening OutputStream sr=%s ch=%s blocksize=%s",
            self._sample_rate,
            self._channels,
            self._blocksize,
        )
        try:
            stream = sd.OutputStream(
                samplerate=self._sample_rate,
                channels=self._channels,
                dtype="float32",
                blocksize=self._blocksize,
                device=self._device,
                callback=self._callback,
            )
            stream.start()
        except Exception as e:
            raise PlaybackError(f"Failed to open output stream: {e}") from e
        self._stream = stream

    def schedule(self, buffer: PlaybackBuffer, on_complete: Callable[[], None]) -> None:
        with self._lock:
            self._pending.append((buffer, on_complete))

    def _callback(self, outdata: np.ndarray, frames: int, time_info: object, status: sd.CallbackFlags) -> None:
        if status:
            logger.warning("Sink: callback status=%s", status)

        need = frames * self._channels
        out = np.zeros(need, dtype=np.float32)
        filled = 0
        finished: list[Callable[[], None]] = []

        with self._lock:
            while filled < need and self._pending:
                buffer, on_complete = self._pending[0]
                take = min(len(buffer.frames) - self._offset, need - filled)
                out[filled : filled + take] = buffer.frames[self._offset : self._offset + take]
                filled += take
                self._offset += take
                if self._offset >= len(buffer.frames):
                    self._pending.popleft()
                    self._offset = 0
                    buffer.completed = True
                    finished.append(on_complete)

        outdata[:] = out.reshape(frames, self._channels)

        # Outside the lock: completions take the player's own lock
        for on_complete in finished:
            try:
                on_complete()
            except Exception:
                logger.exception("Sink: buffer completion callback failed")

    def drain(self) -> None:
        """Let audio already handed to the device play out, then close (blocks)."""
        self._close(graceful=True)

    def stop(self) -> None:
        """Cut playback immediately and drop anything not yet played."""
        self._close(graceful=False)

    def _close(self, *, graceful: bool) -> None:
        stream, self._stream = self._stream, None
        with self._lock:
            self._pending.clear()
            self._offset = 0
        if stream is None:
            return
        try:
            if stream.active:
                # stop() waits for queued device buffers; abort() discards them
                if graceful:
                    stream.stop()
                else:
                    stream.abort()
            stream.close()
        except Exception as e:
            logger.warning("Error closing playback stream: %s", e)
        logger.info("Sink: stream closed (%s)", "drained" if graceful else "aborted")
