"""Incremental playback of linear16 PCM as it arrives."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

import numpy as np

from .sink import SoundDeviceSink
from .types import CHANNELS, SAMPLE_RATE, AudioSink, AudioSinkFactory, PlaybackBuffer

logger = logging.getLogger("Player")

INT16_SCALE = 32767.0

Dispatch = Callable[[Callable[[], None]], object]


def _call_now(fn: Callable[[], None]) -> None:
    fn()


def pcm16_to_float32(pcm: bytes) -> np.ndarray:
    """Little-endian int16 samples to float32 in [-1.0, 1.0], order preserved."""
    samples = np.frombuffer(pcm, dtype="<i2")
    return np.clip(samples.astype(np.float32) / INT16_SCALE, -1.0, 1.0)


class AudioStreamPlayer:
    """
    Schedules PCM buffers on an AudioSink for gapless playback of one utterance.

    Scheduled and completed buffer counts share one lock because completions
    arrive on the audio thread while enqueue() runs on the caller's. The
    drained notification fires once, after finish() has been called and every
    scheduled buffer has completed; it is handed to `dispatch` so the caller
    decides which thread/loop runs it. Not reusable after stop().
    """

    def __init__(
        self,
        *,
        sample_rate: int = SAMPLE_RATE,
        channels: int = CHANNELS,
        sink_factory: Optional[AudioSinkFactory] = None,
        on_drained: Optional[Callable[[], None]] = None,
        dispatch: Optional[Dispatch] = None,
    ):
        self._sample_rate = sample_rate
        self._channels = channels
        self._sink_factory: AudioSinkFactory = sink_factory or SoundDeviceSink
        self._on_drained = on_drained
        self._dispatch: Dispatch = dispatch or _call_now

        self._sink: Optional[AudioSink] = None
        self._lock = threading.Lock()
        self._scheduled = 0
        self._completed = 0
        self._input_finished = False
        self._drained_fired = False
        # Bumped on stop() so completions from a torn-down sink are ignored
        self._generation = 0
        self._remainder = b""
        self._stopped = False

    @property
    def is_playing(self) -> bool:
        return self._sink is not None

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def scheduled_count(self) -> int:
        with self._lock:
            return self._scheduled

    @property
    def completed_count(self) -> int:
        with self._lock:
            return self._completed

    def start(self) -> None:
        """Open the sink. Idempotent; raises PlaybackError if the device cannot be opened."""
        with self._lock:
            if self._sink is not None:
                return
            if self._stopped:
                logger.warning("Player: start() after stop() ignored")
                return
        sink = self._sink_factory(self._sample_rate, self._channels)
        sink.start()
        with self._lock:
            # stop() may land while the device opens on another thread
            attached = not self._stopped
            if attached:
                self._sink = sink
        if not attached:
            sink.stop()
            return
        logger.debug("Player: started sr=%s ch=%s", self._sample_rate, self._channels)

    def enqueue(self, pcm: bytes) -> None:
        sink = self._sink
        if sink is None or not pcm:
            return

        data = self._remainder + pcm
        usable = len(data) - len(data) % 2
        self._remainder = data[usable:]
        if usable == 0:
            return

        buffer = PlaybackBuffer(frames=pcm16_to_float32(data[:usable]), channels=self._channels)

        with self._lock:
            if self._sink is not sink:
                return
            self._scheduled += 1
            index = self._scheduled
            generation = self._generation

        logger.debug("Player: scheduling buffer %d (%d frames)", index, buffer.frame_count)

        sink.schedule(buffer, lambda: self._buffer_completed(generation))

    def finish(self) -> None:
        """No more buffers will be enqueued; drained fires once everything scheduled has played."""
        with self._lock:
            if self._stopped or self._input_finished:
                return
            self._input_finished = True
            fire = self._check_drained_locked()
        if fire:
            self._notify_drained()

    def _buffer_completed(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._completed += 1
            fire = self._check_drained_locked()
        if fire:
            self._notify_drained()

    def _check_drained_locked(self) -> bool:
        if self._drained_fired or not self._input_finished:
            return False
        if self._completed < self._scheduled:
            return False
        self._drained_fired = True
        return True

    def _notify_drained(self) -> None:
        logger.info("Player: all buffers drained (%d)", self._completed)
        if self._on_drained is not None:
            self._dispatch(self._on_drained)

    def stop(self, *, drain: bool = False) -> None:
        """
        Release the sink and reset counters. Safe to call any time.

        With drain=True audio already handed to the device plays out first
        (blocks briefly, so call it off the event loop); otherwise playback is
        cut immediately.
        """
        with self._lock:
            sink, self._sink = self._sink, None
            self._scheduled = 0
            self._completed = 0
            self._generation += 1
            self._stopped = True
        self._remainder = b""
        # Outside the lock: closing the stream waits for the audio callback,
        # which takes this lock to report completions
        if sink is not None:
            try:
                if drain:
                    sink.drain()
                else:
                    sink.stop()
            except Exception as e:
                logger.warning("Player: error stopping sink: %s", e)
