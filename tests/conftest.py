import asyncio
import io
import wave

import numpy as np
import pytest

from clarion.config.settings import ClarionConfig
from clarion.core.events import AudioFrame, ControlFrame, SessionClosed


class FakeSink:
    """AudioSink that records scheduled buffers; completions are fired by the test."""

    def __init__(self, sample_rate=48000, channels=1):
        self.sample_rate = sample_rate
        self.channels = channels
        self.started = False
        self.stopped = False
        self.drained = False
        self.scheduled = []
        self._pending = []

    def start(self):
        self.started = True

    def schedule(self, buffer, on_complete):
        self.scheduled.append(buffer)
        self._pending.append(on_complete)

    def drain(self):
        self.drained = True

    def stop(self):
        self.stopped = True

    @property
    def closed(self):
        return self.stopped or self.drained

    def complete_next(self):
        self._pending.pop(0)()

    def complete_all(self):
        while self._pending:
            self.complete_next()


class SinkRecorder:
    """Sink factory that keeps every sink it creates."""

    def __init__(self):
        self.sinks = []

    def __call__(self, sample_rate, channels):
        sink = FakeSink(sample_rate, channels)
        self.sinks.append(sink)
        return sink


class FakeSession:
    """In-memory stand-in for StreamingSession."""

    def __init__(self, *, connect_error=None, auto_ack=True):
        self.events = asyncio.Queue()
        self.sent = []
        self.voice = None
        self.flushes_sent = 0
        self._connect_error = connect_error
        self._auto_ack = auto_ack
        self._open = False

    @property
    def is_open(self):
        return self._open

    async def connect(self, api_key, voice):
        if self._connect_error is not None:
            raise self._connect_error
        self.voice = voice
        self._open = True

    async def send(self, text):
        if self._open:
            self.sent.append(("Speak", text))

    async def flush(self):
        if not self._open:
            return
        self.sent.append(("Flush", None))
        self.flushes_sent += 1
        if self._auto_ack:
            self.events.put_nowait(ControlFrame(type="Flushed"))

    async def clear(self):
        if self._open:
            self.sent.append(("Clear", None))

    async def close(self):
        if self._open:
            self.sent.append(("Close", None))
        self._open = False

    async def wait_closed(self):
        pass

    def push_audio(self, data):
        self.events.put_nowait(AudioFrame(data=data))

    def push_flushed(self, count=1):
        for _ in range(count):
            self.events.put_nowait(ControlFrame(type="Flushed"))

    def push_closed(self, error=None):
        self._open = False
        self.events.put_nowait(SessionClosed(error=error))

    def sent_types(self):
        return [kind for kind, _ in self.sent]


def make_wav(samples, sample_rate=48000, channels=1):
    """Build a 16-bit PCM WAV payload from int samples."""
    data = np.asarray(samples, dtype="<i2").tobytes()
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(channels)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(data)
    return buffer.getvalue()


async def wait_for(predicate, timeout=1.0):
    """Yield to the loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def config():
    return ClarionConfig(deepgram_api_key="test_key", language_detection=False, send_interval_ms=0)


@pytest.fixture
def sinks():
    return SinkRecorder()
