"""Tests for AudioStreamPlayer."""

import queue
import random
import threading

import numpy as np
import pytest
from unittest.mock import MagicMock

from clarion.audio.output.player import AudioStreamPlayer, pcm16_to_float32
from clarion.core.errors import PlaybackError


def _pcm(*samples):
    return np.array(samples, dtype="<i2").tobytes()


@pytest.fixture
def drained():
    return MagicMock()


@pytest.fixture
def player(sinks, drained):
    return AudioStreamPlayer(sink_factory=sinks, on_drained=drained)


def test_pcm16_to_float32_scales_and_clips():
    out = pcm16_to_float32(_pcm(0, 32767, -32768, 16384))
    assert out.dtype == np.float32
    assert out[0] == 0.0
    assert out[1] == pytest.approx(1.0)
    assert out[2] == -1.0
    assert out[3] == pytest.approx(16384 / 32767)


def test_start_is_idempotent(player, sinks):
    player.start()
    player.start()
    assert len(sinks.sinks) == 1
    assert sinks.sinks[0].started
    assert sinks.sinks[0].sample_rate == 48000
    assert player.is_playing


def test_start_propagates_playback_error():
    def failing_factory(sample_rate, channels):
        sink = MagicMock()
        sink.start.side_effect = PlaybackError("no device")
        return sink

    player = AudioStreamPlayer(sink_factory=failing_factory)
    with pytest.raises(PlaybackError):
        player.start()
    assert not player.is_playing


def test_enqueue_before_start_is_ignored(player):
    player.enqueue(_pcm(1, 2))
    assert player.scheduled_count == 0


def test_enqueue_counts_and_completions(player, sinks):
    player.start()
    player.enqueue(_pcm(1, 2, 3))
    player.enqueue(_pcm(4))
    player.enqueue(b"")
    sink = sinks.sinks[0]
    assert player.scheduled_count == 2
    assert len(sink.scheduled[0].frames) == 3

    sink.complete_next()
    assert player.completed_count == 1


def test_odd_byte_is_carried_to_next_chunk(player, sinks):
    player.start()
    data = _pcm(258, 3)
    player.enqueue(data[:1])
    assert player.scheduled_count == 0
    player.enqueue(data[1:])
    frames = sinks.sinks[0].scheduled[0].frames
    assert frames[0] == pytest.approx(258 / 32767)
    assert frames[1] == pytest.approx(3 / 32767)


def test_drained_waits_for_finish(player, sinks, drained):
    player.start()
    player.enqueue(_pcm(1))
    player.enqueue(_pcm(2))
    sinks.sinks[0].complete_all()
    drained.assert_not_called()

    player.finish()
    drained.assert_called_once()


def test_drained_fires_once_after_last_completion(player, sinks, drained):
    player.start()
    player.enqueue(_pcm(1))
    player.enqueue(_pcm(2))
    player.finish()
    sink = sinks.sinks[0]

    sink.complete_next()
    drained.assert_not_called()
    sink.complete_next()
    drained.assert_called_once()

    player.finish()
    drained.assert_called_once()


def test_finish_with_nothing_scheduled_drains_immediately(player, drained):
    player.start()
    player.finish()
    drained.assert_called_once()


def test_drained_goes_through_dispatch(sinks):
    on_drained = MagicMock()
    dispatch = MagicMock()
    player = AudioStreamPlayer(sink_factory=sinks, on_drained=on_drained, dispatch=dispatch)
    player.start()
    player.finish()
    dispatch.assert_called_once_with(on_drained)
    on_drained.assert_not_called()


def test_stop_before_start(player, sinks):
    player.stop()
    player.start()
    assert sinks.sinks == []
    assert not player.is_playing


def test_stop_twice_resets_counters(player, sinks):
    player.start()
    player.enqueue(_pcm(1))
    sinks.sinks[0].complete_all()
    player.stop()
    player.stop()
    assert player.scheduled_count == 0
    assert player.completed_count == 0
    assert sinks.sinks[0].stopped


def test_completion_after_stop_is_ignored(player, sinks, drained):
    player.start()
    player.enqueue(_pcm(1))
    player.finish()
    sink = sinks.sinks[0]
    player.stop()

    sink.complete_all()
    assert player.completed_count == 0
    drained.assert_not_called()


def test_stop_with_drain_lets_sink_play_out(player, sinks):
    player.start()
    player.stop(drain=True)
    sink = sinks.sinks[0]
    assert sink.drained
    assert not sink.stopped
    assert not player.is_playing


def test_stop_during_start_releases_new_sink(sinks):
    player = None

    def factory(sample_rate, channels):
        sink = sinks(sample_rate, channels)
        # stop() arrives while the device is still opening
        sink.start = lambda: player.stop()
        return sink

    player = AudioStreamPlayer(sink_factory=factory)
    player.start()
    assert not player.is_playing
    assert sinks.sinks[0].stopped


class _AudioThreadSink:
    """Sink whose completions are fired by a separate thread, like the PortAudio callback."""

    def __init__(self, sample_rate, channels):
        self.completions = queue.Queue()

    def start(self):
        pass

    def schedule(self, buffer, on_complete):
        self.completions.put(on_complete)

    def drain(self):
        pass

    def stop(self):
        pass


def test_completions_from_audio_thread_never_overtake_scheduled(drained):
    sinks = []

    def factory(sample_rate, channels):
        sinks.append(_AudioThreadSink(sample_rate, channels))
        return sinks[-1]

    player = AudioStreamPlayer(sink_factory=factory, on_drained=drained)
    player.start()
    completions = sinks[0].completions
    feeding_done = threading.Event()
    violations = []

    def audio_thread():
        while not (feeding_done.is_set() and completions.empty()):
            try:
                on_complete = completions.get(timeout=0.01)
            except queue.Empty:
                continue
            on_complete()
            completed = player.completed_count
            if completed > player.scheduled_count:
                violations.append(completed)

    thread = threading.Thread(target=audio_thread, daemon=True)
    thread.start()
    for i in range(500):
        player.enqueue(_pcm(i, -i))
        assert player.completed_count <= player.scheduled_count
        if i == 250:
            drained.assert_not_called()
    player.finish()
    feeding_done.set()
    thread.join(timeout=5.0)

    assert not thread.is_alive()
    assert violations == []
    assert player.scheduled_count == 500
    assert player.completed_count == 500
    drained.assert_called_once()


@pytest.mark.parametrize("seed", range(20))
def test_drained_once_in_any_ordering(sinks, drained, seed):
    rng = random.Random(seed)
    player = AudioStreamPlayer(sink_factory=sinks, on_drained=drained)
    player.start()
    sink = sinks.sinks[0]
    to_enqueue = rng.randint(0, 8)
    finished = False

    while to_enqueue or not finished or sink._pending:
        actions = []
        if to_enqueue:
            actions.append("enqueue")
        if sink._pending:
            actions.append("complete")
        if not finished and not to_enqueue:
            actions.append("finish")
        action = rng.choice(actions)
        if action == "enqueue":
            player.enqueue(_pcm(1))
            to_enqueue -= 1
        elif action == "complete":
            sink.complete_next()
        else:
            player.finish()
            finished = True
        assert player.completed_count <= player.scheduled_count
        if not finished:
            drained.assert_not_called()

    drained.assert_called_once()


def test_stereo_buffer_frame_count(sinks):
    player = AudioStreamPlayer(channels=2, sink_factory=sinks)
    player.start()
    player.enqueue(_pcm(1, 2, 3, 4, 5, 6))
    buffer = sinks.sinks[0].scheduled[0]
    assert buffer.channels == 2
    assert buffer.frame_count == 3
