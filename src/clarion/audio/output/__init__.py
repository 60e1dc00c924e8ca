"""Audio output subsystem - PCM playback.

Keep this module lightweight: import/export only.
"""

from .player import AudioStreamPlayer
from .sink import SoundDeviceSink
from .types import AudioSink, AudioSinkFactory, PlaybackBuffer
from .wav import DecodedAudio, decode_wav

__all__ = [
    "AudioSink",
    "AudioSinkFactory",
    "AudioStreamPlayer",
    "DecodedAudio",
    "PlaybackBuffer",
    "SoundDeviceSink",
    "decode_wav",
]
