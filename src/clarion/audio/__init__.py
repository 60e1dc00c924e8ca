"""Audio subsystem for speech playback."""

from .output import AudioStreamPlayer, SoundDeviceSink, decode_wav

__all__ = ["AudioStreamPlayer", "SoundDeviceSink", "decode_wav"]
