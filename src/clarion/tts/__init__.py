"""Deepgram text-to-speech transports."""

from .rest import DeepgramRestClient
from .session import StreamingSession

__all__ = ["DeepgramRestClient", "StreamingSession"]
