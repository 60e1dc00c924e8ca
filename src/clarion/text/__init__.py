"""Text preparation: segmentation and voice selection."""

from .chunker import MAX_CHUNK_LENGTH, chunk
from .language import LANGUAGE_VOICES, resolve_voice

__all__ = ["LANGUAGE_VOICES", "MAX_CHUNK_LENGTH", "chunk", "resolve_voice"]
