"""Clarion - read text aloud with Deepgram Aura."""

__version__ = "0.1.0"
