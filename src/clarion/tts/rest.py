"""One-shot Deepgram REST calls: synthesis, key check, voice sample."""

from __future__ import annotations

import logging
import random
from typing import Optional

import requests

from ..core.errors import ProviderError, TransportError

logger = logging.getLogger("DeepgramREST")

DEEPGRAM_API_URL = "https://api.deepgram.com/v1"

SAMPLE_QUOTES = [
    "We are all connected in ways we don't always see. What we do for each other matters more than what we do for ourselves.",
    "The only true wisdom is in knowing you know nothing, and in that emptiness, finding room for wonder.",
    "In the middle of difficulty lies opportunity. Every obstacle is a doorway, if you have the courage to walk through it.",
    "We do not inherit the earth from our ancestors. We borrow it from our children, and we owe them a beautiful return.",
    "What matters most is how well you walk through the fire. Not the absence of flames, but the grace with which you move.",
    "Every person you meet is fighting a battle you know nothing about. Be kind. Always.",
    "The cosmos is within us. We are made of star stuff. We are a way for the universe to know itself.",
    "To live is the rarest thing in the world. Most people exist, that is all. But to truly live is to be awake to every moment.",
]


class DeepgramRestClient:
    """Blocking client for the one-shot endpoints. Run it off the event loop (asyncio.to_thread)."""

    def __init__(self, base_url: str = DEEPGRAM_API_URL, sample_rate: int = 48000):
        self._base_url = base_url.rstrip("/")
        self._sample_rate = sample_rate

    def synthesize(self, text: str, *, api_key: str, voice: str, timeout: float = 30.0) -> bytes:
        """
        Synthesize text in one request and return a WAV payload.

        Raises:
            TransportError: network failure or timeout
            ProviderError: any status other than 200
        """
        params = {
            "model": voice,
            "encoding": "linear16",
            "sample_rate": self._sample_rate,
            "container": "wav",
        }
        headers = {
            "Authorization": f"Token {api_key}",
            "Content-Type": "text/plain",
        }
        try:
            response = requests.post(
                f"{self._base_url}/speak",
                params=params,
                headers=headers,
                data=text.encode("utf-8"),
                timeout=timeout,
            )
        except requests.Timeout as e:
            raise TransportError(f"Speak request timed out after {timeout}s", stage="request") from e
        except requests.RequestException as e:
            raise TransportError(f"Speak request failed: {e}", stage="request") from e

        if response.status_code != 200:
            raise ProviderError(
                f"Speak request returned HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        logger.info("Synthesized %d chars into %d bytes (voice=%s)", len(text), len(response.content), voice)
        return response.content

    def test_connection(self, api_key: str, timeout: float = 10.0) -> bool:
        """True when the key is accepted by the auth endpoint."""
        if not api_key:
            return False
        try:
            response = requests.get(
                f"{self._base_url}/auth/token",
                headers={"Authorization": f"Token {api_key}"},
                timeout=timeout,
            )
        except requests.RequestException as e:
            logger.error("Auth test failed: %s", e)
            return False
        if response.status_code != 200:
            logger.warning("Auth test returned HTTP %d", response.status_code)
            return False
        return True

    def fetch_sample(self, api_key: str, voice: str, timeout: float = 15.0) -> Optional[bytes]:
        """WAV audio of a short quote in the given voice, or None on any failure."""
        if not api_key:
            return None
        quote = random.choice(SAMPLE_QUOTES)
        try:
            return self.synthesize(quote, api_key=api_key, voice=voice, timeout=timeout)
        except (ProviderError, TransportError) as e:
            logger.error("Voice sample failed: %s", e)
            return None
