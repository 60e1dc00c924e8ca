"""Pick an Aura voice that matches the language of the text."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from langdetect import DetectorFactory, LangDetectException, detect_langs

logger = logging.getLogger("Language")

# langdetect is probabilistic; a fixed seed keeps voice choice deterministic
DetectorFactory.seed = 0

# Short phrases ("Call me later") are too ambiguous to switch voice on
MIN_DETECT_CHARS = 20
MIN_CONFIDENCE = 0.9

# Aura 2 voice names are language-specific; English keeps the user's choice
LANGUAGE_VOICES: Dict[str, str] = {
    "fr": "aura-2-agathe-fr",
    "es": "aura-2-agustina-es",
    "ja": "aura-2-ama-ja",
    "de": "aura-2-aurelia-de",
    "nl": "aura-2-beatrix-nl",
    "it": "aura-2-cesare-it",
}


def detect_language(text: str) -> Optional[str]:
    """
    ISO 639-1 code of the dominant language, or None when the text is too
    short or no language reaches MIN_CONFIDENCE.
    """
    if len(text.strip()) < MIN_DETECT_CHARS:
        return None
    try:
        candidates = detect_langs(text)
    except LangDetectException:
        logger.debug("Language detection failed for text of length %d", len(text))
        return None
    if not candidates:
        return None
    best = candidates[0]
    if best.prob < MIN_CONFIDENCE:
        logger.debug("Language %s below confidence (%.2f)", best.lang, best.prob)
        return None
    return best.lang


def resolve_voice(text: str, selected_voice: str) -> str:
    """Selected voice, unless the text is confidently in a supported non-English language."""
    language = detect_language(text)
    if language is None or language == "en":
        return selected_voice
    voice = LANGUAGE_VOICES.get(language)
    if voice is None:
        return selected_voice
    logger.info("Detected %s, using %s", language, voice)
    return voice
