"""Split text into provider-sized segments at sentence and clause boundaries."""

from __future__ import annotations

import re
from typing import List, Optional

MAX_CHUNK_LENGTH = 200

# Sentence terminators. Latin punctuation must be followed by whitespace so
# decimals ("3.14") and dotted names ("example.com") never split; CJK full-width
# terminators are not followed by spaces in running text.
_SENTENCE_END = re.compile(
    r"(?:\.\.\.|[.!?…])+[\"'”’)\]]*\s+"
    r"|[。！？]+[\"'”’)\]」』]*\s*"
)

# Clause boundaries: ", " before a coordinating conjunction, or after "; " / ": "
_CLAUSE_BOUNDARY = re.compile(
    r"(?<=,\s)(?=(?:and|but|or|so|yet)\s)|(?<=;\s)|(?<=:\s)",
    re.IGNORECASE,
)

_WORD = re.compile(r"\w")
_LAST_TOKEN = re.compile(r"(\S+)$")

ABBREVIATIONS = frozenset({
    "mr", "mrs", "ms", "dr", "prof", "sr", "jr", "st", "mt", "vs", "etc",
    "e.g", "i.e", "no", "fig", "inc", "ltd", "co", "approx", "dept",
})


def _is_abbreviation(text: str, boundary: re.Match) -> bool:
    """A single '.' after a known abbreviation or an initial is not a sentence end."""
    if boundary.group(0).rstrip()[:1] != "." or boundary.group(0).startswith(".."):
        return False
    token = _LAST_TOKEN.search(text[: boundary.start()])
    if token is None:
        return False
    word = token.group(1).lstrip("\"'(“‘[")
    if len(word) == 1 and word.isalpha() and word.isupper():
        return True
    return word.lower() in ABBREVIATIONS


def split_sentences(text: str) -> List[str]:
    """Split into sentences; each keeps its trailing whitespace."""
    sentences: List[str] = []
    start = 0
    for boundary in _SENTENCE_END.finditer(text):
        if _is_abbreviation(text, boundary):
            continue
        sentences.append(text[start : boundary.end()])
        start = boundary.end()
    if start < len(text):
        sentences.append(text[start:])
    return [s for s in sentences if s]


def _last_whitespace(window: str) -> Optional[int]:
    for i in range(len(window) - 1, -1, -1):
        if window[i].isspace():
            return i
    return None


def split_by_length(text: str, max_length: int = MAX_CHUNK_LENGTH) -> List[str]:
    """
    Split at the last whitespace at-or-before max_length; hard split when the
    window has none. Always makes progress, so a single huge token terminates.
    """
    pieces: List[str] = []
    remaining = text
    while remaining:
        if len(remaining) <= max_length:
            pieces.append(remaining)
            break
        window = remaining[:max_length]
        space = _last_whitespace(window)
        cut = max_length if space is None else space + 1
        pieces.append(remaining[:cut])
        remaining = remaining[cut:]
    return pieces


def split_at_clauses(text: str, max_length: int = MAX_CHUNK_LENGTH) -> List[str]:
    parts = [p for p in _CLAUSE_BOUNDARY.split(text) if p.strip()]
    if len(parts) <= 1:
        return split_by_length(text, max_length)

    result: List[str] = []
    for part in parts:
        if len(part) <= max_length:
            result.append(part)
        else:
            result.extend(split_by_length(part, max_length))
    return result


def chunk(text: str, max_length: int = MAX_CHUNK_LENGTH) -> List[str]:
    """
    Break text into ordered segments of at most max_length characters.

    Sentences that fit are kept whole; longer ones are split at clause
    boundaries and then by length. Segments without any word character
    (stray punctuation, whitespace) are dropped.
    """
    trimmed = text.strip()
    if not trimmed:
        return []

    sentences = split_sentences(trimmed) or [trimmed]

    chunks: List[str] = []
    for sentence in sentences:
        if len(sentence) <= max_length:
            chunks.append(sentence)
        else:
            chunks.extend(split_at_clauses(sentence, max_length))

    return [c for c in chunks if _WORD.search(c)]
