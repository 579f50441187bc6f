"""
Turn-taking predicates.
"""

from __future__ import annotations

import re

from constants import MEANINGFUL_KEYWORDS, MEANINGFUL_MIN_CHARS


_MEANINGFUL_RE = re.compile(r"\b(" + "|".join(MEANINGFUL_KEYWORDS) + r")\b", re.IGNORECASE)


def is_meaningful(text: str | None) -> bool:
    """
    True when an utterance should count as the caller taking the floor.

    Background noise tends to transcribe as single characters; keywords
    count regardless of length.
    """
    trimmed = (text or "").strip()
    if not trimmed:
        return False
    if _MEANINGFUL_RE.search(trimmed):
        return True
    return len(trimmed) >= MEANINGFUL_MIN_CHARS
