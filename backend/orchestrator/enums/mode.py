"""
Speech output mode enumeration.

Modes are orthogonal to control states:
- State answers: "Where is the call in its lifecycle?"
- Mode answers:  "Which path produces the audio the caller hears?"
"""

from __future__ import annotations

from enum import Enum


class OutputMode(str, Enum):
    """
    EMBEDDED:
        Audio produced by the realtime speech gateway is played as-is.

    EXTERNAL:
        Gateway audio is dropped; finalized agent text is synthesized by an
        external TTS provider. A provider failure reverts to EMBEDDED for the
        rest of the session.
    """

    EMBEDDED = "EMBEDDED"
    EXTERNAL = "EXTERNAL"
