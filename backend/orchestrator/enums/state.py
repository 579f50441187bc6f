"""
Authoritative session state enumeration.

Rules:
- This enum defines ONLY the control-plane states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class State(str, Enum):
    """
    Lifecycle of a single scheduling call.

    CONNECTING -> GREETING -> CONVERSING <-> AWAITING_TOOL -> DISCONNECTED

    Turn-taking details (agent speaking, waiting for the caller) are
    orthogonal sub-flags, not states.
    """

    CONNECTING = "CONNECTING"
    GREETING = "GREETING"
    CONVERSING = "CONVERSING"
    AWAITING_TOOL = "AWAITING_TOOL"
    DISCONNECTED = "DISCONNECTED"
