"""
Tool enumerations.
"""

from __future__ import annotations

from enum import Enum


class ToolName(str, Enum):
    """Tools declared to the speech model. Values are the wire names."""

    CHECK_AVAILABILITY = "checkAvailability"
    GET_AVAILABLE_SLOTS = "getAvailableSlots"
    BOOK_APPOINTMENT = "bookAppointment"


class ToolStatus(str, Enum):
    """
    Lifecycle of one tool invocation.

    PENDING, ARGUMENTS_COMPLETE and EXECUTING are in flight; at most one
    invocation per session is in flight.
    """

    PENDING = "PENDING"
    ARGUMENTS_COMPLETE = "ARGUMENTS_COMPLETE"
    EXECUTING = "EXECUTING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ToolOrigin(str, Enum):
    """
    MODEL:
        The speech model announced the call; its result is sent back on the
        same correlation id.

    FALLBACK:
        The model stalled and the orchestrator extracted the time from the
        transcript itself. There is no model call to answer.
    """

    MODEL = "MODEL"
    FALLBACK = "FALLBACK"
