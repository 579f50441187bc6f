"""
Error taxonomy for the scheduling agent.

Every error carries a stable ``code`` used in tool results sent back to the
speech model and in HTTP error bodies.

Propagation:
- BroadWindow / InvalidArguments / MissingField / Provider / SlotConflict
  are recovered locally into scripted replies; they never end a session.
- TransportError ends the session and is surfaced to the operator.
"""

from __future__ import annotations

from typing import Any


class SchedulingError(Exception):
    """Base class for all scheduling agent errors."""

    code = "scheduling_error"

    def to_result(self) -> dict[str, Any]:
        """Serializable form used for tool results and HTTP bodies."""
        return {"error": self.code, "message": str(self)}


class BroadWindowError(SchedulingError):
    """
    Raised when a point check spans more than the point-check threshold.

    Recoverable: the caller should list slots for the day instead.
    Carries the normalized window so the redirect can reuse it.
    """

    code = "broad_window"

    def __init__(self, message: str, *, start: str, end: str, timezone: str | None) -> None:
        super().__init__(message)
        self.start = start
        self.end = end
        self.timezone = timezone

    def to_result(self) -> dict[str, Any]:
        return {
            **super().to_result(),
            "start": self.start,
            "end": self.end,
            "timeZone": self.timezone,
        }


class InvalidArgumentsError(SchedulingError):
    """Malformed tool arguments or request fields."""

    code = "invalid_arguments"


class MissingFieldError(SchedulingError):
    """A required field is absent."""

    code = "missing_field"

    def __init__(self, message: str, *, field: str) -> None:
        super().__init__(message)
        self.field = field


class ProviderError(SchedulingError):
    """
    Calendar Provider failure (HTTP error, timeout, bad payload).

    Never treated as "available".
    """

    code = "provider_error"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SlotConflictError(SchedulingError):
    """Booking target overlaps an existing busy interval."""

    code = "conflict"

    def __init__(self, message: str, *, conflicts: tuple[Any, ...] = ()) -> None:
        super().__init__(message)
        self.conflicts = conflicts


class TransportError(SchedulingError):
    """Realtime speech gateway connection failure. Fatal to the session."""

    code = "transport_error"
