"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for the behavioral tunables of the scheduling agent.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Deployment-specific values (keys, URLs) belong in config.py instead.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Availability Engine
# =============================================================================

# Point checks wider than this must use slot listing instead.
POINT_CHECK_MAX_WINDOW_S: Final[int] = 4 * 60 * 60

SLOT_MINUTES_DEFAULT: Final[int] = 60
SLOT_MINUTES_MIN: Final[int] = 5
SLOT_MINUTES_MAX: Final[int] = 240

BUSINESS_HOURS_START_DEFAULT: Final[str] = "09:00"
BUSINESS_HOURS_END_DEFAULT: Final[str] = "17:00"

# Inclusive end of the calendar day window queried for slot listing.
DAY_WINDOW_START: Final[Tuple[int, int, int]] = (0, 0, 0)
DAY_WINDOW_END: Final[Tuple[int, int, int]] = (23, 59, 59)

DEFAULT_CALENDAR_ID: Final[str] = "primary"
DEFAULT_APPOINTMENT_MINUTES: Final[int] = 60
DEFAULT_CUSTOMER_NAME: Final[str] = "Customer"

# Access roles that may be written to when resolving an empty selection.
WRITABLE_CALENDAR_ROLES: Final[Tuple[str, ...]] = ("owner", "writer")

# =============================================================================
# Calendar Provider (HTTP)
# =============================================================================

CALENDAR_HTTP_TIMEOUT_S: Final[float] = 8.0
CALENDAR_BOOKING_HTTP_TIMEOUT_S: Final[float] = 10.0
PROVIDER_ERROR_MESSAGE_MAX_CHARS: Final[int] = 200

# =============================================================================
# Tool-Call Coordination
# =============================================================================

TOOL_REPROMPT_TIMEOUT_MS: Final[int] = 2_000
TOOL_FALLBACK_TIMEOUT_MS: Final[int] = 3_500

# Re-prompts issued per forced tool requirement.
TOOL_REPROMPT_MAX: Final[int] = 1

# Invalid or unreadable argument payloads are reported with this message.
INVALID_TOOL_ARGUMENTS_MESSAGE: Final[str] = "Invalid tool arguments"
TOOL_ARGUMENTS_TIMEOUT_MESSAGE: Final[str] = "Tool call timed out before its arguments arrived"

# Names a model uses when it omits the tool name.
UNNAMED_TOOL_NAMES: Final[Tuple[str, ...]] = ("", "unknown")

# =============================================================================
# Turn-Taking
# =============================================================================

UTTERANCE_DEBOUNCE_MS: Final[int] = 900
VAD_SILENCE_DURATION_MS: Final[int] = 1_000
MEANINGFUL_MIN_CHARS: Final[int] = 2

MEANINGFUL_KEYWORDS: Final[Tuple[str, ...]] = (
    "yes", "yeah", "yep", "sure", "okay", "ok", "no", "not", "busy",
    "later", "schedule", "appointment", "property", "budget", "name",
    "email", "phone",
)

DAY_KEYWORDS: Final[Tuple[str, ...]] = (
    "today", "tomorrow", "monday", "tuesday", "wednesday", "thursday",
    "friday", "saturday", "sunday", "this week", "availability", "free",
    "open",
)

# =============================================================================
# Scripted Replies
# =============================================================================

# Alternatives read out when a requested time is busy.
SPOKEN_SLOT_OPTIONS_MAX: Final[int] = 5

SPOKEN_TIME_FORMAT: Final[str] = "%I:%M %p"
SPOKEN_RANGE_SEPARATOR: Final[str] = " to "

# =============================================================================
# Realtime Session
# =============================================================================

REALTIME_INPUT_TRANSCRIPTION_MODEL: Final[str] = "gpt-4o-transcribe"
REALTIME_MODALITIES: Final[Tuple[str, ...]] = ("audio", "text")
DEFAULT_LANGUAGE: Final[str] = "en-US"
TRANSPORT_MAX_MESSAGE_BYTES: Final[int] = 2**22

# =============================================================================
# Speech Output
# =============================================================================

ELEVENLABS_OUTPUT_FORMAT: Final[str] = "mp3_44100_128"
ELEVENLABS_CONTENT_TYPE: Final[str] = "audio/mpeg"
ELEVENLABS_DEFAULT_VOICE_ID: Final[str] = "21m00Tcm4TlvDq8ikWAM"
SPEECHMATICS_CONTENT_TYPE: Final[str] = "audio/pcm;rate=16000"
PROVIDER_CHUNK_SIZE: Final[int] = 4096
