"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No orchestration logic
- No behavioral constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import DEFAULT_APPOINTMENT_MINUTES, DEFAULT_CALENDAR_ID, SLOT_MINUTES_DEFAULT


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the app factory and each SessionGateway.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool = True

    # ------------------------------------------------------------------
    # Realtime speech gateway
    # ------------------------------------------------------------------

    openai_api_key: str | None = None
    realtime_model: str = "gpt-4o-realtime-preview-2024-12-17"
    realtime_url: str = "wss://api.openai.com/v1/realtime"
    realtime_voice: str = "alloy"

    # ------------------------------------------------------------------
    # Calendar provider
    # ------------------------------------------------------------------

    google_calendar_access_token: str | None = None
    google_calendar_api_base: str = "https://www.googleapis.com/calendar/v3"
    default_calendar_id: str = DEFAULT_CALENDAR_ID

    # ------------------------------------------------------------------
    # Scheduling policy
    # ------------------------------------------------------------------

    # Length of an appointment when the caller gives only a start time.
    default_appointment_minutes: int = DEFAULT_APPOINTMENT_MINUTES
    # Slot size used when offering alternatives for a busy time.
    alternative_slot_minutes: int = SLOT_MINUTES_DEFAULT

    # ------------------------------------------------------------------
    # TTS (alternate speech output path)
    # ------------------------------------------------------------------

    tts_provider: str = "none"
    elevenlabs_api_key: str | None = None
    elevenlabs_voice_id: str | None = None
    elevenlabs_model_id: str = "eleven_turbo_v2"
    speechmatics_api_key: str | None = None
    speechmatics_voice: str = "sarah"

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable is not an integer.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",

            openai_api_key=os.environ.get("OPENAI_API_KEY"),
            realtime_model=os.environ.get(
                "OPENAI_REALTIME_MODEL", "gpt-4o-realtime-preview-2024-12-17"
            ),
            realtime_url=os.environ.get(
                "OPENAI_REALTIME_URL", "wss://api.openai.com/v1/realtime"
            ),
            realtime_voice=os.environ.get("OPENAI_REALTIME_VOICE", "alloy"),

            google_calendar_access_token=os.environ.get("GOOGLE_CALENDAR_ACCESS_TOKEN"),
            google_calendar_api_base=os.environ.get(
                "GOOGLE_CALENDAR_API_BASE", "https://www.googleapis.com/calendar/v3"
            ),
            default_calendar_id=os.environ.get("DEFAULT_CALENDAR_ID", DEFAULT_CALENDAR_ID),

            default_appointment_minutes=int(
                os.environ.get("DEFAULT_APPOINTMENT_MINUTES", DEFAULT_APPOINTMENT_MINUTES)
            ),
            alternative_slot_minutes=int(
                os.environ.get("ALTERNATIVE_SLOT_MINUTES", SLOT_MINUTES_DEFAULT)
            ),

            tts_provider=os.environ.get("TTS_PROVIDER", "none").lower(),
            elevenlabs_api_key=os.environ.get("ELEVENLABS_API_KEY"),
            elevenlabs_voice_id=os.environ.get("ELEVENLABS_VOICE_ID"),
            elevenlabs_model_id=os.environ.get("ELEVENLABS_MODEL_ID", "eleven_turbo_v2"),
            speechmatics_api_key=os.environ.get("SPEECHMATICS_API_KEY"),
            speechmatics_voice=os.environ.get("SPEECHMATICS_VOICE", "sarah"),
        )
