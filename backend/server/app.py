"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Initialize shared resources (calendar provider, availability engine)
- Register routes
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adapters.calendar.base import CalendarProvider
from adapters.calendar.google import GoogleCalendarProvider, static_token
from config import AppConfig
from observability import logger
from server.routes import register_routes
from services.availability import AvailabilityEngine


def create_app(
    config: AppConfig | None = None,
    calendar_provider: CalendarProvider | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with a fake calendar provider
    - Environment-specific setup
    - ASGI server compatibility
    """
    config = config or AppConfig.load_from_env()
    logger.configure(enabled=config.enable_json_logs)

    # Calendar provider is created ONCE per process
    provider = calendar_provider or build_calendar_provider(config)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        if isinstance(provider, GoogleCalendarProvider):
            await provider.aclose()

    app = FastAPI(title="Voice Scheduling Agent API", lifespan=lifespan)

    app.state.config = config
    app.state.calendar_provider = provider
    app.state.engine = AvailabilityEngine(
        provider=provider,
        default_calendar_id=config.default_calendar_id,
    )

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    return app


def build_calendar_provider(config: AppConfig) -> CalendarProvider:
    """Build the Google Calendar provider from environment configuration."""
    token = config.google_calendar_access_token
    if not token:
        raise RuntimeError("GOOGLE_CALENDAR_ACCESS_TOKEN environment variable not set")

    return GoogleCalendarProvider(
        token_source=static_token(token),
        api_base=config.google_calendar_api_base,
    )
