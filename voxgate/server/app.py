"""FastAPI application factory for Voxgate."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

import voxgate
from voxgate.server.routes import health, stream

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from voxgate.backends.interface import SpeechBackend
    from voxgate.config.settings import VoxgateSettings
    from voxgate.session.config_state import RecognitionDefaults


def create_app(
    backend: SpeechBackend | None = None,
    defaults: RecognitionDefaults | None = None,
    settings: VoxgateSettings | None = None,
    cors_origins: list[str] | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        backend: Speech backend shared by all connections. Built from
            ``settings.backend`` when omitted.
        defaults: Recognition defaults for new connections. Built from
            ``settings.recognition`` when omitted.
        settings: Settings to use (default: ``get_settings()``).
        cors_origins: List of allowed CORS origins (default: from settings).

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        from voxgate.config.settings import get_settings

        settings = get_settings()

    if backend is None:
        from voxgate.backends import create_backend

        backend = create_backend(settings.backend)

    if defaults is None:
        from voxgate.session.config_state import RecognitionDefaults

        defaults = RecognitionDefaults.from_settings(settings.recognition)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        # Shutdown: release backend clients/channels
        await app.state.backend.aclose()

    app = FastAPI(
        title="Voxgate",
        version=voxgate.__version__,
        description="Real-time audio transcription gateway over WebSocket",
        lifespan=lifespan,
    )

    app.state.backend = backend
    app.state.recognition_defaults = defaults
    app.state.prebuffer_max_bytes = settings.session.prebuffer_max_bytes
    app.state.drain_timeout_s = settings.session.drain_timeout_s
    app.state.ws_max_frame_size_bytes = settings.server.ws_max_frame_size_bytes
    app.state.ws_idle_timeout_s = settings.server.ws_idle_timeout_s
    app.state.ws_check_interval_s = settings.server.ws_check_interval_s

    if cors_origins is None:
        cors_origins = settings.server.cors_origins_list
    if cors_origins:
        from fastapi.middleware.cors import CORSMiddleware

        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(health.router)
    app.include_router(stream.router)

    return app
