"""Tests for the HTTP endpoints and the app factory."""

from __future__ import annotations

import httpx

import voxgate
from tests.helpers import FakeSpeechBackend
from voxgate.backends.mock import MockSpeechBackend
from voxgate.config.settings import VoxgateSettings
from voxgate.server.app import create_app


def _transport(app: object) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=app)  # type: ignore[arg-type]


async def test_create_app_returns_fastapi_instance() -> None:
    app = create_app(backend=FakeSpeechBackend())
    assert app.title == "Voxgate"
    assert app.version == voxgate.__version__


async def test_root_returns_plain_text_banner() -> None:
    app = create_app(backend=FakeSpeechBackend())
    async with httpx.AsyncClient(transport=_transport(app), base_url="http://test") as client:
        response = await client.get("/")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "Voxgate" in response.text


async def test_healthz_returns_ok() -> None:
    app = create_app(backend=FakeSpeechBackend())
    async with httpx.AsyncClient(transport=_transport(app), base_url="http://test") as client:
        response = await client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


async def test_metrics_exposes_gateway_counters() -> None:
    app = create_app(backend=FakeSpeechBackend())
    async with httpx.AsyncClient(transport=_transport(app), base_url="http://test") as client:
        response = await client.get("/metrics")

    assert response.status_code == 200
    assert "voxgate_active_connections" in response.text
    assert "voxgate_recognizer_opens_total" in response.text


async def test_backend_built_from_settings_when_omitted() -> None:
    settings = VoxgateSettings(backend={"provider": "mock"})  # type: ignore[arg-type]
    app = create_app(settings=settings)
    assert isinstance(app.state.backend, MockSpeechBackend)


async def test_recognition_defaults_built_from_settings() -> None:
    settings = VoxgateSettings(
        recognition={"default_language": "bn-IN", "phrase_hints": "a,b"}  # type: ignore[arg-type]
    )
    app = create_app(backend=FakeSpeechBackend(), settings=settings)
    defaults = app.state.recognition_defaults
    assert defaults.language_code == "bn-IN"
    assert defaults.phrase_hints == ("a", "b")


async def test_session_settings_are_stored_on_state() -> None:
    settings = VoxgateSettings(
        session={"prebuffer_max_bytes": 32000, "drain_timeout_s": 0.5}  # type: ignore[arg-type]
    )
    app = create_app(backend=FakeSpeechBackend(), settings=settings)
    assert app.state.prebuffer_max_bytes == 32000
    assert app.state.drain_timeout_s == 0.5


async def test_lifespan_closes_backend() -> None:
    backend = FakeSpeechBackend()
    app = create_app(backend=backend)

    async with app.router.lifespan_context(app):
        assert backend.aclose_calls == 0

    assert backend.aclose_calls == 1


async def test_cors_enabled_when_origins_given() -> None:
    app = create_app(backend=FakeSpeechBackend(), cors_origins=["http://localhost:3000"])
    async with httpx.AsyncClient(transport=_transport(app), base_url="http://test") as client:
        response = await client.get("/healthz", headers={"Origin": "http://localhost:3000"})

    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
