"""`voxgate serve` command — starts the gateway HTTP/WebSocket server."""

from __future__ import annotations

import asyncio

import click

from voxgate.cli.main import cli
from voxgate.config.settings import get_settings
from voxgate.logging import configure_logging, get_logger

logger = get_logger("cli.serve")

_s = get_settings()
DEFAULT_HOST = _s.server.host
DEFAULT_PORT = _s.server.port
DEFAULT_BACKEND = _s.backend.provider


@cli.command()
@click.option("--host", default=DEFAULT_HOST, show_default=True, help="Bind host.")
@click.option("--port", default=DEFAULT_PORT, type=int, show_default=True, help="HTTP port.")
@click.option(
    "--backend",
    type=click.Choice(["google", "mock"]),
    default=DEFAULT_BACKEND,
    show_default=True,
    help="Speech-recognition backend.",
)
@click.option(
    "--cors-origins",
    default="",
    help="CORS origins (comma-separated). Ex: http://localhost:3000",
)
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"]),
    default="console",
    show_default=True,
    help="Log format.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="INFO",
    show_default=True,
    help="Log level.",
)
def serve(
    host: str,
    port: int,
    backend: str,
    cors_origins: str,
    log_format: str,
    log_level: str,
) -> None:
    """Starts the transcription gateway."""
    configure_logging(log_format=log_format, level=log_level)
    origins = [o.strip() for o in cors_origins.split(",") if o.strip()] if cors_origins else None
    asyncio.run(_serve(host, port, backend, cors_origins=origins))


async def _serve(
    host: str,
    port: int,
    backend_name: str,
    *,
    cors_origins: list[str] | None = None,
) -> None:
    """Main async flow for serve."""
    import uvicorn

    from voxgate.backends import create_backend
    from voxgate.server.app import create_app

    settings = get_settings()
    backend_settings = settings.backend.model_copy(update={"provider": backend_name})
    backend = create_backend(backend_settings)

    app = create_app(backend=backend, settings=settings, cors_origins=cors_origins)

    logger.info(
        "server_starting",
        host=host,
        port=port,
        backend=backend.name,
        default_language=settings.recognition.default_language,
        sample_rate=settings.recognition.sample_rate_hz,
        idle_timeout_s=settings.server.ws_idle_timeout_s,
    )

    config = uvicorn.Config(app, host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)
    await server.serve()

    logger.info("server_stopped")
