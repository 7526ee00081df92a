"""Liveness and metrics endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

import voxgate

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def index() -> str:
    """Plain-text banner, used by load balancers probing the root path."""
    return f"Voxgate transcription gateway {voxgate.__version__}: connect via WebSocket at /ws"


@router.get("/healthz")
async def healthz() -> dict[str, bool]:
    """Liveness check. Does not touch the speech backend."""
    return {"ok": True}


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus exposition of the gateway metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
