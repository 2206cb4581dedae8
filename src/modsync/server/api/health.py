"""Health check and version API routes."""

from __future__ import annotations

from fastapi import APIRouter, Request

from modsync.server.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Check server health."""
    return HealthResponse(status="ok")


@router.get("/modsync/version")
def get_version(request: Request) -> str:
    """Get the server's ModSync version."""
    version: str = request.app.version
    return version
