"""Health check endpoint for AuthDiag API.

Reports service status, version and whether OAuth client configuration is
present. Does not call Google; /api/auth/diagnose does that.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from authdiag.config import APP_VERSION, ENV
from authdiag.google.environment import ProcessEnvironment

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Health check endpoint.

    Returns service status, version, and OAuth configuration readiness
    (presence checks only).
    """
    environment = ProcessEnvironment()

    return {
        "status": "healthy",
        "service": "AuthDiag API",
        "version": APP_VERSION,
        "environment": ENV,
        "timestamp": datetime.now(UTC).isoformat(),
        "oauth": {
            "config_present": environment.oauth_config_present(),
            "identity_api_available": environment.identity_api_available(),
        },
    }
