"""FastAPI server for AuthDiag authentication diagnostics"""

from __future__ import annotations

from typing import Any

from dotenv import load_dotenv

# Load environment variables from .env file before config is read
load_dotenv()

from fastapi import FastAPI, Request, status  # noqa: E402
from fastapi.exceptions import RequestValidationError  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402

from authdiag.api.routes.diagnostics import router as diagnostics_router  # noqa: E402
from authdiag.api.routes.health import router as health_router  # noqa: E402
from authdiag.config import APP_VERSION, is_production  # noqa: E402
from authdiag.diagnostics.service import AuthDiagnostics  # noqa: E402
from authdiag.observability.logging import get_logger  # noqa: E402
from authdiag.observability.telemetry import counter  # noqa: E402
from authdiag.utils.redaction import scrub_secrets  # noqa: E402

logger = get_logger(__name__)

app = FastAPI(title="AuthDiag API", version=APP_VERSION)


# Custom validation error handler to prevent information leakage
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Answer malformed requests without echoing submitted values.

    Side Effects:
        - Logs field locations (request bodies may carry tokens, so no values)
        - Increments validation error counter for monitoring
    """
    logger.warning(
        "Validation error on %s: %s",
        scrub_secrets(str(request.url)),
        [err["loc"] for err in exc.errors()],
    )
    counter("api.validation_errors")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Invalid request format. Please check your request and try again.",
            "error_count": len(exc.errors()),
            # Only expose field names, not validation logic
            "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
        },
    )


app.include_router(health_router)
app.include_router(diagnostics_router)


@app.on_event("startup")
async def init_diagnostics() -> None:
    """Build the diagnostics service

    Side Effects:
        - Stores the service on app.state.diagnostics
        - Opens (and creates if needed) the credential database when
          AUTHDIAG_ENCRYPTION_KEY is set
    """
    service = AuthDiagnostics.from_environment()
    if service.refresher is None and is_production():
        logger.critical("AUTHDIAG_ENCRYPTION_KEY is not set in production; token refresh disabled")
    app.state.diagnostics = service
    logger.info("AuthDiag API started (version %s)", APP_VERSION)


@app.get("/")
def root() -> dict[str, Any]:
    return {
        "service": "AuthDiag API",
        "version": APP_VERSION,
        "status": "running",
        "endpoints": {
            "health": "/health",
            "diagnose": "/api/auth/diagnose",
            "report": "/api/auth/diagnose/report",
            "export": "/api/auth/diagnose/export",
            "refresh": "/api/auth/refresh",
            "support_report": "/api/auth/support-report",
            "signout": "/api/auth/signout",
        },
    }


def main() -> None:
    """Console entry point: serve the API with uvicorn."""
    import os

    import uvicorn

    uvicorn.run(
        "authdiag.api.app:app",
        host=os.getenv("AUTHDIAG_HOST", "127.0.0.1"),
        port=int(os.getenv("AUTHDIAG_PORT", "8000")),
    )
