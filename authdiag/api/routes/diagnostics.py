"""Authentication diagnostics endpoints for AuthDiag API.

- POST /api/auth/diagnose - Diagnose the supplied auth state and error
- POST /api/auth/diagnose/report - Same diagnosis as a plain-text report
- POST /api/auth/diagnose/export - Same diagnosis as a redacted export
- POST /api/auth/refresh - Attempt a token refresh
- POST /api/auth/support-report - Full support bundle
- POST /api/auth/signout - Drop cached diagnoses
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from authdiag.api.models import DiagnoseRequest, RefreshRequest, RefreshResponse
from authdiag.diagnostics.report import scrub
from authdiag.diagnostics.service import AuthDiagnostics
from authdiag.diagnostics.types import DiagnosticResult
from authdiag.observability.logging import get_logger
from authdiag.observability.telemetry import counter

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["diagnostics"])


def get_diagnostics(request: Request) -> AuthDiagnostics:
    """Resolve the service created at startup (overridable in tests)."""
    service = getattr(request.app.state, "diagnostics", None)
    if service is None:
        logger.error("Diagnostics service not initialized")
        raise HTTPException(status_code=503, detail="Diagnostics service unavailable")
    return service


async def _diagnose(body: DiagnoseRequest, service: AuthDiagnostics) -> DiagnosticResult:
    return await service.diagnose(
        body.error_value(),
        body.auth_state_record(),
        body.permissions_record(),
        cache_key=body.cache_key,
    )


@router.post("/diagnose")
async def diagnose(
    body: DiagnoseRequest,
    service: AuthDiagnostics = Depends(get_diagnostics),
) -> dict[str, Any]:
    """Run a diagnosis. Never fails on auth problems; they are the payload."""
    counter("api.diagnose.count")
    result = await _diagnose(body, service)
    return scrub(result.to_dict())


@router.post("/diagnose/report")
async def diagnose_report(
    body: DiagnoseRequest,
    service: AuthDiagnostics = Depends(get_diagnostics),
) -> dict[str, str]:
    result = await _diagnose(body, service)
    return {"report": service.format_report(result)}


@router.post("/diagnose/export")
async def diagnose_export(
    body: DiagnoseRequest,
    service: AuthDiagnostics = Depends(get_diagnostics),
) -> dict[str, Any]:
    result = await _diagnose(body, service)
    return json.loads(service.export_diagnostic_data(result))


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_token(
    body: RefreshRequest,
    service: AuthDiagnostics = Depends(get_diagnostics),
) -> RefreshResponse:
    """
    Attempt a token refresh.

    Side Effects:
        - May open a browser consent flow when interactive=true
        - Clears cached diagnoses on success
    """
    counter("api.refresh.count")
    result = await service.attempt_token_refresh(body.to_record())
    return RefreshResponse(
        success=result.success,
        granted_scopes=list(result.granted_scopes),
        denied_scopes=list(result.denied_scopes),
        error=result.error,
        attempts=result.attempts,
    )


@router.post("/support-report")
async def support_report(
    body: DiagnoseRequest,
    service: AuthDiagnostics = Depends(get_diagnostics),
) -> dict[str, Any]:
    report = await service.generate_support_report(
        body.auth_state_record(), body.permissions_record(), body.error_value()
    )
    return json.loads(report)


@router.post("/signout")
async def sign_out(service: AuthDiagnostics = Depends(get_diagnostics)) -> dict[str, str]:
    service.sign_out()
    return {"status": "signed_out"}
