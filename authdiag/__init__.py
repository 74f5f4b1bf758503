"""AuthDiag - authentication health diagnosis and recovery for Google OAuth clients"""

from __future__ import annotations

__version__ = "1.0.0"


# Lazy imports so lightweight modules do not pull in httpx/google-auth
def __getattr__(name: str):
    if name == "AuthDiagnostics":
        from authdiag.diagnostics.service import AuthDiagnostics

        return AuthDiagnostics

    if name in ("DiagnosticResult", "Issue", "AuthState", "Permissions", "TokenRefreshConfig"):
        from authdiag.diagnostics import types

        return getattr(types, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "AuthDiagnostics",
    "AuthState",
    "DiagnosticResult",
    "Issue",
    "Permissions",
    "TokenRefreshConfig",
]
