"""
Type Contracts for AuthDiag

Protocol-based contracts between the diagnostics core (authdiag.diagnostics)
and its external collaborators (authdiag.google, test fakes). Protocols only,
no logic.

Re-exports for convenience:
"""

from authdiag.contracts.collaborators import (
    EnvironmentFacts,
    NetworkProbe,
    TokenIssuer,
    TokenValidator,
)

__all__ = [
    "EnvironmentFacts",
    "NetworkProbe",
    "TokenIssuer",
    "TokenValidator",
]
