"""
Collaborator Protocols for the Diagnostics Layer

The diagnostics core never talks to Google directly. It depends on these
protocols; authdiag.google provides the production implementations and
tests provide fakes.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from authdiag.diagnostics.types import TokenValidationResult


@runtime_checkable
class TokenValidator(Protocol):
    """Validates an access token against the identity provider."""

    async def validate(self, token: str) -> TokenValidationResult:
        """Never raises for an invalid token; returns is_valid=False instead."""
        ...


@runtime_checkable
class NetworkProbe(Protocol):
    async def is_reachable(self) -> bool:
        ...


@runtime_checkable
class TokenIssuer(Protocol):
    """Obtains a fresh access token for the requested scopes."""

    async def get_token(self, interactive: bool, scopes: Sequence[str]) -> str | None:
        """Return a token, None when nothing was issued, or raise on failure."""
        ...

    async def clear_cached_token(self) -> None:
        """Forget any cached token so the next get_token re-authenticates."""
        ...


@runtime_checkable
class EnvironmentFacts(Protocol):
    """Read-only, synchronous facts about the host environment."""

    def identity_api_available(self) -> bool:
        ...

    def oauth_config_present(self) -> bool:
        ...

    def app_version(self) -> str:
        ...
