"""
Pytest configuration for AuthDiag tests

Provides in-memory collaborator fakes and engine fixtures shared across
all test files. Fakes default to a fully healthy environment; tests flip
individual attributes to simulate failures.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

import pytest

from authdiag.diagnostics.engine import DiagnosticEngine
from authdiag.diagnostics.probe import SystemHealthProbe
from authdiag.diagnostics.types import TokenValidationResult
from authdiag.google.scopes import required_scope_urls
from authdiag.observability import telemetry


class FakeValidator:
    """Token validator returning a fixed result (or a per-token override)."""

    def __init__(self) -> None:
        self.result = TokenValidationResult(
            is_valid=True,
            has_required_scopes=True,
            granted_scopes=tuple(required_scope_urls()),
        )
        self.by_token: dict[str, TokenValidationResult] = {}
        self.calls: list[str] = []

    async def validate(self, token: str) -> TokenValidationResult:
        self.calls.append(token)
        return self.by_token.get(token, self.result)


class FakeNetwork:
    def __init__(self) -> None:
        self.reachable = True
        self.error: Exception | None = None
        self.calls = 0

    async def is_reachable(self) -> bool:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.reachable


class FakeEnvironment:
    def __init__(self) -> None:
        self.identity_api = True
        self.oauth_config = True
        self.version = "1.0.0-test"

    def identity_api_available(self) -> bool:
        return self.identity_api

    def oauth_config_present(self) -> bool:
        return self.oauth_config

    def app_version(self) -> str:
        return self.version


class FakeIssuer:
    """
    Token issuer scripted with one outcome per call.

    Outcomes: a token string, None (nothing issued), an Exception instance
    (raised), or "hang" (never completes, to exercise timeouts).
    """

    def __init__(self, outcomes: Sequence[Any] = ()) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[tuple[bool, tuple[str, ...]]] = []
        self.cleared = 0

    async def get_token(self, interactive: bool, scopes: Sequence[str]) -> str | None:
        self.calls.append((interactive, tuple(scopes)))
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, Exception):
            raise outcome
        if outcome == "hang":
            await asyncio.Event().wait()
        return outcome

    async def clear_cached_token(self) -> None:
        self.cleared += 1


@pytest.fixture(autouse=True)
def reset_telemetry():
    """Counters are module-level; isolate every test"""
    telemetry.reset()
    yield
    telemetry.reset()


@pytest.fixture
def fake_validator():
    return FakeValidator()


@pytest.fixture
def fake_network():
    return FakeNetwork()


@pytest.fixture
def fake_environment():
    return FakeEnvironment()


@pytest.fixture
def make_issuer():
    """Factory: make_issuer(["ya29.token"]) -> FakeIssuer"""
    return FakeIssuer


@pytest.fixture
def probe(fake_validator, fake_network, fake_environment):
    return SystemHealthProbe(fake_validator, fake_network, fake_environment)


@pytest.fixture
def engine(probe):
    return DiagnosticEngine(probe)
