"""Unit tests for the AuthDiagnostics facade"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import Mock

import httpx
import pytest

from authdiag.diagnostics.cache import DiagnosticCache
from authdiag.diagnostics.refresher import TokenRefresher
from authdiag.diagnostics.service import SUPPORT_REPORT_FALLBACK, AuthDiagnostics
from authdiag.diagnostics.types import AuthState, AuthUser, Permissions, TokenRefreshConfig
from authdiag.google.scopes import required_scope_urls
from authdiag.google.token_validator import GoogleTokenValidator

SIGNED_IN = AuthState(is_authenticated=True, user=AuthUser(access_token="ya29.service-token"))
GRANTED = Permissions(has_drive=True, has_sheets=True)


@pytest.fixture
def issuer(make_issuer):
    return make_issuer(["ya29.refreshed"])


@pytest.fixture
def service(engine, fake_validator, issuer):
    async def no_sleep(delay: float) -> None:
        return None

    refresher = TokenRefresher(issuer, fake_validator, sleep_fn=no_sleep)
    return AuthDiagnostics(engine, refresher=refresher, cache=DiagnosticCache())


def test_diagnose_uses_cache_key(service, fake_network):
    first = asyncio.run(service.diagnose(None, SIGNED_IN, GRANTED, cache_key="user-1"))
    fake_network.reachable = False
    second = asyncio.run(service.diagnose(None, SIGNED_IN, GRANTED, cache_key="user-1"))

    assert second is first
    assert fake_network.calls == 1


def test_diagnose_without_cache_key_always_runs(service, fake_network):
    asyncio.run(service.diagnose(None, SIGNED_IN, GRANTED))
    asyncio.run(service.diagnose(None, SIGNED_IN, GRANTED))

    assert fake_network.calls == 2
    assert len(service.cache) == 0


def test_sign_out_clears_cache(service):
    asyncio.run(service.diagnose(None, SIGNED_IN, GRANTED, cache_key="user-1"))

    service.sign_out()

    assert len(service.cache) == 0


def test_sign_out_clears_token_validation_cache(engine):
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"expires_in": 3000, "scope": " ".join(required_scope_urls())})
    )
    validator = GoogleTokenValidator(transport=transport)
    asyncio.run(validator.validate("ya29.service-token"))
    assert validator.cache_stats()["entries"] == 1
    service = AuthDiagnostics(engine, validator=validator)

    service.sign_out()

    assert validator.cache_stats()["entries"] == 0


def test_refresh_success_invalidates_cache(service, issuer):
    asyncio.run(service.diagnose(None, SIGNED_IN, GRANTED, cache_key="user-1"))

    result = asyncio.run(service.attempt_token_refresh(TokenRefreshConfig()))

    assert result.success
    assert result.new_token == "ya29.refreshed"
    assert len(service.cache) == 0


def test_refresh_without_refresher(engine):
    service = AuthDiagnostics(engine)

    result = asyncio.run(service.attempt_token_refresh())

    assert not result.success
    assert result.error == "Token refresh is not configured"


def test_report_and_export_delegate(service):
    result = asyncio.run(service.diagnose(None, AuthState(), None))

    assert "User is not authenticated" in service.format_report(result)
    assert json.loads(service.export_diagnostic_data(result))["diagnostic"]["is_healthy"] is False


def test_monitor_health_returns_cancel(service):
    changes = []

    async def scenario():
        cancel = service.monitor_health(
            SIGNED_IN, GRANTED, lambda ok, issues: changes.append(ok), interval_seconds=0.01
        )
        await asyncio.sleep(0.03)
        cancel()
        await asyncio.sleep(0.02)

    asyncio.run(scenario())

    assert changes == [True]


def test_support_report(service):
    report = json.loads(
        asyncio.run(service.generate_support_report(SIGNED_IN, Permissions(has_drive=True), {"status": 403}))
    )

    assert report["app_version"]
    assert report["runtime"].startswith("Python ")
    assert report["diagnostic"]["issues"][0]["kind"] == "insufficient_scope"
    assert report["detailed"]["permission_analysis"]["has_sheets"] is False
    assert "cache_status" in report["detailed"]
    assert "=== AUTHENTICATION DIAGNOSTIC REPORT ===" in report["formatted_report"]
    assert report["recommendations"] == []
    assert "ya29.service-token" not in json.dumps(report)


def test_support_report_degrades(service):
    async def broken(*args, **kwargs):
        raise RuntimeError("probe offline")

    service.engine.diagnose = broken
    service.engine.detailed_diagnostics = broken

    report = json.loads(asyncio.run(service.generate_support_report()))

    assert report["diagnostic"] is None
    assert report["detailed"] is None
    assert report["recommendations"] == [SUPPORT_REPORT_FALLBACK]


def test_support_report_includes_latency_and_validation_cache(engine):
    validator = Mock(spec=GoogleTokenValidator)
    validator.cache_stats.return_value = {"entries": 3, "max_size": 1000, "ttl": 60}
    service = AuthDiagnostics(engine, validator=validator)

    report = json.loads(asyncio.run(service.generate_support_report(SIGNED_IN, GRANTED)))

    samples = report["diagnose_latency_seconds"]
    assert samples
    assert all(sample >= 0 for sample in samples)
    assert report["detailed"]["cache_status"]["token_validation"] == {"entries": 3, "max_size": 1000, "ttl": 60}
