"""Unit tests for the diagnostic engine

Tests cover:
- Sign-in, token and permission scenarios
- System health findings (environment, network, probe failure)
- Severity ranking and the healthy invariant
- Recommendation de-duplication
- Fatal fallback when a pass blows up
- Detailed diagnostics
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from authdiag.diagnostics.engine import DiagnosticEngine, determine_severity
from authdiag.diagnostics.types import (
    AuthState,
    AuthUser,
    Issue,
    IssueKind,
    IssueSeverity,
    Permissions,
    Severity,
    TokenValidationResult,
    ValidationStatus,
)
from authdiag.observability import telemetry

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


def signed_in(validation: ValidationStatus | None = None, **kwargs) -> AuthState:
    return AuthState(
        is_authenticated=True,
        user=AuthUser(email="user@example.com", access_token="ya29.test-token"),
        validation_status=validation,
        can_proceed=True,
        **kwargs,
    )


ALL_GRANTED = Permissions(has_drive=True, has_sheets=True, has_calendar=True, folder_structure_exists=True)


def _issue(severity: IssueSeverity) -> Issue:
    return Issue(
        kind=IssueKind.UNKNOWN_ERROR,
        message="x",
        severity=severity,
        can_auto_recover=False,
        requires_user_action=False,
        suggested_action="x",
    )


@pytest.fixture
def clocked_engine(probe):
    return DiagnosticEngine(probe, clock=lambda: NOW)


def test_healthy_pass(engine):
    result = asyncio.run(engine.diagnose(None, signed_in(), ALL_GRANTED))

    assert result.is_healthy
    assert result.severity is Severity.HEALTHY
    assert result.issues == ()
    assert result.recommendations == ()
    assert result.system_status.token_valid
    assert result.system_status.network_reachable
    assert result.recovery_plan.steps == ()
    assert telemetry.counter("auth.diagnose.count", 0) == 1


def test_unauthenticated_yields_single_no_auth_issue(engine):
    result = asyncio.run(engine.diagnose(None, AuthState(is_authenticated=False), None))

    assert len(result.issues) == 1
    issue = result.issues[0]
    assert issue.kind is IssueKind.NO_AUTH
    assert issue.severity is IssueSeverity.CRITICAL
    assert not result.is_healthy
    assert result.needs_user_action
    assert not result.can_auto_recover
    assert result.recommendations == ("User needs to sign in with Google",)


def test_missing_auth_state_counts_as_signed_out(engine):
    result = asyncio.run(engine.diagnose(None, None, None))

    kinds = [i.kind for i in result.issues]
    assert IssueKind.NO_AUTH in kinds
    assert not result.system_status.auth_manager_healthy
    assert any(i.message == "Authentication manager is not functioning properly" for i in result.issues)


def test_no_access_token(engine):
    state = AuthState(is_authenticated=True, user=AuthUser(email="user@example.com"))

    result = asyncio.run(engine.diagnose(None, state, ALL_GRANTED))

    assert [i.kind for i in result.issues] == [IssueKind.INVALID_TOKEN]
    assert result.issues[0].message == "No access token available"


def test_raw_error_is_parsed_first(engine):
    result = asyncio.run(engine.diagnose({"status": 429}, signed_in(), ALL_GRANTED))

    assert result.issues[0].kind is IssueKind.NETWORK_ERROR
    assert result.issues[0].severity is IssueSeverity.WARNING
    assert result.severity is Severity.WARNING
    assert result.is_healthy
    assert result.recommendations[0] == "Please wait a moment and try again"


def test_expired_token(engine):
    validation = ValidationStatus(is_valid=False, is_expired=True)

    result = asyncio.run(engine.diagnose(None, signed_in(validation), ALL_GRANTED))

    issue = result.issues[0]
    assert issue.kind is IssueKind.TOKEN_EXPIRED
    assert issue.severity is IssueSeverity.CRITICAL
    assert issue.can_auto_recover
    assert not issue.requires_user_action
    assert result.recovery_plan.steps[0].action == "refresh_token"


def test_missing_scopes(engine):
    validation = ValidationStatus(is_valid=False, has_required_scopes=False)

    result = asyncio.run(engine.diagnose(None, signed_in(validation), ALL_GRANTED))

    assert result.issues[0].kind is IssueKind.INSUFFICIENT_SCOPE
    assert result.issues[0].requires_user_action


def test_other_validation_failure(engine):
    validation = ValidationStatus(is_valid=False, errors=("Token audience validation failed",))

    result = asyncio.run(engine.diagnose(None, signed_in(validation), ALL_GRANTED))

    issue = result.issues[0]
    assert issue.kind is IssueKind.INVALID_TOKEN
    assert issue.technical_details == "Token audience validation failed"


def test_expiry_heads_up_within_five_minutes(clocked_engine):
    validation = ValidationStatus(is_valid=True, expires_at=NOW + timedelta(minutes=3, seconds=30))

    result = asyncio.run(clocked_engine.diagnose(None, signed_in(validation), ALL_GRANTED))

    assert len(result.issues) == 1
    issue = result.issues[0]
    assert issue.kind is IssueKind.TOKEN_EXPIRED
    assert issue.severity is IssueSeverity.WARNING
    assert issue.message == "Token expires in 3 minutes"
    assert result.is_healthy


def test_expiry_heads_up_singular(clocked_engine):
    validation = ValidationStatus(is_valid=True, expires_at=NOW + timedelta(seconds=90))

    result = asyncio.run(clocked_engine.diagnose(None, signed_in(validation), ALL_GRANTED))

    assert result.issues[0].message == "Token expires in 1 minute"


@pytest.mark.parametrize("delta", [timedelta(seconds=30), timedelta(minutes=10), -timedelta(minutes=2)])
def test_no_heads_up_outside_window(clocked_engine, delta):
    validation = ValidationStatus(is_valid=True, expires_at=NOW + delta)

    result = asyncio.run(clocked_engine.diagnose(None, signed_in(validation), ALL_GRANTED))

    assert result.issues == ()


def test_expired_and_heads_up_coexist(clocked_engine):
    validation = ValidationStatus(
        is_valid=False, is_expired=True, expires_at=NOW + timedelta(minutes=2)
    )

    result = asyncio.run(clocked_engine.diagnose(None, signed_in(validation), ALL_GRANTED))

    severities = [(i.kind, i.severity) for i in result.issues]
    assert severities == [
        (IssueKind.TOKEN_EXPIRED, IssueSeverity.CRITICAL),
        (IssueKind.TOKEN_EXPIRED, IssueSeverity.WARNING),
    ]


def test_in_progress_flags_are_info(engine):
    state = signed_in(token_refresh_in_progress=True, is_validating=True)

    result = asyncio.run(engine.diagnose(None, state, ALL_GRANTED))

    assert [i.severity for i in result.issues] == [IssueSeverity.INFO, IssueSeverity.INFO]
    assert result.severity is Severity.HEALTHY
    assert result.recommendations == ()


def test_missing_drive_and_calendar(engine):
    permissions = Permissions(has_drive=False, has_sheets=True, has_calendar=False)

    result = asyncio.run(engine.diagnose(None, signed_in(), permissions))

    assert len(result.issues) == 2
    required, optional = result.issues
    assert required.kind is IssueKind.MISSING_PERMISSIONS
    assert required.severity is IssueSeverity.CRITICAL
    assert "Google Drive" in required.message
    assert required.can_auto_recover and required.requires_user_action
    assert optional.kind is IssueKind.MISSING_PERMISSIONS
    assert optional.severity is IssueSeverity.WARNING
    assert "Google Calendar" in optional.message
    assert not optional.can_auto_recover and not optional.requires_user_action


def test_missing_both_required_named_together(engine):
    permissions = Permissions(has_calendar=True)

    result = asyncio.run(engine.diagnose(None, signed_in(), permissions))

    assert result.issues[0].message == "Missing required permissions: Google Drive, Google Sheets"
    assert "Grant Google Drive and Google Sheets permissions" in result.recommendations


def test_environment_problems_are_critical(engine, fake_environment):
    fake_environment.identity_api = False
    fake_environment.oauth_config = False

    result = asyncio.run(engine.diagnose(None, signed_in(), ALL_GRANTED))

    assert len(result.issues) == 2
    assert all(i.kind is IssueKind.UNKNOWN_ERROR for i in result.issues)
    assert all(i.severity is IssueSeverity.CRITICAL for i in result.issues)
    assert not result.can_auto_recover
    assert result.recovery_plan.success_probability.value == "low"


def test_network_unreachable(engine, fake_network):
    fake_network.reachable = False

    result = asyncio.run(engine.diagnose(None, signed_in(), ALL_GRANTED))

    issue = result.issues[-1]
    assert issue.kind is IssueKind.NETWORK_ERROR
    assert issue.severity is IssueSeverity.CRITICAL
    assert issue.can_auto_recover
    assert "Verify internet connectivity" in result.recommendations


def test_probe_failure_marks_cache_inoperable(engine, fake_network):
    fake_network.error = RuntimeError("probe exploded")

    result = asyncio.run(engine.diagnose(None, signed_in(), ALL_GRANTED))

    assert not result.system_status.cache_operational
    messages = [i.message for i in result.issues]
    assert "Local storage cache is not operational" in messages
    # Reachability was never measured, so it reads as unreachable
    assert "Unable to reach Google API servers" in messages


def test_invalid_token_reported_by_validator(engine, fake_validator):
    fake_validator.result = TokenValidationResult(is_valid=False, has_required_scopes=False)

    result = asyncio.run(engine.diagnose(None, signed_in(), ALL_GRANTED))

    assert not result.system_status.token_valid
    assert not result.system_status.scopes_valid
    assert fake_validator.calls == ["ya29.test-token"]


def test_recommendations_deduplicated(engine, fake_environment):
    fake_environment.identity_api = False
    state = AuthState(is_authenticated=False)

    result = asyncio.run(engine.diagnose("consent_required", state, Permissions()))

    assert len(result.recommendations) == len(set(result.recommendations))


def test_fatal_when_many_criticals(engine, fake_environment, fake_network):
    fake_environment.identity_api = False
    fake_environment.oauth_config = False
    fake_network.reachable = False

    result = asyncio.run(engine.diagnose(None, AuthState(), None))

    assert result.critical_count > 2
    assert result.severity is Severity.FATAL
    assert not result.is_healthy


def test_idempotent(engine):
    state = signed_in(ValidationStatus(is_valid=False, is_expired=True))
    permissions = Permissions(has_drive=True)

    first = asyncio.run(engine.diagnose({"status": 403}, state, permissions))
    second = asyncio.run(engine.diagnose({"status": 403}, state, permissions))

    assert first.issues == second.issues
    assert first.severity is second.severity
    assert first.is_healthy == second.is_healthy
    assert first.recommendations == second.recommendations


def test_internal_failure_returns_fatal_result(engine):
    class BrokenPlanner:
        def plan(self, issues, system_status=None):
            raise RuntimeError("planner bug")

    engine.planner = BrokenPlanner()

    result = asyncio.run(engine.diagnose(None, signed_in(), ALL_GRANTED))

    assert result.severity is Severity.FATAL
    assert not result.is_healthy
    assert len(result.issues) == 1
    assert result.issues[0].technical_details == "planner bug"
    assert result.recommendations == ("Refresh the page and try signing in again",)
    assert result.system_status.identity_api_available
    assert telemetry.counter("auth.diagnose.fatal", 0) == 1


@pytest.mark.parametrize(
    ("critical", "warning", "expected"),
    [
        (0, 0, Severity.HEALTHY),
        (0, 2, Severity.WARNING),
        (1, 0, Severity.CRITICAL),
        (2, 5, Severity.CRITICAL),
        (3, 0, Severity.FATAL),
    ],
)
def test_determine_severity(critical, warning, expected):
    issues = [_issue(IssueSeverity.CRITICAL)] * critical + [_issue(IssueSeverity.WARNING)] * warning
    issues.append(_issue(IssueSeverity.INFO))

    assert determine_severity(issues) is expected


def test_detailed_diagnostics(engine, fake_network):
    fake_network.reachable = False
    state = signed_in(ValidationStatus(is_valid=False, is_expired=True, needs_reauth=True))
    permissions = Permissions(has_drive=True)

    detailed = asyncio.run(engine.detailed_diagnostics(state, permissions, {"entries": 0}))

    assert detailed.auth_analysis["has_token"]
    assert detailed.permission_analysis["all_required"] is False
    assert detailed.network_status is False
    assert detailed.cache_status == {"entries": 0}
    assert detailed.recommendations == (
        "Re-authentication needed",
        "Token refresh required",
        "Grant Google Sheets permissions",
        "Consider granting Calendar permission for enhanced features",
        "Check internet connectivity",
    )


def test_detailed_diagnostics_without_inputs(engine):
    detailed = asyncio.run(engine.detailed_diagnostics())

    assert detailed.auth_analysis is None
    assert detailed.permission_analysis is None
    assert detailed.recommendations == ()
