"""
Diagnostic engine: one pass from (error?, auth state, permissions) to a
DiagnosticResult.

Pass order is fixed: probe -> parse the supplied error -> auth state ->
permissions -> system health -> network -> aggregate -> recovery plan.
A failure anywhere in the pass yields the fatal result instead of an
exception, so callers can always render something.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

from authdiag.config import FATAL_CRITICAL_THRESHOLD, TOKEN_EXPIRY_WARNING_MINUTES
from authdiag.diagnostics.parser import IssueParser
from authdiag.diagnostics.planner import RecoveryPlanner
from authdiag.diagnostics.probe import SystemHealthProbe
from authdiag.diagnostics.types import (
    AuthState,
    DetailedDiagnostics,
    DiagnosticResult,
    Issue,
    IssueKind,
    IssueSeverity,
    Permissions,
    Severity,
    SystemHealthStatus,
)
from authdiag.observability.logging import get_logger
from authdiag.observability.telemetry import counter, log_event, time_block

logger = get_logger(__name__)

REQUIRED_CAPABILITIES = (("has_drive", "Google Drive"), ("has_sheets", "Google Sheets"))
OPTIONAL_CAPABILITIES = (("has_calendar", "Google Calendar"),)


class _Findings:
    """Accumulates issues and de-duplicated recommendations for one pass."""

    def __init__(self) -> None:
        self.issues: list[Issue] = []
        self._recommendations: dict[str, None] = {}

    def add(self, issue: Issue, recommendation: str | None = None) -> None:
        self.issues.append(issue)
        if recommendation:
            self.recommend(recommendation)

    def recommend(self, recommendation: str) -> None:
        self._recommendations.setdefault(recommendation, None)

    @property
    def recommendations(self) -> tuple[str, ...]:
        return tuple(self._recommendations)


def determine_severity(issues: Iterable[Issue]) -> Severity:
    issues = list(issues)
    critical = sum(1 for i in issues if i.severity is IssueSeverity.CRITICAL)
    warning = sum(1 for i in issues if i.severity is IssueSeverity.WARNING)

    if critical > FATAL_CRITICAL_THRESHOLD:
        return Severity.FATAL
    if critical > 0:
        return Severity.CRITICAL
    if warning > 0:
        return Severity.WARNING
    return Severity.HEALTHY


def _missing(permissions: Permissions, capabilities: tuple[tuple[str, str], ...]) -> list[str]:
    return [label for attr, label in capabilities if not getattr(permissions, attr)]


class DiagnosticEngine:
    def __init__(
        self,
        probe: SystemHealthProbe,
        parser: IssueParser | None = None,
        planner: RecoveryPlanner | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.probe = probe
        self.parser = parser or IssueParser()
        self.planner = planner or RecoveryPlanner()
        self.clock = clock or (lambda: datetime.now(UTC))

    async def diagnose(
        self,
        error: Any = None,
        auth_state: AuthState | None = None,
        permissions: Permissions | None = None,
    ) -> DiagnosticResult:
        """
        Diagnose the current authentication situation.

        Args:
            error: Raw failure the caller just hit (optional)
            auth_state: Current auth state; None is treated as signed out
            permissions: Capability flags; None skips permission analysis

        Returns:
            DiagnosticResult (never raises)
        """
        counter("auth.diagnose.count")
        try:
            with time_block("auth.diagnose.latency"):
                result = await self._run(error, auth_state, permissions)
        except Exception as e:
            logger.error("Error during authentication diagnosis: %s", e)
            counter("auth.diagnose.fatal")
            return self._fatal_result(e)

        log_event(
            "auth.diagnose.completed",
            is_healthy=result.is_healthy,
            severity=result.severity.value,
            issues=len(result.issues),
            can_auto_recover=result.can_auto_recover,
        )
        return result

    async def _run(
        self,
        error: Any,
        auth_state: AuthState | None,
        permissions: Permissions | None,
    ) -> DiagnosticResult:
        findings = _Findings()

        system_status = await self.probe.check(auth_state)

        if error is not None:
            primary = self.parser.parse(error)
            findings.add(primary, primary.suggested_action)

        self._analyze_auth_state(auth_state, findings)
        self._analyze_permissions(permissions, findings)
        self._analyze_system_health(system_status, findings)

        if not system_status.network_reachable:
            findings.add(
                Issue(
                    kind=IssueKind.NETWORK_ERROR,
                    message="Unable to reach Google API servers",
                    severity=IssueSeverity.CRITICAL,
                    can_auto_recover=True,
                    requires_user_action=False,
                    suggested_action="Check internet connection",
                ),
                "Verify internet connectivity",
            )

        issues = tuple(findings.issues)
        critical = sum(1 for i in issues if i.severity is IssueSeverity.CRITICAL)
        return DiagnosticResult(
            is_healthy=critical == 0,
            severity=determine_severity(issues),
            issues=issues,
            recommendations=findings.recommendations,
            needs_user_action=any(i.requires_user_action for i in issues),
            can_auto_recover=any(i.can_auto_recover for i in issues),
            system_status=system_status,
            recovery_plan=self.planner.plan(issues, system_status),
        )

    def _analyze_auth_state(self, auth_state: AuthState | None, findings: _Findings) -> None:
        if auth_state is None or not auth_state.is_authenticated:
            findings.add(
                Issue(
                    kind=IssueKind.NO_AUTH,
                    message="User is not authenticated",
                    severity=IssueSeverity.CRITICAL,
                    can_auto_recover=False,
                    requires_user_action=True,
                    suggested_action="Sign in with your Google account",
                ),
                "User needs to sign in with Google",
            )
            return

        if not auth_state.access_token:
            findings.add(
                Issue(
                    kind=IssueKind.INVALID_TOKEN,
                    message="No access token available",
                    severity=IssueSeverity.CRITICAL,
                    can_auto_recover=False,
                    requires_user_action=True,
                    suggested_action="Sign in again to obtain a new token",
                ),
                "Re-authentication required",
            )
            return

        validation = auth_state.validation_status
        if validation is not None:
            if not validation.is_valid:
                if validation.is_expired:
                    findings.add(
                        Issue(
                            kind=IssueKind.TOKEN_EXPIRED,
                            message="Access token has expired",
                            severity=IssueSeverity.CRITICAL,
                            can_auto_recover=True,
                            requires_user_action=False,
                            suggested_action="Token will be automatically refreshed",
                        ),
                        "Automatic token refresh will be attempted",
                    )
                elif not validation.has_required_scopes:
                    findings.add(
                        Issue(
                            kind=IssueKind.INSUFFICIENT_SCOPE,
                            message="Required permissions are missing",
                            severity=IssueSeverity.CRITICAL,
                            can_auto_recover=True,
                            requires_user_action=True,
                            suggested_action="Grant additional permissions during re-authentication",
                        ),
                        "Re-authentication with additional permissions required",
                    )
                else:
                    findings.add(
                        Issue(
                            kind=IssueKind.INVALID_TOKEN,
                            message="Token validation failed",
                            severity=IssueSeverity.CRITICAL,
                            can_auto_recover=True,
                            requires_user_action=True,
                            suggested_action="Re-authenticate to obtain a valid token",
                            technical_details="; ".join(validation.errors) or None,
                        ),
                        "Re-authentication required",
                    )

            if validation.expires_at is not None:
                remaining = (validation.expires_at - self.clock()).total_seconds()
                minutes = math.floor(remaining / 60)
                if 0 < minutes <= TOKEN_EXPIRY_WARNING_MINUTES:
                    findings.add(
                        Issue(
                            kind=IssueKind.TOKEN_EXPIRED,
                            message=f"Token expires in {minutes} minute{'s' if minutes != 1 else ''}",
                            severity=IssueSeverity.WARNING,
                            can_auto_recover=True,
                            requires_user_action=False,
                            suggested_action="Token will be automatically refreshed soon",
                        ),
                        "Token refresh will be triggered automatically",
                    )

        if auth_state.token_refresh_in_progress:
            findings.add(
                Issue(
                    kind=IssueKind.TOKEN_EXPIRED,
                    message="Token refresh is currently in progress",
                    severity=IssueSeverity.INFO,
                    can_auto_recover=True,
                    requires_user_action=False,
                    suggested_action="Wait for token refresh to complete",
                )
            )

        if auth_state.is_validating:
            findings.add(
                Issue(
                    kind=IssueKind.UNKNOWN_ERROR,
                    message="Authentication validation is in progress",
                    severity=IssueSeverity.INFO,
                    can_auto_recover=True,
                    requires_user_action=False,
                    suggested_action="Wait for validation to complete",
                )
            )

    def _analyze_permissions(self, permissions: Permissions | None, findings: _Findings) -> None:
        if permissions is None:
            return

        missing_required = _missing(permissions, REQUIRED_CAPABILITIES)
        if missing_required:
            names = ", ".join(missing_required)
            findings.add(
                Issue(
                    kind=IssueKind.MISSING_PERMISSIONS,
                    message=f"Missing required permissions: {names}",
                    severity=IssueSeverity.CRITICAL,
                    can_auto_recover=True,
                    requires_user_action=True,
                    suggested_action="Grant the required permissions during re-authentication",
                    technical_details=f"Required permissions not available: {names}",
                ),
                f"Grant {' and '.join(missing_required)} permissions",
            )

        missing_optional = _missing(permissions, OPTIONAL_CAPABILITIES)
        if missing_optional:
            names = ", ".join(missing_optional)
            findings.add(
                Issue(
                    kind=IssueKind.MISSING_PERMISSIONS,
                    message=f"Optional permissions not available: {names}",
                    severity=IssueSeverity.WARNING,
                    can_auto_recover=False,
                    requires_user_action=False,
                    suggested_action="Consider granting optional permissions for enhanced functionality",
                    technical_details=f"Optional features unavailable: {names}",
                ),
                "Consider granting optional permissions for full functionality",
            )

    def _analyze_system_health(self, status: SystemHealthStatus, findings: _Findings) -> None:
        # Environment problems need a developer or a different runtime, not a retry
        if not status.identity_api_available:
            findings.add(
                Issue(
                    kind=IssueKind.UNKNOWN_ERROR,
                    message="Google Identity API is not available",
                    severity=IssueSeverity.CRITICAL,
                    can_auto_recover=False,
                    requires_user_action=True,
                    suggested_action="Run the application in an environment with identity API access",
                ),
                "Ensure the application runs in a supported environment",
            )

        if not status.config_valid:
            findings.add(
                Issue(
                    kind=IssueKind.UNKNOWN_ERROR,
                    message="OAuth client configuration is missing",
                    severity=IssueSeverity.CRITICAL,
                    can_auto_recover=False,
                    requires_user_action=True,
                    suggested_action="Contact the developer - configuration error",
                ),
                "OAuth configuration needs to be fixed by the developer",
            )

        if not status.auth_manager_healthy:
            findings.add(
                Issue(
                    kind=IssueKind.UNKNOWN_ERROR,
                    message="Authentication manager is not functioning properly",
                    severity=IssueSeverity.CRITICAL,
                    can_auto_recover=False,
                    requires_user_action=True,
                    suggested_action="Try refreshing the page and restarting the application",
                ),
                "Refresh page and restart the application",
            )

        if not status.cache_operational:
            findings.add(
                Issue(
                    kind=IssueKind.UNKNOWN_ERROR,
                    message="Local storage cache is not operational",
                    severity=IssueSeverity.WARNING,
                    can_auto_recover=False,
                    requires_user_action=False,
                    suggested_action="The application will function but may be slower",
                ),
                "Clear local cache if performance issues persist",
            )

    def _fatal_result(self, error: Exception) -> DiagnosticResult:
        environment = self.probe.environment
        try:
            identity_available = bool(environment.identity_api_available())
            config_valid = bool(environment.oauth_config_present())
        except Exception as e:
            logger.warning("Environment facts unavailable: %s", e)
            identity_available = config_valid = False

        return DiagnosticResult(
            is_healthy=False,
            severity=Severity.FATAL,
            issues=(
                Issue(
                    kind=IssueKind.UNKNOWN_ERROR,
                    message="Failed to diagnose authentication issues",
                    severity=IssueSeverity.CRITICAL,
                    can_auto_recover=False,
                    requires_user_action=True,
                    suggested_action="Try refreshing the page and signing in again",
                    technical_details=str(error) or "Diagnosis failed",
                ),
            ),
            recommendations=("Refresh the page and try signing in again",),
            needs_user_action=True,
            can_auto_recover=False,
            system_status=SystemHealthStatus(
                identity_api_available=identity_available,
                config_valid=config_valid,
                cache_operational=False,
            ),
        )

    async def detailed_diagnostics(
        self,
        auth_state: AuthState | None = None,
        permissions: Permissions | None = None,
        cache_status: dict[str, Any] | None = None,
    ) -> DetailedDiagnostics:
        """
        Flat debugging snapshot of inputs and probe results.

        Never raises; an internal failure is reported as a recommendation.
        """
        system_info = SystemHealthStatus(cache_operational=True)
        auth_analysis: dict[str, Any] | None = None
        permission_analysis: dict[str, Any] | None = None
        recommendations: dict[str, None] = {}

        def recommend(text: str) -> None:
            recommendations.setdefault(text, None)

        try:
            system_info = await self.probe.check(auth_state)

            if auth_state is not None:
                validation = auth_state.validation_status
                auth_analysis = {
                    "is_authenticated": auth_state.is_authenticated,
                    "has_user": auth_state.user is not None,
                    "has_token": bool(auth_state.access_token),
                    "token_expiry": validation.expires_at if validation else None,
                    "validation_errors": list(validation.errors) if validation else [],
                    "is_validating": auth_state.is_validating,
                    "token_refresh_in_progress": auth_state.token_refresh_in_progress,
                    "last_validation": auth_state.last_validation,
                    "can_proceed": auth_state.can_proceed,
                }
                if not auth_state.is_authenticated:
                    recommend("User authentication required")
                if validation is not None and validation.needs_reauth:
                    recommend("Re-authentication needed")
                if validation is not None and validation.is_expired:
                    recommend("Token refresh required")

            if permissions is not None:
                permission_analysis = {
                    "has_drive": permissions.has_drive,
                    "has_sheets": permissions.has_sheets,
                    "has_calendar": permissions.has_calendar,
                    "all_required": permissions.all_required,
                    "folder_structure_exists": permissions.folder_structure_exists,
                }
                missing_required = _missing(permissions, REQUIRED_CAPABILITIES)
                if missing_required:
                    recommend(f"Grant {' and '.join(missing_required)} permissions")
                if not permissions.has_calendar:
                    recommend("Consider granting Calendar permission for enhanced features")

            if not system_info.identity_api_available:
                recommend("Identity API not available - check the runtime environment")
            if not system_info.config_valid:
                recommend("OAuth configuration missing - contact developer")
            if not system_info.network_reachable:
                recommend("Check internet connectivity")
        except Exception as e:
            logger.error("Failed to generate detailed diagnostics: %s", e)
            recommend("Diagnostic analysis failed - try refreshing and sign in again")

        return DetailedDiagnostics(
            system_info=system_info,
            auth_analysis=auth_analysis,
            permission_analysis=permission_analysis,
            network_status=system_info.network_reachable,
            cache_status=cache_status,
            recommendations=tuple(recommendations),
        )
