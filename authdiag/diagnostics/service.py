"""
AuthDiagnostics: the single entry point applications talk to.

Wires the diagnostic engine, the result cache, the token refresher and the
health monitor behind the operations the API exposes:
- diagnose / format_report / export_diagnostic_data
- attempt_token_refresh
- monitor_health
- generate_support_report
- sign_out (drops cached diagnoses and token validations)
"""

from __future__ import annotations

import json
import platform
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from authdiag import config
from authdiag.diagnostics.cache import DiagnosticCache
from authdiag.diagnostics.engine import DiagnosticEngine
from authdiag.diagnostics.monitor import HealthChangeCallback, HealthMonitor
from authdiag.diagnostics.probe import SystemHealthProbe
from authdiag.diagnostics.refresher import TokenRefresher
from authdiag.diagnostics.report import export_diagnostic_data, format_report, scrub
from authdiag.diagnostics.types import (
    AuthState,
    DiagnosticResult,
    OAuthConsentResult,
    Permissions,
    TokenRefreshConfig,
)
from authdiag.observability.logging import get_logger
from authdiag.observability.telemetry import counter, latency_samples, log_event

if TYPE_CHECKING:
    from authdiag.google.token_validator import GoogleTokenValidator

logger = get_logger(__name__)

SUPPORT_REPORT_FALLBACK = "Support report incomplete - include this output when contacting support"
SUPPORT_REPORT_LATENCY_SAMPLES = 20


class AuthDiagnostics:
    def __init__(
        self,
        engine: DiagnosticEngine,
        refresher: TokenRefresher | None = None,
        cache: DiagnosticCache | None = None,
        validator: GoogleTokenValidator | None = None,
    ):
        self.engine = engine
        self.refresher = refresher
        self.cache = cache if cache is not None else DiagnosticCache()
        self.validator = validator

    @classmethod
    def from_environment(cls) -> AuthDiagnostics:
        """
        Build the production wiring over Google collaborators.

        Token refresh needs the encrypted credential store; without
        AUTHDIAG_ENCRYPTION_KEY the service still diagnoses but refresh
        reports itself as not configured.
        """
        from authdiag.google.environment import ProcessEnvironment
        from authdiag.google.network import GoogleReachabilityProbe
        from authdiag.google.token_validator import GoogleTokenValidator

        validator = GoogleTokenValidator()
        probe = SystemHealthProbe(validator, GoogleReachabilityProbe(), ProcessEnvironment())

        refresher: TokenRefresher | None = None
        try:
            from authdiag.google.token_issuer import GoogleTokenIssuer
            from authdiag.storage.credentials import CredentialStore

            refresher = TokenRefresher(GoogleTokenIssuer(CredentialStore()), validator)
        except ValueError as e:
            logger.warning("Token refresh disabled: %s", e)

        return cls(DiagnosticEngine(probe), refresher=refresher, validator=validator)

    async def diagnose(
        self,
        error: Any = None,
        auth_state: AuthState | None = None,
        permissions: Permissions | None = None,
        cache_key: str | None = None,
    ) -> DiagnosticResult:
        """
        Diagnose, optionally memoized under cache_key for the cache TTL.

        Returns:
            DiagnosticResult (never raises)
        """
        if cache_key:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached

        result = await self.engine.diagnose(error, auth_state, permissions)

        if cache_key:
            self.cache.put(cache_key, result)
        return result

    async def attempt_token_refresh(
        self, refresh_config: TokenRefreshConfig | None = None
    ) -> OAuthConsentResult:
        if self.refresher is None:
            return OAuthConsentResult(success=False, error="Token refresh is not configured")
        result = await self.refresher.attempt_token_refresh(refresh_config)
        if result.success:
            # Cached diagnoses describe the old token
            self.cache.clear()
        return result

    def monitor_health(
        self,
        auth_state: AuthState | None,
        permissions: Permissions | None,
        on_change: HealthChangeCallback | None = None,
        interval_seconds: float = config.MONITOR_INTERVAL_SECONDS,
    ) -> Callable[[], None]:
        """Start monitoring on the running event loop; returns the cancel function."""
        monitor = HealthMonitor(self.engine, auth_state, permissions, on_change, interval_seconds)
        return monitor.start()

    def format_report(self, result: DiagnosticResult) -> str:
        return format_report(result)

    def export_diagnostic_data(self, result: DiagnosticResult) -> str:
        return export_diagnostic_data(result)

    def sign_out(self) -> None:
        self.cache.clear()
        if self.validator is not None:
            # A signed-out token must not keep validating from cache
            self.validator.clear_cache()
        log_event("auth.signed_out")

    def _cache_status(self) -> dict[str, Any]:
        status = self.cache.stats()
        if self.validator is not None:
            status["token_validation"] = self.validator.cache_stats()
        return status

    async def generate_support_report(
        self,
        auth_state: AuthState | None = None,
        permissions: Permissions | None = None,
        error: Any = None,
    ) -> str:
        """
        Collect everything support needs into one JSON document.

        Returns:
            JSON string with runtime info, the diagnosis, detailed diagnostics
            and the formatted report. A failing section is left null and a
            recommendation is added instead of raising.
        """
        counter("auth.support_report.count")
        report: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "runtime": f"Python {platform.python_version()} on {platform.platform()}",
            "app_version": config.APP_VERSION,
            "diagnostic": None,
            "detailed": None,
            "formatted_report": None,
            "recommendations": [],
            "diagnose_latency_seconds": [],
        }

        try:
            result = await self.diagnose(error, auth_state, permissions)
            report["diagnostic"] = scrub(result.to_dict())
            report["formatted_report"] = format_report(result)
        except Exception as e:
            logger.error("Support report diagnosis failed: %s", e)
            report["recommendations"].append(SUPPORT_REPORT_FALLBACK)

        try:
            detailed = await self.engine.detailed_diagnostics(
                auth_state, permissions, cache_status=self._cache_status()
            )
            report["detailed"] = scrub(detailed.to_dict())
        except Exception as e:
            logger.error("Support report detailed diagnostics failed: %s", e)
            if SUPPORT_REPORT_FALLBACK not in report["recommendations"]:
                report["recommendations"].append(SUPPORT_REPORT_FALLBACK)

        samples = latency_samples("auth.diagnose.latency")
        report["diagnose_latency_seconds"] = samples[-SUPPORT_REPORT_LATENCY_SAMPLES:]
        return json.dumps(report, indent=2, default=str)
