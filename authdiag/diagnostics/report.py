"""
Human-readable and exportable renderings of a DiagnosticResult.

Exports are meant to be pasted into support tickets, so everything that
leaves through here is scrubbed of tokens.
"""

from __future__ import annotations

import json
from dataclasses import asdict, fields
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from authdiag.diagnostics.types import DiagnosticResult, SystemHealthStatus
from authdiag.utils.redaction import SECRET_FIELD_NAMES, scrub_secrets

EXPORT_FORMAT_VERSION = "1.0"


def _yes_no(flag: bool, yes: str = "YES", no: str = "NO") -> str:
    return yes if flag else no


def format_report(result: DiagnosticResult) -> str:
    lines: list[str] = [
        "=== AUTHENTICATION DIAGNOSTIC REPORT ===",
        f"Status: {_yes_no(result.is_healthy, 'HEALTHY', 'UNHEALTHY')} ({result.severity.value.upper()})",
        f"Issues Found: {len(result.issues)}",
        f"User Action Required: {_yes_no(result.needs_user_action)}",
        f"Auto-Recovery Possible: {_yes_no(result.can_auto_recover)}",
        "",
    ]

    status = result.system_status
    lines += [
        "--- SYSTEM STATUS ---",
        f"Token Valid: {_yes_no(status.token_valid)}",
        f"Scopes Valid: {_yes_no(status.scopes_valid)}",
        f"Network Reachable: {_yes_no(status.network_reachable)}",
        f"Identity API: {_yes_no(status.identity_api_available, 'AVAILABLE', 'NOT AVAILABLE')}",
        f"OAuth Config: {_yes_no(status.config_valid, 'VALID', 'INVALID')}",
        "",
    ]

    if result.issues:
        lines.append("--- ISSUES DETECTED ---")
        for index, issue in enumerate(result.issues, start=1):
            lines.append(f"{index}. [{issue.severity.value.upper()}] {issue.message}")
            lines.append(f"   Type: {issue.kind.value}")
            lines.append(f"   Action: {issue.suggested_action}")
            lines.append(f"   Auto-Recover: {_yes_no(issue.can_auto_recover, 'Yes', 'No')}")
            if issue.technical_details:
                lines.append(f"   Details: {scrub_secrets(issue.technical_details)}")
            lines.append("")

    if result.recommendations:
        lines.append("--- RECOMMENDATIONS ---")
        lines.extend(f"{i}. {rec}" for i, rec in enumerate(result.recommendations, start=1))
        lines.append("")

    plan = result.recovery_plan
    if plan is not None and plan.steps:
        lines += [
            "--- RECOVERY PLAN ---",
            f"Estimated Time: {plan.estimated_time}",
            f"Success Probability: {plan.success_probability.value.upper()}",
            f"User Interaction Required: {_yes_no(plan.requires_user_interaction)}",
            "",
            "Steps:",
        ]
        for index, step in enumerate(plan.steps, start=1):
            lines.append(f"{index}. {step.description}")
            lines.append(f"   Action: {step.action}")
            lines.append(f"   Automated: {_yes_no(step.automated, 'Yes', 'No')}")
            lines.append(f"   Duration: {round(step.estimated_duration_ms / 1000)}s")
            lines.append("")

    lines.append("=== END REPORT ===")
    return "\n".join(lines)


def _redacted_status(status: SystemHealthStatus) -> dict[str, bool]:
    # Only the boolean health flags are exported
    return {f.name: getattr(status, f.name) for f in fields(status) if isinstance(getattr(status, f.name), bool)}


def scrub(value: Any) -> Any:
    """Recursively drop secret fields and scrub token-looking text."""
    if isinstance(value, dict):
        return {k: scrub(v) for k, v in value.items() if k not in SECRET_FIELD_NAMES}
    if isinstance(value, (list, tuple)):
        return [scrub(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, str):
        return scrub_secrets(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def export_diagnostic_data(result: DiagnosticResult, now: datetime | None = None) -> str:
    """
    Serialize a result for support tooling.

    Returns:
        Pretty-printed JSON with timestamp, format version and the diagnostic,
        where system_status keeps only its boolean flags.
    """
    diagnostic = asdict(result)
    diagnostic["system_status"] = _redacted_status(result.system_status)
    export = {
        "timestamp": (now or datetime.now(UTC)).isoformat(),
        "version": EXPORT_FORMAT_VERSION,
        "diagnostic": scrub(diagnostic),
    }
    return json.dumps(export, indent=2)
