"""Recovery planning: ordered, time-estimated remediation steps for an issue list."""

from __future__ import annotations

import math
from collections.abc import Sequence

from authdiag.diagnostics.types import (
    Issue,
    IssueKind,
    IssueSeverity,
    RecoveryPlan,
    RecoveryStep,
    SuccessProbability,
    SystemHealthStatus,
)

_REFRESH_TOKEN = RecoveryStep(
    action="refresh_token",
    description="Automatically refresh the expired access token",
    automated=True,
    estimated_duration_ms=5_000,
)
_REAUTH_USER = RecoveryStep(
    action="reauth_user",
    description="Re-authenticate user to obtain valid credentials",
    automated=False,
    estimated_duration_ms=30_000,
)
_REQUEST_PERMISSIONS = RecoveryStep(
    action="request_permissions",
    description="Request additional permissions from user",
    automated=False,
    estimated_duration_ms=45_000,
)
_CONSENT_FLOW = RecoveryStep(
    action="consent_flow",
    description="Guide user through consent process",
    automated=False,
    estimated_duration_ms=60_000,
)
_RETRY_CONNECTION = RecoveryStep(
    action="retry_connection",
    description="Retry network connection after brief delay",
    automated=True,
    estimated_duration_ms=10_000,
)
_VALIDATE_RECOVERY = RecoveryStep(
    action="validate_recovery",
    description="Validate that recovery was successful",
    automated=True,
    estimated_duration_ms=5_000,
)

# kind -> (step, needs user interaction, probability ceiling)
_AUTO_STEPS: dict[IssueKind, tuple[RecoveryStep, bool, SuccessProbability | None]] = {
    IssueKind.TOKEN_EXPIRED: (_REFRESH_TOKEN, False, None),
    IssueKind.INVALID_TOKEN: (_REAUTH_USER, True, SuccessProbability.MEDIUM),
    IssueKind.INSUFFICIENT_SCOPE: (_REQUEST_PERMISSIONS, True, SuccessProbability.MEDIUM),
    IssueKind.MISSING_PERMISSIONS: (_REQUEST_PERMISSIONS, True, SuccessProbability.MEDIUM),
    IssueKind.CONSENT_REQUIRED: (_CONSENT_FLOW, True, None),
    IssueKind.NETWORK_ERROR: (_RETRY_CONNECTION, False, None),
}

_ONE_MINUTE_MS = 60_000


def format_duration(total_ms: int) -> str:
    """'Less than 1 minute' up to 60s, otherwise whole minutes rounded up."""
    if total_ms <= _ONE_MINUTE_MS:
        return "Less than 1 minute"
    minutes = math.ceil(total_ms / _ONE_MINUTE_MS)
    return f"{minutes} minute{'s' if minutes != 1 else ''}"


def _priority(issue: Issue) -> tuple[int, int]:
    return (
        0 if issue.severity is IssueSeverity.CRITICAL else 1,
        0 if issue.can_auto_recover else 1,
    )


class RecoveryPlanner:
    def plan(
        self,
        issues: Sequence[Issue],
        system_status: SystemHealthStatus | None = None,  # noqa: ARG002
    ) -> RecoveryPlan:
        """
        Build a recovery plan.

        Issues are handled critical-first, then auto-recoverable-first
        (stable). Success probability starts high and is only ever lowered.
        """
        steps: list[RecoveryStep] = []
        probability = SuccessProbability.HIGH
        needs_user = False

        for issue in sorted(issues, key=_priority):
            if issue.can_auto_recover:
                mapped = _AUTO_STEPS.get(issue.kind)
                if mapped is None:
                    continue
                step, interactive, ceiling = mapped
                steps.append(step)
                needs_user = needs_user or interactive
                if ceiling is not None:
                    probability = probability.cap(ceiling)
                if issue.kind is IssueKind.NETWORK_ERROR:
                    probability = probability.downgrade()
            elif issue.severity is IssueSeverity.CRITICAL:
                steps.append(
                    RecoveryStep(
                        action="manual_intervention",
                        description=f"Manual intervention required: {issue.suggested_action}",
                        automated=False,
                        estimated_duration_ms=0,
                    )
                )
                needs_user = True
                probability = SuccessProbability.LOW

        if steps:
            steps.append(_VALIDATE_RECOVERY)

        total_ms = sum(step.estimated_duration_ms for step in steps)
        return RecoveryPlan(
            steps=tuple(steps),
            estimated_time=format_duration(total_ms),
            success_probability=probability,
            requires_user_interaction=needs_user,
        )
