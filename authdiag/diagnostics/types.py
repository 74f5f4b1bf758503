"""
Module: types
Purpose: Shared value types for the auth diagnostics engine.
Dependencies: none (leaf module)

Every record here is immutable. Issues, plans and results are rebuilt on
each diagnosis pass and never mutated afterwards, so they are safe to hand
to the cache and to monitor subscribers.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ErrorCategory(str, Enum):
    NETWORK = "network"
    AUTH = "auth"
    SCOPE = "scope"
    CONSENT = "consent"
    RATE_LIMIT = "rate_limit"
    UNKNOWN = "unknown"


class IssueKind(str, Enum):
    """Taxonomy of problems a diagnosis can surface."""

    NETWORK_ERROR = "network_error"
    INVALID_TOKEN = "invalid_token"
    TOKEN_EXPIRED = "token_expired"
    INSUFFICIENT_SCOPE = "insufficient_scope"
    MISSING_PERMISSIONS = "missing_permissions"
    CONSENT_REQUIRED = "consent_required"
    NO_AUTH = "no_auth"
    UNKNOWN_ERROR = "unknown_error"


class IssueSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class Severity(str, Enum):
    """Overall ranking of a diagnostic result."""

    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    FATAL = "fatal"


class SuccessProbability(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    def downgrade(self) -> SuccessProbability:
        return SuccessProbability.LOW if self is not SuccessProbability.HIGH else SuccessProbability.MEDIUM

    def cap(self, ceiling: SuccessProbability) -> SuccessProbability:
        """Return the lower of self and ceiling (never upgrades)."""
        order = [SuccessProbability.HIGH, SuccessProbability.MEDIUM, SuccessProbability.LOW]
        return order[max(order.index(self), order.index(ceiling))]


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuthUser:
    email: str | None = None
    access_token: str | None = None


@dataclass(frozen=True)
class ValidationStatus:
    """Last token validation outcome as tracked by the auth layer."""

    is_valid: bool
    is_expired: bool = False
    has_required_scopes: bool = True
    expires_at: datetime | None = None
    errors: tuple[str, ...] = ()
    needs_reauth: bool = False


@dataclass(frozen=True)
class AuthState:
    is_authenticated: bool = False
    user: AuthUser | None = None
    validation_status: ValidationStatus | None = None
    token_refresh_in_progress: bool = False
    is_validating: bool = False
    last_validation: datetime | None = None
    can_proceed: bool = False

    @property
    def access_token(self) -> str | None:
        if self.user is None:
            return None
        return self.user.access_token


@dataclass(frozen=True)
class Permissions:
    has_drive: bool = False
    has_sheets: bool = False
    has_calendar: bool = False
    folder_structure_exists: bool = False

    @property
    def all_required(self) -> bool:
        return self.has_drive and self.has_sheets


@dataclass(frozen=True)
class TokenRefreshConfig:
    interactive: bool = False
    force_reauth: bool = False
    include_optional_scopes: bool = False
    timeout_seconds: float = 30.0
    retry_count: int = 3


# ---------------------------------------------------------------------------
# Collaborator outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Classification:
    category: ErrorCategory
    confidence: float


@dataclass(frozen=True)
class TokenValidationResult:
    is_valid: bool
    has_required_scopes: bool
    is_expired: bool = False
    expires_at: datetime | None = None
    errors: tuple[str, ...] = ()
    granted_scopes: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Diagnosis outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Issue:
    kind: IssueKind
    message: str
    severity: IssueSeverity
    can_auto_recover: bool
    requires_user_action: bool
    suggested_action: str
    technical_details: str | None = None


@dataclass(frozen=True)
class SystemHealthStatus:
    """Point-in-time probe snapshot; recomputed on every diagnosis."""

    token_valid: bool = False
    scopes_valid: bool = False
    network_reachable: bool = False
    auth_manager_healthy: bool = False
    identity_api_available: bool = False
    config_valid: bool = False
    cache_operational: bool = True


@dataclass(frozen=True)
class RecoveryStep:
    action: str
    description: str
    automated: bool
    estimated_duration_ms: int


@dataclass(frozen=True)
class RecoveryPlan:
    steps: tuple[RecoveryStep, ...]
    estimated_time: str
    success_probability: SuccessProbability
    requires_user_interaction: bool


@dataclass(frozen=True)
class DiagnosticResult:
    is_healthy: bool
    severity: Severity
    issues: tuple[Issue, ...]
    recommendations: tuple[str, ...]
    needs_user_action: bool
    can_auto_recover: bool
    system_status: SystemHealthStatus
    recovery_plan: RecoveryPlan | None = None

    @property
    def critical_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity is IssueSeverity.CRITICAL)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class OAuthConsentResult:
    success: bool
    granted_scopes: tuple[str, ...] = ()
    denied_scopes: tuple[str, ...] = ()
    new_token: str | None = field(default=None, repr=False)
    error: str | None = None
    attempts: int = 0


@dataclass(frozen=True)
class DetailedDiagnostics:
    """Flat debugging snapshot used by support reports."""

    system_info: SystemHealthStatus
    auth_analysis: dict[str, Any] | None
    permission_analysis: dict[str, Any] | None
    network_status: bool
    cache_status: dict[str, Any] | None
    recommendations: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
