"""Pydantic request models for the AuthDiag API.

Request bodies mirror the diagnostics input records and convert into them
with to_record(); the diagnostics core never sees pydantic objects.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from authdiag import config
from authdiag.diagnostics.types import (
    AuthState,
    AuthUser,
    Permissions,
    TokenRefreshConfig,
    ValidationStatus,
)

MAX_ERROR_LENGTH = 10_000


class AuthUserModel(BaseModel):
    email: str | None = None
    access_token: str | None = Field(default=None, max_length=4096)

    def to_record(self) -> AuthUser:
        return AuthUser(email=self.email, access_token=self.access_token)


class ValidationStatusModel(BaseModel):
    is_valid: bool
    is_expired: bool = False
    has_required_scopes: bool = True
    expires_at: datetime | None = None
    errors: list[str] = Field(default_factory=list, max_length=50)
    needs_reauth: bool = False

    def to_record(self) -> ValidationStatus:
        return ValidationStatus(
            is_valid=self.is_valid,
            is_expired=self.is_expired,
            has_required_scopes=self.has_required_scopes,
            expires_at=self.expires_at,
            errors=tuple(self.errors),
            needs_reauth=self.needs_reauth,
        )


class AuthStateModel(BaseModel):
    is_authenticated: bool = False
    user: AuthUserModel | None = None
    validation_status: ValidationStatusModel | None = None
    token_refresh_in_progress: bool = False
    is_validating: bool = False
    last_validation: datetime | None = None
    can_proceed: bool = False

    def to_record(self) -> AuthState:
        return AuthState(
            is_authenticated=self.is_authenticated,
            user=self.user.to_record() if self.user else None,
            validation_status=self.validation_status.to_record() if self.validation_status else None,
            token_refresh_in_progress=self.token_refresh_in_progress,
            is_validating=self.is_validating,
            last_validation=self.last_validation,
            can_proceed=self.can_proceed,
        )


class PermissionsModel(BaseModel):
    has_drive: bool = False
    has_sheets: bool = False
    has_calendar: bool = False
    folder_structure_exists: bool = False

    def to_record(self) -> Permissions:
        return Permissions(
            has_drive=self.has_drive,
            has_sheets=self.has_sheets,
            has_calendar=self.has_calendar,
            folder_structure_exists=self.folder_structure_exists,
        )


class DiagnoseRequest(BaseModel):
    """Input for diagnose, report, export and support-report endpoints.

    error may be a plain message or an error payload such as
    {"status": 401, "message": "..."}.
    """

    error: str | dict[str, Any] | None = None
    auth_state: AuthStateModel | None = None
    permissions: PermissionsModel | None = None
    cache_key: str | None = Field(default=None, max_length=200)

    def error_value(self) -> str | dict[str, Any] | None:
        if isinstance(self.error, str):
            return self.error[:MAX_ERROR_LENGTH]
        return self.error

    def auth_state_record(self) -> AuthState | None:
        return self.auth_state.to_record() if self.auth_state else None

    def permissions_record(self) -> Permissions | None:
        return self.permissions.to_record() if self.permissions else None


class RefreshRequest(BaseModel):
    interactive: bool = False
    force_reauth: bool = False
    include_optional_scopes: bool = False
    timeout_seconds: float = Field(default=config.REFRESH_TIMEOUT_SECONDS, gt=0, le=300)
    retry_count: int = Field(default=config.REFRESH_RETRY_COUNT, ge=0, le=10)

    def to_record(self) -> TokenRefreshConfig:
        return TokenRefreshConfig(
            interactive=self.interactive,
            force_reauth=self.force_reauth,
            include_optional_scopes=self.include_optional_scopes,
            timeout_seconds=self.timeout_seconds,
            retry_count=self.retry_count,
        )


class RefreshResponse(BaseModel):
    """Refresh outcome; the new token itself is never returned over HTTP."""

    success: bool
    granted_scopes: list[str]
    denied_scopes: list[str]
    error: str | None = None
    attempts: int
