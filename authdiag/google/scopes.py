"""Scope catalog for the Google APIs the application depends on."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PermissionScope:
    name: str
    url: str
    required: bool
    description: str


SCOPES: tuple[PermissionScope, ...] = (
    PermissionScope(
        name="drive",
        url="https://www.googleapis.com/auth/drive.file",
        required=True,
        description="Access to Google Drive files for data storage",
    ),
    PermissionScope(
        name="sheets",
        url="https://www.googleapis.com/auth/spreadsheets",
        required=True,
        description="Access to Google Sheets for tracking data",
    ),
    PermissionScope(
        name="calendar",
        url="https://www.googleapis.com/auth/calendar.events.readonly",
        required=False,
        description="Read-only access to calendar events for scheduling",
    ),
)


def required_scope_urls() -> list[str]:
    return [scope.url for scope in SCOPES if scope.required]


def optional_scope_urls() -> list[str]:
    return [scope.url for scope in SCOPES if not scope.required]


def scope_name(url: str) -> str:
    """Short name for a scope URL; unknown URLs fall back to their last path segment."""
    for scope in SCOPES:
        if scope.url == url:
            return scope.name
    return url.rstrip("/").rsplit("/", 1)[-1] or "unknown"
