"""Centralized configuration for AuthDiag.

Typed constants read from the environment with safe defaults so the
diagnostics engine works without any extra configuration. The API entry
point loads a local .env file before this module is imported.
"""

from __future__ import annotations

import os

# --- App ---
APP_VERSION: str = "1.0.0"
ENV: str = os.getenv("AUTHDIAG_ENV", "development")

# --- Diagnostics ---
DIAGNOSTIC_CACHE_TTL_SECONDS: float = float(os.getenv("AUTHDIAG_DIAGNOSTIC_CACHE_TTL", "30"))
DIAGNOSTIC_CACHE_MAX_SIZE: int = 1000
MONITOR_INTERVAL_SECONDS: float = float(os.getenv("AUTHDIAG_MONITOR_INTERVAL", "60"))
TOKEN_EXPIRY_WARNING_MINUTES: int = 5
FATAL_CRITICAL_THRESHOLD: int = 2  # more critical issues than this => fatal

# --- Token refresh ---
REFRESH_TIMEOUT_SECONDS: float = float(os.getenv("AUTHDIAG_REFRESH_TIMEOUT", "30"))
REFRESH_RETRY_COUNT: int = int(os.getenv("AUTHDIAG_REFRESH_RETRIES", "3"))
REFRESH_BASE_DELAY_SECONDS: float = 1.0
REFRESH_MAX_DELAY_SECONDS: float = 10.0

# --- Google collaborators ---
VALIDATION_TIMEOUT_SECONDS: float = float(os.getenv("AUTHDIAG_VALIDATION_TIMEOUT", "10"))
VALIDATION_CACHE_TTL_SECONDS: int = 60
VALIDATION_CACHE_MAX_SIZE: int = 1000
TOKEN_MIN_REMAINING_SECONDS: int = 60
NETWORK_TIMEOUT_SECONDS: float = float(os.getenv("AUTHDIAG_NETWORK_TIMEOUT", "5"))
NETWORK_PROBE_URL: str = os.getenv("AUTHDIAG_NETWORK_PROBE_URL", "https://www.googleapis.com/")
GOOGLE_TOKEN_INFO_URL: str = "https://www.googleapis.com/oauth2/v1/tokeninfo"

# --- OAuth environment ---
GOOGLE_OAUTH_CLIENT_SECRETS: str = os.getenv(
    "GOOGLE_OAUTH_CLIENT_SECRETS", "credentials/credentials.json"
)
CREDENTIALS_DB_PATH: str = os.getenv("AUTHDIAG_CREDENTIALS_DB", "data/credentials.db")


def identity_api_enabled() -> bool:
    """Read at call time so a probe always sees the current environment."""
    return os.getenv("AUTHDIAG_IDENTITY_API_ENABLED", "true").lower() == "true"


def oauth_client_id() -> str | None:
    return os.getenv("GOOGLE_OAUTH_CLIENT_ID") or None


def is_production() -> bool:
    """Check if running in production"""
    return ENV == "production"
