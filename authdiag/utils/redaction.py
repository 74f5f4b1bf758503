"""
Redaction helpers for anything that leaves the process: logs, exported
diagnostics and support reports.

Provides:
- redact(): Hash a secret for correlation without exposure
- scrub_secrets(): Replace bearer tokens / OAuth tokens inside free text
"""

from __future__ import annotations

import re
from hashlib import sha256

# Google access tokens start with ya29., refresh tokens with 1//
_SECRET_PATTERNS = [
    re.compile(r"Bearer\s+[A-Za-z0-9._~+/=-]+", re.IGNORECASE),
    re.compile(r"\bya29\.[A-Za-z0-9._-]+"),
    re.compile(r"\b1//[A-Za-z0-9._-]+"),
    re.compile(r"(access_token|refresh_token|client_secret)=([^&\s]+)", re.IGNORECASE),
]

# Field names whose values must never be exported
SECRET_FIELD_NAMES = frozenset(
    {"access_token", "refresh_token", "token", "new_token", "client_secret", "id_token"}
)


def redact(value: str | None) -> str:
    """
    Return a stable hash representation of a sensitive string.
    """
    if not value:
        return "hash:missing"
    digest = sha256(value.encode("utf-8")).hexdigest()[:12]
    return f"hash:{digest}"


def _replace(match: re.Match[str]) -> str:
    if match.lastindex == 2:
        return f"{match.group(1)}=[REDACTED]"
    return f"[REDACTED {redact(match.group(0))}]"


def scrub_secrets(text: str | None) -> str:
    """
    Replace token-looking substrings in free text.

    Example:
        "401 for Bearer ya29.a0AfH6" -> "401 for [REDACTED hash:1f2e3d4c5b6a]"
    """
    if not text:
        return ""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(_replace, text)
    return text
