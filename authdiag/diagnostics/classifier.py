"""
Heuristic classification of raw authentication failures.

A failure may be anything the caller caught: an exception, an HTTP error
carrying a response, a status code, a JSON error payload or a bare string.
Structured status fields are checked first; the text is only scanned for a
status code when none is present.
"""

from __future__ import annotations

import json
import re
from typing import Any

from authdiag.diagnostics.types import Classification, ErrorCategory

NETWORK_KEYWORDS = ("network", "timeout", "fetch", "connection", "offline")
TOKEN_KEYWORDS = ("401", "unauthorized", "unauthenticated", "invalid_token", "token_expired")
SCOPE_KEYWORDS = ("403", "forbidden", "insufficient_scope", "scope_insufficient", "permission_denied")
CONSENT_KEYWORDS = ("consent_required", "consent_needed", "authorization_required")
RATE_LIMIT_KEYWORDS = ("429", "rate_limit", "quota_exceeded", "too_many_requests")

_STATUS_IN_TEXT = re.compile(r"\b([45]\d{2})\b")
_STATUS_FIELDS = ("status", "status_code", "code")


def _field(error: Any, name: str) -> Any:
    if isinstance(error, dict):
        return error.get(name)
    return getattr(error, name, None)


def _as_status(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def error_to_string(error: Any) -> str:
    """Best-effort text form of a failure value (case preserved)."""
    if error is None:
        return ""
    if isinstance(error, str):
        return error
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    message = _field(error, "message")
    if isinstance(message, str) and message:
        return message
    if isinstance(error, (dict, list)):
        try:
            return json.dumps(error, default=str)
        except (TypeError, ValueError):
            return str(error)
    return str(error)


def extract_status_code(error: Any) -> int:
    """
    Return the HTTP-ish status code carried by a failure, or 0.

    Checks explicit fields first (status, status_code, code, and the same on
    an attached response such as httpx.HTTPStatusError.response), then falls
    back to the first 4xx/5xx number in the text.
    """
    if isinstance(error, bool) or error is None:
        return 0
    if isinstance(error, int):
        return error

    for name in _STATUS_FIELDS:
        status = _as_status(_field(error, name))
        if status:
            return status

    response = _field(error, "response")
    if response is not None:
        for name in _STATUS_FIELDS:
            status = _as_status(_field(response, name))
            if status:
                return status

    match = _STATUS_IN_TEXT.search(error_to_string(error))
    return int(match.group(1)) if match else 0


def _matches(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


class ErrorClassifier:
    """Maps a failure to an ErrorCategory with a fixed confidence per rule."""

    def classify(self, error: Any) -> Classification:
        text = error_to_string(error).lower()
        status = extract_status_code(error)

        if _matches(text, NETWORK_KEYWORDS):
            return Classification(ErrorCategory.NETWORK, 0.9)
        if status == 429 or _matches(text, RATE_LIMIT_KEYWORDS):
            return Classification(ErrorCategory.RATE_LIMIT, 0.95)
        if status == 401 or _matches(text, TOKEN_KEYWORDS):
            return Classification(ErrorCategory.AUTH, 0.9)
        if status == 403 or _matches(text, SCOPE_KEYWORDS):
            return Classification(ErrorCategory.SCOPE, 0.85)
        if _matches(text, CONSENT_KEYWORDS):
            return Classification(ErrorCategory.CONSENT, 0.8)
        return Classification(ErrorCategory.UNKNOWN, 0.1)

    def is_auth_error(self, error: Any) -> bool:
        """True for failures that an auth flow (not the network) must resolve."""
        if error is None:
            return False
        if extract_status_code(error) in (401, 403, 429):
            return True
        text = error_to_string(error).lower()
        return _matches(text, TOKEN_KEYWORDS + SCOPE_KEYWORDS + CONSENT_KEYWORDS)
