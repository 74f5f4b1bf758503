"""Turns a raw failure into a user-facing Issue."""

from __future__ import annotations

from typing import Any

from authdiag.diagnostics.classifier import ErrorClassifier, error_to_string, extract_status_code
from authdiag.diagnostics.types import Classification, ErrorCategory, Issue, IssueKind, IssueSeverity
from authdiag.utils.redaction import scrub_secrets


def _details(label: str, classification: Classification, status: int, text: str) -> str:
    return (
        f"{label} ({status}) [{classification.category.value} "
        f"{classification.confidence:.2f}]: {scrub_secrets(text)}"
    )


class IssueParser:
    def __init__(self, classifier: ErrorClassifier | None = None):
        self.classifier = classifier or ErrorClassifier()

    def parse(self, error: Any) -> Issue:
        """
        Build an Issue for a raw failure.

        Args:
            error: Any failure value, or None when the caller has nothing concrete

        Returns:
            Issue whose technical_details always records the classification and raw text
        """
        if error is None:
            return Issue(
                kind=IssueKind.UNKNOWN_ERROR,
                message="Unknown error occurred",
                severity=IssueSeverity.WARNING,
                can_auto_recover=False,
                requires_user_action=True,
                suggested_action="Try refreshing the page and signing in again",
                technical_details="No error value supplied",
            )

        text = error_to_string(error)
        lowered = text.lower()
        status = extract_status_code(error)
        classification = self.classifier.classify(error)
        category = classification.category

        if category is ErrorCategory.NETWORK:
            return Issue(
                kind=IssueKind.NETWORK_ERROR,
                message="Network connectivity issue detected",
                severity=IssueSeverity.WARNING,
                can_auto_recover=True,
                requires_user_action=False,
                suggested_action="Check internet connection and try again",
                technical_details=_details("Network error", classification, status, text),
            )

        if category is ErrorCategory.AUTH:
            if status == 401 or "unauthorized" in lowered:
                return Issue(
                    kind=IssueKind.INVALID_TOKEN,
                    message="Authentication token is invalid or expired",
                    severity=IssueSeverity.CRITICAL,
                    can_auto_recover=True,
                    requires_user_action=True,
                    suggested_action="Please sign in again",
                    technical_details=_details("Auth error", classification, status, text),
                )
            if "expired" in lowered:
                return Issue(
                    kind=IssueKind.TOKEN_EXPIRED,
                    message="Access token has expired",
                    severity=IssueSeverity.CRITICAL,
                    can_auto_recover=True,
                    requires_user_action=False,
                    suggested_action="Token will be automatically refreshed",
                    technical_details=_details("Token expiry", classification, status, text),
                )

        elif category is ErrorCategory.SCOPE:
            return Issue(
                kind=IssueKind.INSUFFICIENT_SCOPE,
                message="Insufficient permissions for this operation",
                severity=IssueSeverity.CRITICAL,
                can_auto_recover=True,
                requires_user_action=True,
                suggested_action="Grant additional permissions",
                technical_details=_details("Scope error", classification, status, text),
            )

        elif category is ErrorCategory.CONSENT:
            return Issue(
                kind=IssueKind.CONSENT_REQUIRED,
                message="User consent is required for additional permissions",
                severity=IssueSeverity.WARNING,
                can_auto_recover=True,
                requires_user_action=True,
                suggested_action="Complete the permission consent flow",
                technical_details=_details("Consent required", classification, status, text),
            )

        elif category is ErrorCategory.RATE_LIMIT:
            return Issue(
                kind=IssueKind.NETWORK_ERROR,
                message="API rate limit exceeded",
                severity=IssueSeverity.WARNING,
                can_auto_recover=True,
                requires_user_action=False,
                suggested_action="Please wait a moment and try again",
                technical_details=_details("Rate limit", classification, status, text),
            )

        # Unknown category, or an auth failure that is neither 401 nor expiry
        message = text if isinstance(error, BaseException) and text else "Unknown authentication error"
        return Issue(
            kind=IssueKind.UNKNOWN_ERROR,
            message=scrub_secrets(message),
            severity=IssueSeverity.WARNING,
            can_auto_recover=False,
            requires_user_action=True,
            suggested_action="Try signing out and signing back in",
            technical_details=_details("Unclassified error", classification, status, text),
        )
