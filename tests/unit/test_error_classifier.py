"""Unit tests for error classification

Tests cover:
- Category priority (network > rate limit > auth > scope > consent)
- Structured status fields vs. status codes found in text
- Exceptions, dicts, httpx errors and bare strings as inputs
- is_auth_error
"""

from __future__ import annotations

import httpx
import pytest

from authdiag.diagnostics.classifier import ErrorClassifier, error_to_string, extract_status_code
from authdiag.diagnostics.types import ErrorCategory


@pytest.fixture
def classifier():
    return ErrorClassifier()


@pytest.mark.parametrize(
    "error",
    [
        {"status": 401},
        {"status": "401", "message": "Request failed"},
        "Unauthorized",
        "invalid_token: signature mismatch",
        RuntimeError("UNAUTHENTICATED"),
        401,
    ],
)
def test_unauthorized_failures_classify_as_auth(classifier, error):
    result = classifier.classify(error)

    assert result.category is ErrorCategory.AUTH
    assert result.confidence == 0.9


def test_rate_limit_status(classifier):
    result = classifier.classify({"status": 429})

    assert result.category is ErrorCategory.RATE_LIMIT
    assert result.confidence == 0.95


def test_rate_limit_keyword(classifier):
    assert classifier.classify("quota_exceeded for project").category is ErrorCategory.RATE_LIMIT


def test_network_keywords_win_over_status(classifier):
    """A 401 that mentions a timeout is still a network problem"""
    result = classifier.classify({"status": 401, "message": "Network timeout while refreshing"})

    assert result.category is ErrorCategory.NETWORK
    assert result.confidence == 0.9


def test_rate_limit_wins_over_auth(classifier):
    assert classifier.classify("429 unauthorized").category is ErrorCategory.RATE_LIMIT


def test_scope_status_and_keywords(classifier):
    assert classifier.classify({"code": 403}).category is ErrorCategory.SCOPE
    assert classifier.classify("PERMISSION_DENIED").category is ErrorCategory.SCOPE
    assert classifier.classify("insufficient_scope").confidence == 0.85


def test_consent(classifier):
    result = classifier.classify("consent_required")

    assert result.category is ErrorCategory.CONSENT
    assert result.confidence == 0.8


def test_unknown(classifier):
    result = classifier.classify(ValueError("something odd"))

    assert result.category is ErrorCategory.UNKNOWN
    assert result.confidence == 0.1


def test_structured_status_beats_text(classifier):
    """Explicit status field is used even when the text carries another code"""
    assert extract_status_code({"status": 403, "message": "upstream said 401"}) == 403


def test_status_from_text_when_no_field():
    assert extract_status_code("Request failed with status 429") == 429
    assert extract_status_code("nothing numeric") == 0
    assert extract_status_code("port 8080 is fine") == 0


def test_status_from_httpx_response():
    request = httpx.Request("GET", "https://www.googleapis.com/drive/v3/files")
    response = httpx.Response(403, request=request)
    error = httpx.HTTPStatusError("Client error", request=request, response=response)

    assert extract_status_code(error) == 403
    assert ErrorClassifier().classify(error).category is ErrorCategory.SCOPE


def test_bool_is_not_a_status():
    assert extract_status_code(True) == 0


def test_error_to_string_variants():
    assert error_to_string(None) == ""
    assert error_to_string("plain") == "plain"
    assert error_to_string(KeyError()) == "KeyError"
    assert error_to_string({"message": "from payload"}) == "from payload"
    assert error_to_string({"status": 500}) == '{"status": 500}'


def test_is_auth_error(classifier):
    assert classifier.is_auth_error({"status": 401})
    assert classifier.is_auth_error({"status": 403})
    assert classifier.is_auth_error({"status": 429})
    assert classifier.is_auth_error("consent_needed")
    assert not classifier.is_auth_error(None)
    assert not classifier.is_auth_error("connection reset")
    assert not classifier.is_auth_error({"status": 500})
