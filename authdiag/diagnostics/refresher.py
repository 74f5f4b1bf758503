"""
Token refresh with bounded retries and capped exponential backoff.

Each attempt asks the issuer for a token (bounded by the configured timeout),
then validates it. The first validated token wins. Backoff before attempt n+1
is min(base * 2**(n-1), max) seconds: 1s, 2s, 4s, 8s, 10s, 10s, ...
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from authdiag.config import REFRESH_BASE_DELAY_SECONDS, REFRESH_MAX_DELAY_SECONDS
from authdiag.contracts import TokenIssuer, TokenValidator
from authdiag.diagnostics.types import OAuthConsentResult, TokenRefreshConfig
from authdiag.google.scopes import optional_scope_urls, required_scope_urls
from authdiag.observability.logging import get_logger
from authdiag.observability.telemetry import counter, log_event
from authdiag.utils.redaction import redact

logger = get_logger(__name__)


class RefreshAttemptError(RuntimeError):
    """One refresh attempt failed; the refresher decides whether to retry."""


@dataclass(frozen=True)
class _IssuedToken:
    token: str
    granted_scopes: tuple[str, ...]


def backoff_delay(
    attempt: int,
    base_delay: float = REFRESH_BASE_DELAY_SECONDS,
    max_delay: float = REFRESH_MAX_DELAY_SECONDS,
) -> float:
    """Delay in seconds to wait after failed attempt number `attempt` (1-based)."""
    return min(base_delay * (2 ** (attempt - 1)), max_delay)


class TokenRefresher:
    def __init__(
        self,
        issuer: TokenIssuer,
        validator: TokenValidator,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
        required_scopes: Sequence[str] | None = None,
        optional_scopes: Sequence[str] | None = None,
    ):
        self.issuer = issuer
        self.validator = validator
        self.sleep_fn = sleep_fn
        self.required_scopes = tuple(required_scopes or required_scope_urls())
        self.optional_scopes = tuple(optional_scopes or optional_scope_urls())

    def requested_scopes(self, config: TokenRefreshConfig) -> tuple[str, ...]:
        scopes = list(self.required_scopes)
        if config.include_optional_scopes:
            scopes.extend(s for s in self.optional_scopes if s not in scopes)
        return tuple(scopes)

    async def attempt_token_refresh(
        self, config: TokenRefreshConfig | None = None
    ) -> OAuthConsentResult:
        """
        Refresh the access token.

        Args:
            config: Refresh options (defaults: non-interactive, 30s timeout, 3 attempts)

        Returns:
            OAuthConsentResult; success=False with an error message on failure.
            Never raises.
        """
        config = config or TokenRefreshConfig()
        scopes = self.requested_scopes(config)
        last_error = "Token refresh failed"

        log_event(
            "auth.refresh.started",
            interactive=config.interactive,
            retry_count=config.retry_count,
            scopes=len(scopes),
        )

        if config.retry_count < 1:
            logger.warning("Token refresh skipped: retry_count=%s", config.retry_count)
            return OAuthConsentResult(success=False, error="No refresh attempts configured")

        if config.force_reauth:
            try:
                await self.issuer.clear_cached_token()
            except Exception as e:
                logger.warning("Failed to clear cached token before re-auth: %s", e)

        for attempt in range(1, config.retry_count + 1):
            try:
                issued = await self._attempt(scopes, config)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = str(e) or type(e).__name__
                logger.warning("Token refresh attempt %d failed: %s", attempt, last_error)
                counter("auth.refresh.attempt_failed")
                if attempt < config.retry_count:
                    await self._backoff(attempt)
                continue

            denied = tuple(s for s in scopes if s not in issued.granted_scopes)
            logger.info(
                "Token refresh successful on attempt %d (token %s)", attempt, redact(issued.token)
            )
            counter("auth.refresh.success")
            log_event("auth.refresh.succeeded", attempt=attempt, denied_scopes=len(denied))
            return OAuthConsentResult(
                success=True,
                granted_scopes=issued.granted_scopes,
                denied_scopes=denied,
                new_token=issued.token,
                attempts=attempt,
            )

        counter("auth.refresh.failure")
        log_event("auth.refresh.failed", attempts=config.retry_count, error=last_error)
        return OAuthConsentResult(success=False, error=last_error, attempts=config.retry_count)

    async def _attempt(self, scopes: tuple[str, ...], config: TokenRefreshConfig) -> _IssuedToken:
        try:
            token = await asyncio.wait_for(
                self.issuer.get_token(config.interactive, scopes),
                timeout=config.timeout_seconds,
            )
        except TimeoutError as e:
            raise RefreshAttemptError("Token refresh timeout") from e

        if not token:
            raise RefreshAttemptError("No token received")

        validation = await self.validator.validate(token)
        if not validation.is_valid:
            reasons = ", ".join(validation.errors) or "unknown reason"
            raise RefreshAttemptError(f"New token validation failed: {reasons}")

        return _IssuedToken(token=token, granted_scopes=validation.granted_scopes)

    async def _backoff(self, attempt: int) -> None:
        counter("auth.refresh.retry_count")
        delay = backoff_delay(attempt)
        log_event("auth.refresh.retry_scheduled", attempt=attempt, delay=delay)
        await self.sleep_fn(delay)
