"""
Access token validation against Google's tokeninfo endpoint.

Checks:
1. Token is accepted by tokeninfo
2. Token has more than a minute left
3. Token carries every required scope
4. Token was issued for our OAuth client (when GOOGLE_OAUTH_CLIENT_ID is set)

Results are cached for a minute keyed by a hash of the token, never the
token itself.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
from cachetools import TTLCache

from authdiag import config
from authdiag.diagnostics.types import TokenValidationResult
from authdiag.google.scopes import required_scope_urls, scope_name
from authdiag.observability.logging import get_logger
from authdiag.observability.telemetry import counter
from authdiag.utils.redaction import redact

logger = get_logger(__name__)

_STATUS_MESSAGES = {
    400: "Access token is invalid or malformed",
    401: "Access token is unauthorized",
    403: "Access token is forbidden",
}


class GoogleTokenValidator:
    def __init__(
        self,
        token_info_url: str = config.GOOGLE_TOKEN_INFO_URL,
        timeout: float = config.VALIDATION_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        cache_ttl: int = config.VALIDATION_CACHE_TTL_SECONDS,
    ):
        self.token_info_url = token_info_url
        self.timeout = timeout
        self._transport = transport
        self._cache: TTLCache[str, TokenValidationResult] = TTLCache(
            maxsize=config.VALIDATION_CACHE_MAX_SIZE, ttl=cache_ttl
        )

    async def validate(self, token: str, use_cache: bool = True) -> TokenValidationResult:
        """
        Validate an access token.

        Returns:
            TokenValidationResult; transport failures and rejections come back
            as is_valid=False with a reason in errors.
        """
        if not token:
            return TokenValidationResult(
                is_valid=False,
                has_required_scopes=False,
                is_expired=True,
                errors=("Invalid or missing access token",),
            )

        cache_key = redact(token)
        if use_cache and cache_key in self._cache:
            counter("auth.validation_cache.hit")
            return self._cache[cache_key]

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.get(
                    self.token_info_url,
                    params={"access_token": token},
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error("Token validation request failed: %s", e)
            # Not cached: a transient network failure says nothing about the token
            return TokenValidationResult(
                is_valid=False,
                has_required_scopes=False,
                is_expired=False,
                errors=(f"Token validation request failed: {type(e).__name__}",),
            )

        if response.status_code != 200:
            message = _STATUS_MESSAGES.get(
                response.status_code,
                f"Token validation failed with status: {response.status_code}",
            )
            logger.warning("Token %s rejected by tokeninfo: %s", cache_key, response.status_code)
            result = TokenValidationResult(
                is_valid=False,
                has_required_scopes=False,
                is_expired=response.status_code == 400,
                errors=(message,),
            )
        else:
            try:
                token_info = response.json()
            except ValueError:
                token_info = None
            if not isinstance(token_info, dict):
                # Captive portals and proxies answer 200 with an HTML page; not cached
                logger.warning("Token %s got a malformed tokeninfo response", cache_key)
                return TokenValidationResult(
                    is_valid=False,
                    has_required_scopes=False,
                    errors=("Malformed tokeninfo response",),
                )
            result = self._evaluate(token_info)

        if use_cache:
            self._cache[cache_key] = result
        return result

    def _evaluate(self, token_info: dict[str, Any]) -> TokenValidationResult:
        errors: list[str] = []

        try:
            expires_in = int(token_info.get("expires_in", 0))
        except (TypeError, ValueError):
            expires_in = 0
        is_expired = expires_in <= config.TOKEN_MIN_REMAINING_SECONDS
        if is_expired:
            errors.append("Access token has expired or will expire soon")

        audience_ok = True
        expected_client_id = config.oauth_client_id()
        audience = token_info.get("audience") or token_info.get("aud")
        if expected_client_id and audience and audience != expected_client_id:
            audience_ok = False
            errors.append("Token audience validation failed")

        granted = tuple(s for s in str(token_info.get("scope", "")).split() if s)
        missing = [url for url in required_scope_urls() if url not in granted]
        if missing:
            errors.append(f"Missing required scopes: {', '.join(scope_name(u) for u in missing)}")

        return TokenValidationResult(
            is_valid=not is_expired and not missing and audience_ok,
            has_required_scopes=not missing,
            is_expired=is_expired,
            expires_at=None if is_expired else datetime.now(UTC) + timedelta(seconds=expires_in),
            errors=tuple(errors),
            granted_scopes=granted,
        )

    def cache_stats(self) -> dict[str, Any]:
        return {"entries": len(self._cache), "max_size": self._cache.maxsize, "ttl": self._cache.ttl}

    def clear_cache(self) -> None:
        self._cache.clear()
