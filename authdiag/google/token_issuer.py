"""Google OAuth2 token issuer

Issues access tokens for the token refresher:
- Non-interactive: refresh the stored credentials with their refresh token
- Interactive: run the installed-app consent flow (local server + browser)

Credentials are persisted through CredentialStore so a refresh token
survives restarts. google-auth is synchronous, so each network call runs
in a worker thread.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

from google.auth.exceptions import GoogleAuthError, RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from authdiag.config import GOOGLE_OAUTH_CLIENT_SECRETS
from authdiag.observability.logging import get_logger
from authdiag.observability.telemetry import counter, log_event
from authdiag.storage.credentials import CredentialStore

logger = get_logger(__name__)


class TokenIssueError(RuntimeError):
    """Raised when no token could be issued; the message feeds error classification."""


def _token_dict(credentials: Credentials) -> dict[str, Any]:
    return {
        "token": credentials.token,
        "refresh_token": credentials.refresh_token,
        "token_uri": credentials.token_uri,
        "client_id": credentials.client_id,
        "client_secret": credentials.client_secret,
        "scopes": list(credentials.scopes or []),
        "expiry": credentials.expiry.isoformat() if credentials.expiry else None,
    }


class GoogleTokenIssuer:
    def __init__(
        self,
        store: CredentialStore,
        user_id: str = "default",
        client_secrets_file: str = GOOGLE_OAUTH_CLIENT_SECRETS,
    ):
        self.store = store
        self.user_id = user_id
        self.client_secrets_file = client_secrets_file

    def _load(self, scopes: Sequence[str]) -> Credentials | None:
        token_dict = self.store.get(self.user_id)
        if not token_dict:
            return None
        return Credentials(
            token=token_dict.get("token"),
            refresh_token=token_dict.get("refresh_token"),
            token_uri=token_dict.get("token_uri"),
            client_id=token_dict.get("client_id"),
            client_secret=token_dict.get("client_secret"),
            scopes=list(scopes),
        )

    def _save(self, credentials: Credentials) -> None:
        self.store.put(self.user_id, _token_dict(credentials))

    async def get_token(self, interactive: bool, scopes: Sequence[str]) -> str | None:
        """
        Obtain an access token for scopes.

        Raises:
            TokenIssueError: If refresh failed and interactive sign-in was not allowed
        """
        credentials = self._load(scopes)

        if credentials is not None and credentials.refresh_token:
            try:
                await asyncio.to_thread(credentials.refresh, Request())
            except RefreshError as e:
                logger.warning("Stored refresh token rejected for user %s: %s", self.user_id, e)
                if not interactive:
                    raise TokenIssueError(f"unauthorized: refresh token rejected ({e})") from e
            except GoogleAuthError as e:
                raise TokenIssueError(f"Token refresh failed: {e}") from e
            else:
                self._save(credentials)
                counter("oauth.token_refreshed.count")
                log_event("oauth.token_refreshed", user_id=self.user_id)
                return credentials.token

        if not interactive:
            raise TokenIssueError("consent_required: no stored credentials for non-interactive refresh")

        return await self._interactive_sign_in(scopes)

    async def _interactive_sign_in(self, scopes: Sequence[str]) -> str | None:
        try:
            flow = InstalledAppFlow.from_client_secrets_file(
                self.client_secrets_file, scopes=list(scopes)
            )
        except FileNotFoundError as e:
            logger.error("Client secrets file not found: %s", self.client_secrets_file)
            raise TokenIssueError(
                f"OAuth client secrets not found at {self.client_secrets_file}"
            ) from e

        credentials = await asyncio.to_thread(flow.run_local_server, port=0)
        self._save(credentials)
        counter("oauth.interactive_sign_in.count")
        log_event("oauth.interactive_sign_in", user_id=self.user_id)
        return credentials.token

    async def clear_cached_token(self) -> None:
        """Drop the stored credentials so the next request goes through consent."""
        await asyncio.to_thread(self.store.delete, self.user_id)
