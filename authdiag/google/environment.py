"""Environment facts read from process configuration."""

from __future__ import annotations

from pathlib import Path

from authdiag import config


class ProcessEnvironment:
    """
    Reads identity/OAuth facts from the environment on every call so a
    long-running monitor notices configuration changes.
    """

    def __init__(self, client_secrets_file: str | None = None):
        self.client_secrets_file = client_secrets_file or config.GOOGLE_OAUTH_CLIENT_SECRETS

    def identity_api_available(self) -> bool:
        return config.identity_api_enabled()

    def oauth_config_present(self) -> bool:
        return bool(config.oauth_client_id()) or Path(self.client_secrets_file).is_file()

    def app_version(self) -> str:
        return config.APP_VERSION
