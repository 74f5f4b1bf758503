"""System health probe: token, scopes, network and environment in one snapshot."""

from __future__ import annotations

from authdiag.contracts import EnvironmentFacts, NetworkProbe, TokenValidator
from authdiag.diagnostics.types import AuthState, SystemHealthStatus
from authdiag.observability.logging import get_logger

logger = get_logger(__name__)


class SystemHealthProbe:
    def __init__(
        self,
        validator: TokenValidator,
        network: NetworkProbe,
        environment: EnvironmentFacts,
    ):
        self.validator = validator
        self.network = network
        self.environment = environment

    async def check(self, auth_state: AuthState | None) -> SystemHealthStatus:
        """
        Probe every health dimension for the given auth state.

        Never raises. Any collaborator failure is logged and reported as
        cache_operational=False with whatever was measured before it.
        """
        values = {
            "token_valid": False,
            "scopes_valid": False,
            "network_reachable": False,
            "auth_manager_healthy": isinstance(auth_state, AuthState),
            "identity_api_available": False,
            "config_valid": False,
            "cache_operational": True,
        }

        try:
            values["identity_api_available"] = bool(self.environment.identity_api_available())
            values["config_valid"] = bool(self.environment.oauth_config_present())

            token = auth_state.access_token if auth_state is not None else None
            if token:
                validation = await self.validator.validate(token)
                values["token_valid"] = validation.is_valid
                values["scopes_valid"] = validation.has_required_scopes

            values["network_reachable"] = bool(await self.network.is_reachable())
        except Exception as e:
            logger.warning("System health check failed: %s", e)
            values["cache_operational"] = False

        return SystemHealthStatus(**values)
