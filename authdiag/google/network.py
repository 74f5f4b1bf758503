"""Network reachability probe for the Google API front door."""

from __future__ import annotations

import httpx

from authdiag.config import NETWORK_PROBE_URL, NETWORK_TIMEOUT_SECONDS
from authdiag.observability.logging import get_logger

logger = get_logger(__name__)


class GoogleReachabilityProbe:
    def __init__(
        self,
        url: str = NETWORK_PROBE_URL,
        timeout: float = NETWORK_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def is_reachable(self) -> bool:
        """True when the endpoint answers with anything below 500."""
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.head(self.url)
        except httpx.HTTPError as e:
            logger.warning("Network probe failed: %s", e)
            return False
        return response.status_code < 500
