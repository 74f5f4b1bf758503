"""Background health polling with transition-only notifications."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable, Sequence
from enum import Enum

from authdiag.config import MONITOR_INTERVAL_SECONDS
from authdiag.diagnostics.engine import DiagnosticEngine
from authdiag.diagnostics.types import AuthState, Issue, Permissions
from authdiag.observability.logging import get_logger
from authdiag.observability.telemetry import counter, log_event

logger = get_logger(__name__)

HealthChangeCallback = Callable[[bool, Sequence[Issue]], None]


class HealthState(str, Enum):
    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthMonitor:
    """
    Re-runs diagnosis every interval until stopped.

    The callback fires only when the health state changes (the first
    completed poll always counts as a change from UNKNOWN). A failed poll is
    logged and the loop keeps going.
    """

    def __init__(
        self,
        engine: DiagnosticEngine,
        auth_state: AuthState | None,
        permissions: Permissions | None,
        on_change: HealthChangeCallback | None = None,
        interval_seconds: float = MONITOR_INTERVAL_SECONDS,
    ):
        self.engine = engine
        self.auth_state = auth_state
        self.permissions = permissions
        self.on_change = on_change
        self.interval_seconds = interval_seconds
        self.last_health_status = HealthState.UNKNOWN
        self.polls = 0
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> Callable[[], None]:
        """Schedule the polling loop on the running event loop and return its stop handle."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self.stop

    def stop(self) -> None:
        """Stop future polls. A poll already in flight still completes."""
        self._stop.set()

    async def wait_stopped(self) -> None:
        if self._task is not None:
            await self._task

    async def poll_once(self) -> None:
        try:
            diagnostic = await self.engine.diagnose(None, self.auth_state, self.permissions)
            current = HealthState.HEALTHY if diagnostic.is_healthy else HealthState.UNHEALTHY
            if current is not self.last_health_status:
                log_event(
                    "auth.health.transition",
                    previous=self.last_health_status.value,
                    current=current.value,
                )
                self.last_health_status = current
                if self.on_change is not None:
                    self.on_change(diagnostic.is_healthy, diagnostic.issues)
        except Exception as e:
            logger.warning("Auth health monitoring failed: %s", e)
            counter("auth.health.poll_failed")
        finally:
            self.polls += 1

    async def _run(self) -> None:
        while not self._stop.is_set():
            await self.poll_once()
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
        logger.info("Auth health monitor stopped after %d polls", self.polls)


def monitor_health(
    engine: DiagnosticEngine,
    auth_state: AuthState | None,
    permissions: Permissions | None,
    on_change: HealthChangeCallback | None = None,
    interval_seconds: float = MONITOR_INTERVAL_SECONDS,
) -> Callable[[], None]:
    """Start a HealthMonitor on the running loop; returns the cancel function."""
    monitor = HealthMonitor(engine, auth_state, permissions, on_change, interval_seconds)
    return monitor.start()
