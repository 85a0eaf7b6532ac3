"""
Liveness Monitor.

Two periodic tasks keep the registry consistent with real socket state:

- probe: every `probe_interval` seconds, send {"type": "ping"} to every open
  connection. Replies are not awaited; a {"type": "pong"} refreshes
  last_seen when the endpoint receives it.
- sweep: every `sweep_interval` seconds, force-close every registered
  connection silent for longer than `stale_threshold` seconds.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from presence_gateway.components.core.constants import WSConstants
from presence_gateway.components.core.context import sanitize_log_data
from presence_gateway.components.core.errors import ProbeTimeout
from presence_gateway.components.events.frames import ping_frame
from shared.config.logging import get_logger

if TYPE_CHECKING:
    from presence_gateway.components.connection.handle import ConnectionHandle
    from presence_gateway.components.connection.registry import ConnectionRegistry
    from presence_gateway.components.metrics.collector import MetricsCollector
    from presence_gateway.core.connection.broadcaster import PresenceBroadcaster

logger = get_logger(__name__)


class LivenessMonitor:
    """
    Owns the probe and sweep tasks.

    Usage:
        monitor = LivenessMonitor(registry, broadcaster, evict=lifecycle.expire)
        monitor.start()
        ...
        await monitor.stop()
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        broadcaster: PresenceBroadcaster,
        evict: Callable[[ConnectionHandle], Awaitable[Any]],
        metrics: MetricsCollector | None = None,
        probe_interval: float = WSConstants.PROBE_INTERVAL,
        sweep_interval: float = WSConstants.SWEEP_INTERVAL,
        stale_threshold: float = WSConstants.STALE_THRESHOLD,
    ) -> None:
        self._registry = registry
        self._broadcaster = broadcaster
        self._evict = evict
        self._metrics = metrics
        self._probe_interval = probe_interval
        self._sweep_interval = sweep_interval
        self._stale_threshold = stale_threshold
        self._tasks: list[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> None:
        """Start the probe and sweep tasks on the running loop."""
        if self.is_running:
            logger.warning("Liveness monitor already running")
            return

        self._tasks = [
            asyncio.create_task(
                self._run_periodic("probe", self._probe_interval, self.probe_once),
                name="liveness_probe",
            ),
            asyncio.create_task(
                self._run_periodic("sweep", self._sweep_interval, self.sweep_once),
                name="liveness_sweep",
            ),
        ]
        logger.info(
            "Liveness monitor started",
            probe_interval=self._probe_interval,
            sweep_interval=self._sweep_interval,
            stale_threshold=self._stale_threshold,
        )

    async def stop(self) -> None:
        """Cancel both tasks and wait for them to finish."""
        if not self._tasks:
            return

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Liveness monitor stopped")

    async def probe_once(self) -> int:
        """Send one liveness probe to every open connection."""
        sent = await self._broadcaster.broadcast(ping_frame(), context="probe")
        if self._metrics:
            self._metrics.add_probes_sent(sent)
        logger.debug("Liveness probe sent", recipients=sent)
        return sent

    async def sweep_once(self) -> int:
        """
        Evict every registered connection silent beyond the threshold.

        Returns:
            Number of connections evicted by this sweep.
        """
        stale = self._registry.stale_records(self._stale_threshold)
        if not stale:
            return 0

        for record, silent_for in stale:
            timeout = ProbeTimeout(record.identity, silent_for, self._stale_threshold)
            logger.warning(
                str(timeout),
                identity=sanitize_log_data(record.identity),
                connection=record.handle.connection_id,
            )

        # Dead peers can stall their close for a full send timeout each
        results = await asyncio.gather(
            *[self._evict(record.handle) for record, _ in stale],
            return_exceptions=True,
        )

        evicted: list[str] = []
        for (record, _), result in zip(stale, results):
            if isinstance(result, Exception):
                logger.error(
                    "Error evicting stale connection",
                    identity=sanitize_log_data(record.identity),
                    error=str(result),
                )
            elif result:
                evicted.append(sanitize_log_data(record.identity))

        if evicted:
            logger.info("Cleaned up stale connections", count=len(evicted), identities=evicted)
        return len(evicted)

    async def _run_periodic(
        self,
        name: str,
        interval: float,
        action: Callable[[], Awaitable[int]],
    ) -> None:
        while True:
            try:
                await asyncio.sleep(interval)
                await action()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in liveness task", task=name, error=str(e), exc_info=True)
