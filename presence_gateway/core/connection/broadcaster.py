"""
Presence Broadcaster.

Tells every connected party about presence changes. Extracted from the
ConnectionManager so fan-out lives in one place: liveness probes reuse the
same batched send.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from presence_gateway.components.core.constants import WSConstants
from presence_gateway.components.core.context import sanitize_log_data
from presence_gateway.components.events.frames import PresenceEvent
from shared.config.logging import get_logger

if TYPE_CHECKING:
    from presence_gateway.components.connection.handle import ConnectionHandle
    from presence_gateway.components.connection.registry import ConnectionRegistry
    from presence_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


class PresenceBroadcaster:
    """
    Best-effort fan-out to every accepted open connection.

    A failed send is counted and logged. It never raises and never touches the
    registry: stale entries are the liveness sweep's job.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        metrics: MetricsCollector | None = None,
        batch_size: int = WSConstants.BROADCAST_BATCH_SIZE,
    ) -> None:
        self._registry = registry
        self._metrics = metrics
        self._batch_size = max(1, batch_size)

    async def announce(self, identity: str, status: str) -> int:
        """
        Broadcast a presence change with the current online set.

        Includes the connection that caused the change.

        Returns:
            Number of connections the update was written to.
        """
        event = PresenceEvent(
            identity=identity,
            status=status,
            users=self._registry.snapshot(),
        )
        sent = await self.broadcast(
            event.to_frame(),
            context=f"presence:{status}",
        )
        if self._metrics:
            self._metrics.increment_broadcasts()

        logger.info(
            "Presence update broadcast",
            identity=sanitize_log_data(identity),
            status=status,
            users_online=len(event.users),
            recipients=sent,
        )
        return sent

    async def broadcast(self, payload: dict[str, Any], context: str = "broadcast") -> int:
        """Send one payload to every open attached connection."""
        connections = [h for h in self._registry.connections() if h.is_open]
        return await self.send_to_connections(connections, payload, context)

    async def send_to_connections(
        self,
        connections: list[ConnectionHandle],
        payload: dict[str, Any],
        context: str,
    ) -> int:
        """
        Send in batches of `batch_size` concurrent writes.

        Returns:
            Number of successful sends.
        """
        sent = 0
        failed = 0

        for i in range(0, len(connections), self._batch_size):
            batch = connections[i : i + self._batch_size]
            results = await asyncio.gather(
                *[handle.send_json(payload) for handle in batch],
                return_exceptions=True,
            )

            for handle, result in zip(batch, results):
                if result is True:
                    sent += 1
                else:
                    failed += 1
                    if isinstance(result, Exception):
                        logger.debug(
                            "Batch send exception",
                            context=context,
                            connection=handle.connection_id,
                            error=str(result),
                        )

        if failed > 0:
            if self._metrics:
                self._metrics.add_failed_recipients(failed)
            logger.debug(
                "Broadcast completed with failures",
                context=context,
                sent=sent,
                failed=failed,
                total=len(connections),
            )

        return sent
