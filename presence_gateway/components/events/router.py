"""
Message Router - delivers addressed envelopes between registered identities.

A delivery frame names its destination in the channel
"<namespace>.<kind>.<identity>". The router resolves that identity through
the registry and either forwards the envelope to the destination connection or
tells the sender it could not be delivered. There is no queueing and no retry.

Usage:
    router = MessageRouter(registry, evict=lifecycle.evict, metrics=metrics)
    result = await router.handle_delivery(frame)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from presence_gateway.components.core.context import sanitize_log_data
from presence_gateway.components.core.errors import (
    DestinationUnreachable,
    InvalidChannel,
    RelayError,
)
from presence_gateway.components.events.frames import (
    DeliveryFrame,
    delivery_status_frame,
    message_frame,
)
from shared.config.logging import get_logger

if TYPE_CHECKING:
    from presence_gateway.components.connection.handle import ConnectionHandle
    from presence_gateway.components.connection.registry import ConnectionRegistry
    from presence_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)

EvictCallback = Callable[["ConnectionHandle"], Awaitable[Any]]


def parse_channel(channel: object, namespace: str = "chat", kind: str = "user") -> str:
    """
    Extract the destination identity from an addressed channel.

    The first two dot-separated segments must equal `namespace` and `kind`;
    the third is returned verbatim. Further segments are ignored.

    Raises:
        InvalidChannel: If the channel does not follow the pattern.
    """
    if not isinstance(channel, str):
        raise InvalidChannel(channel)

    parts = channel.split(".")
    if len(parts) < 3 or parts[0] != namespace or parts[1] != kind or not parts[2]:
        raise InvalidChannel(channel)

    return parts[2]


@dataclass(frozen=True, slots=True)
class RoutedMessage:
    """One routing decision's worth of data."""

    destination: str
    sender: str
    payload: dict[str, Any]
    correlation_id: str | int | None = None


@dataclass
class RoutingResult:
    """Result of routing a delivery frame."""

    destination: str | None = None
    delivered: bool = False
    acknowledged: bool = False
    error: RelayError | None = None

    @property
    def success(self) -> bool:
        return self.delivered and self.error is None


class MessageRouter:
    """
    Routes addressed delivery frames to the destination's connection.

    Args:
        registry: Identity lookup.
        evict: Called with a destination handle found registered but not
            writable. Expected to run the normal disconnect path.
        metrics: Optional metrics collector.
        namespace: First channel segment.
        kind: Second channel segment.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        evict: EvictCallback,
        metrics: MetricsCollector | None = None,
        namespace: str = "chat",
        kind: str = "user",
    ):
        self._registry = registry
        self._evict = evict
        self._metrics = metrics
        self._namespace = namespace
        self._kind = kind

    async def handle_delivery(self, frame: DeliveryFrame) -> RoutingResult:
        """Parse the frame's channel and route it. Invalid channels are dropped."""
        try:
            destination = parse_channel(frame.channel, self._namespace, self._kind)
        except InvalidChannel as e:
            logger.warning(
                "Invalid channel format",
                channel=sanitize_log_data(frame.channel),
                sender=sanitize_log_data(frame.sender),
            )
            if self._metrics:
                self._metrics.increment_invalid_channel()
            return RoutingResult(error=e)

        message = RoutedMessage(
            destination=destination,
            sender=frame.sender,
            payload=frame.envelope,
            correlation_id=frame.correlation_id,
        )
        return await self.route(message)

    async def route(self, message: RoutedMessage) -> RoutingResult:
        """
        Deliver one message.

        The destination must be registered and open. A registered destination
        that is no longer open, before or after the write, is evicted. A write
        that only timed out leaves the destination connected. Either way the
        sender gets a delivery_status frame if it is itself registered and open.
        """
        destination = message.destination
        record = self._registry.lookup(destination)

        if record is not None and record.handle.is_open:
            if await record.handle.send_json(message_frame(message.payload)):
                logger.info(
                    "Message delivered",
                    sender=sanitize_log_data(message.sender),
                    destination=sanitize_log_data(destination),
                    message_id=sanitize_log_data(message.correlation_id),
                )
                if self._metrics:
                    self._metrics.increment_delivered()
                acknowledged = await self._notify_sender(message, delivered=True)
                return RoutingResult(
                    destination=destination,
                    delivered=True,
                    acknowledged=acknowledged,
                )

        stale = record is not None and not record.handle.is_open
        if stale:
            logger.info(
                "Evicting unreachable destination",
                destination=sanitize_log_data(destination),
                connection=record.handle.connection_id,
            )
            await self._evict(record.handle)

        error = DestinationUnreachable(destination, stale=stale)
        logger.info(
            "User not connected",
            destination=sanitize_log_data(destination),
            sender=sanitize_log_data(message.sender),
            stale=stale,
        )
        if self._metrics:
            self._metrics.increment_delivery_failed()

        acknowledged = await self._notify_sender(message, delivered=False)
        return RoutingResult(
            destination=destination,
            delivered=False,
            acknowledged=acknowledged,
            error=error,
        )

    async def _notify_sender(self, message: RoutedMessage, delivered: bool) -> bool:
        """Send delivery_status to the sender's current connection, once."""
        sender_record = self._registry.lookup(message.sender)
        if sender_record is None or not sender_record.handle.is_open:
            logger.debug(
                "Sender not registered, skipping delivery status",
                sender=sanitize_log_data(message.sender),
            )
            return False

        sent = await sender_record.handle.send_json(
            delivery_status_frame(message.destination, delivered, message.correlation_id)
        )
        if not sent:
            logger.warning(
                "Failed to send delivery status",
                sender=sanitize_log_data(message.sender),
                destination=sanitize_log_data(message.destination),
            )
            if self._metrics:
                self._metrics.increment_acks_failed()
        return sent
