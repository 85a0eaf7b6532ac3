"""
Metrics Collector for the presence gateway.

Centralizes counters for observability. Every operation is a short critical
section under a threading.Lock, so counters can be bumped from the event loop
and read from threadpool HTTP handlers.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ConnectionMetrics:
    """Metrics for connection management."""
    accepted: int = 0
    rejected_shutdown: int = 0
    accept_timeouts: int = 0
    registrations: int = 0
    registrations_superseded: int = 0
    registrations_rejected: int = 0
    disconnects: dict[str, int] = field(default_factory=dict)


@dataclass
class RoutingMetrics:
    """Metrics for addressed deliveries."""
    delivered: int = 0
    failed: int = 0
    invalid_channel: int = 0
    acks_failed: int = 0


@dataclass
class FrameMetrics:
    """Metrics for inbound frame parsing."""
    received: int = 0
    malformed: int = 0
    unrecognized: int = 0


@dataclass
class PresenceMetrics:
    """Metrics for presence broadcasts and liveness."""
    broadcasts: int = 0
    recipients_failed: int = 0
    probes_sent: int = 0
    evictions: int = 0


class MetricsCollector:
    """
    Thread-safe metrics collector.

    Usage:
        metrics = MetricsCollector()
        metrics.increment_delivered()
        stats = metrics.get_snapshot()
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._connection = ConnectionMetrics()
        self._routing = RoutingMetrics()
        self._frame = FrameMetrics()
        self._presence = PresenceMetrics()

    # ==========================================================================
    # Connection Metrics
    # ==========================================================================

    def increment_accepted(self) -> None:
        with self._lock:
            self._connection.accepted += 1

    def increment_rejected_shutdown(self) -> None:
        with self._lock:
            self._connection.rejected_shutdown += 1

    def increment_accept_timeouts(self) -> None:
        with self._lock:
            self._connection.accept_timeouts += 1

    def increment_registrations(self, superseded: bool = False) -> None:
        with self._lock:
            self._connection.registrations += 1
            if superseded:
                self._connection.registrations_superseded += 1

    def increment_registrations_rejected(self) -> None:
        with self._lock:
            self._connection.registrations_rejected += 1

    def increment_disconnects(self, reason: str) -> None:
        """Count one connection teardown under its reason."""
        with self._lock:
            disconnects = self._connection.disconnects
            disconnects[reason] = disconnects.get(reason, 0) + 1

    # ==========================================================================
    # Routing Metrics
    # ==========================================================================

    def increment_delivered(self) -> None:
        with self._lock:
            self._routing.delivered += 1

    def increment_delivery_failed(self) -> None:
        with self._lock:
            self._routing.failed += 1

    def increment_invalid_channel(self) -> None:
        with self._lock:
            self._routing.invalid_channel += 1

    def increment_acks_failed(self) -> None:
        with self._lock:
            self._routing.acks_failed += 1

    # ==========================================================================
    # Frame Metrics
    # ==========================================================================

    def increment_frames_received(self) -> None:
        with self._lock:
            self._frame.received += 1

    def increment_frames_malformed(self) -> None:
        with self._lock:
            self._frame.malformed += 1

    def increment_frames_unrecognized(self) -> None:
        with self._lock:
            self._frame.unrecognized += 1

    # ==========================================================================
    # Presence / Liveness Metrics
    # ==========================================================================

    def increment_broadcasts(self) -> None:
        with self._lock:
            self._presence.broadcasts += 1

    def add_failed_recipients(self, count: int) -> None:
        """Add count of connections a broadcast could not reach."""
        with self._lock:
            self._presence.recipients_failed += count

    def add_probes_sent(self, count: int) -> None:
        with self._lock:
            self._presence.probes_sent += count

    def increment_evictions(self) -> None:
        with self._lock:
            self._presence.evictions += 1

    # ==========================================================================
    # Snapshot
    # ==========================================================================

    def get_snapshot(self) -> dict[str, Any]:
        """
        Get a snapshot of all metrics.

        Metric names follow the {category}_{metric} pattern. Returns a copy
        so callers cannot modify internal state.
        """
        with self._lock:
            return {
                # Connection metrics
                "connections_accepted": self._connection.accepted,
                "connections_rejected_shutdown": self._connection.rejected_shutdown,
                "connections_accept_timeouts": self._connection.accept_timeouts,
                "registrations_total": self._connection.registrations,
                "registrations_superseded": self._connection.registrations_superseded,
                "registrations_rejected": self._connection.registrations_rejected,
                "disconnects": dict(self._connection.disconnects),
                # Routing metrics
                "messages_delivered": self._routing.delivered,
                "messages_failed": self._routing.failed,
                "messages_invalid_channel": self._routing.invalid_channel,
                "messages_acks_failed": self._routing.acks_failed,
                # Frame metrics
                "frames_received": self._frame.received,
                "frames_malformed": self._frame.malformed,
                "frames_unrecognized": self._frame.unrecognized,
                # Presence metrics
                "broadcasts_total": self._presence.broadcasts,
                "broadcasts_failed_recipients": self._presence.recipients_failed,
                "probes_sent": self._presence.probes_sent,
                "evictions_total": self._presence.evictions,
            }

    def reset(self) -> dict[str, Any]:
        """Reset all metrics and return the previous values."""
        snapshot = self.get_snapshot()
        with self._lock:
            self._connection = ConnectionMetrics()
            self._routing = RoutingMetrics()
            self._frame = FrameMetrics()
            self._presence = PresenceMetrics()
        return snapshot
