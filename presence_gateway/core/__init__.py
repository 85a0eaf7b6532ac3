"""
Presence Gateway Core Module.

- connection/: connection lifecycle, presence broadcasting, liveness, stats
"""

from presence_gateway.core.connection import (
    ConnectionLifecycle,
    DisconnectReason,
    PresenceBroadcaster,
    LivenessMonitor,
    ConnectionStats,
)

__all__ = [
    "ConnectionLifecycle",
    "DisconnectReason",
    "PresenceBroadcaster",
    "LivenessMonitor",
    "ConnectionStats",
]
