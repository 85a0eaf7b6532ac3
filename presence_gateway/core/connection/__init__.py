"""
Connection Management Module.

Modular components composed by the ConnectionManager:
- lifecycle.py: accept, registration, teardown
- broadcaster.py: presence fan-out
- liveness.py: probe and sweep tasks
- stats.py: statistics aggregation
"""

from presence_gateway.core.connection.lifecycle import ConnectionLifecycle, DisconnectReason
from presence_gateway.core.connection.broadcaster import PresenceBroadcaster
from presence_gateway.core.connection.liveness import LivenessMonitor
from presence_gateway.core.connection.stats import ConnectionStats

__all__ = [
    "ConnectionLifecycle",
    "DisconnectReason",
    "PresenceBroadcaster",
    "LivenessMonitor",
    "ConnectionStats",
]
