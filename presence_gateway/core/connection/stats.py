"""
Connection Statistics.

Aggregates statistics from the registry, the lifecycle and the metrics
collector for the health endpoint.
"""

from __future__ import annotations

from typing import Any, Callable, TYPE_CHECKING

if TYPE_CHECKING:
    from presence_gateway.components.connection.registry import ConnectionRegistry
    from presence_gateway.components.metrics.collector import MetricsCollector


class ConnectionStats:
    """
    Read-only view over gateway state.

    Every source is synchronous, so this is safe to call from the sync health
    endpoint running in the threadpool.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        metrics: MetricsCollector,
        get_active_connections: Callable[[], int],
        is_liveness_running: Callable[[], bool],
    ) -> None:
        self._registry = registry
        self._metrics = metrics
        self._get_active_connections = get_active_connections
        self._is_liveness_running = is_liveness_running

    def get_stats(self) -> dict[str, Any]:
        """Registry counts, liveness state and a metrics snapshot."""
        registry_stats = self._registry.get_stats()
        return {
            "active_connections": self._get_active_connections(),
            "users_online": registry_stats["users_online"],
            "connections_total": registry_stats["connections_total"],
            "connections_unregistered": registry_stats["connections_unregistered"],
            "liveness_running": self._is_liveness_running(),
            "metrics": self._metrics.get_snapshot(),
        }
