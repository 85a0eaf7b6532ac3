"""
Metrics and observability components.
"""

from presence_gateway.components.metrics.collector import (
    MetricsCollector,
    ConnectionMetrics,
    RoutingMetrics,
    FrameMetrics,
    PresenceMetrics,
)

__all__ = [
    "MetricsCollector",
    "ConnectionMetrics",
    "RoutingMetrics",
    "FrameMetrics",
    "PresenceMetrics",
]
