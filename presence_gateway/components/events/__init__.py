"""
Event components: inbound frame parsing, outbound frames, message routing.
"""

from presence_gateway.components.events.frames import (
    InboundFrame,
    RegisterFrame,
    DeliveryFrame,
    OnlineQueryFrame,
    PingFrame,
    PongFrame,
    UnrecognizedFrame,
    PresenceEvent,
    parse_frame,
    classify_frame,
    registered_frame,
    message_frame,
    delivery_status_frame,
    online_response_frame,
    ping_frame,
    pong_frame,
)
from presence_gateway.components.events.router import (
    MessageRouter,
    RoutedMessage,
    RoutingResult,
    parse_channel,
)

__all__ = [
    # Inbound frames
    "InboundFrame",
    "RegisterFrame",
    "DeliveryFrame",
    "OnlineQueryFrame",
    "PingFrame",
    "PongFrame",
    "UnrecognizedFrame",
    "parse_frame",
    "classify_frame",
    # Outbound frames
    "PresenceEvent",
    "registered_frame",
    "message_frame",
    "delivery_status_frame",
    "online_response_frame",
    "ping_frame",
    "pong_frame",
    # Routing
    "MessageRouter",
    "RoutedMessage",
    "RoutingResult",
    "parse_channel",
]
