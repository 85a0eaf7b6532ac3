"""
Frame Value Objects for the presence gateway.

Inbound text frames are parsed into exactly one tagged variant. Anything that
is valid JSON but matches no known shape becomes an UnrecognizedFrame; text
that is not a JSON object raises MalformedFrame.

Outbound frames are plain dicts built by the *_frame helpers at the bottom of
this module, so every field name sent to clients is defined in one place.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union

from presence_gateway.components.core.constants import (
    MSG_PING_PLAIN,
    MessageType,
    PresenceStatus,
    WSConstants,
)
from presence_gateway.components.core.context import sanitize_log_data
from presence_gateway.components.core.errors import MalformedFrame


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Inbound variants
# =============================================================================


@dataclass(frozen=True, slots=True)
class RegisterFrame:
    """Client claims an identity: {"type": "register", "username": ...}."""

    identity: str


@dataclass(frozen=True, slots=True)
class DeliveryFrame:
    """
    Addressed delivery envelope.

    Attributes:
        event: Client-defined event name, forwarded untouched.
        channel: Addressed channel "<namespace>.<kind>.<identity>".
        sender: Identity claimed by the sender in data.user.
        envelope: Deep copy of the whole inbound object, forwarded verbatim.
        correlation_id: data.messageId if present, echoed in delivery_status.
    """

    event: Any
    channel: str
    sender: str
    envelope: dict[str, Any] = field(repr=False)
    correlation_id: str | int | None = None


@dataclass(frozen=True, slots=True)
class OnlineQueryFrame:
    """{"type": "is_online_request", "username": ...}."""

    identity: str


@dataclass(frozen=True, slots=True)
class PingFrame:
    """Client heartbeat; answered with a pong."""


@dataclass(frozen=True, slots=True)
class PongFrame:
    """Reply to a server liveness probe."""


@dataclass(frozen=True, slots=True)
class UnrecognizedFrame:
    """Valid JSON object that matches no known frame shape."""

    data: dict[str, Any] = field(repr=False)
    reason: str = "unknown frame type"


InboundFrame = Union[
    RegisterFrame,
    DeliveryFrame,
    OnlineQueryFrame,
    PingFrame,
    PongFrame,
    UnrecognizedFrame,
]


def _is_identity(value: object) -> bool:
    return isinstance(value, str) and bool(value)


def parse_frame(
    raw: str | bytes,
    max_size: int = WSConstants.MAX_MESSAGE_SIZE,
) -> InboundFrame:
    """
    Parse one inbound text frame.

    Raises:
        MalformedFrame: Binary data, oversized frames, invalid JSON, or JSON
            that is not an object.
    """
    if isinstance(raw, (bytes, bytearray)):
        raise MalformedFrame("binary frames are not supported", sanitize_log_data(raw))

    if len(raw) > max_size:
        raise MalformedFrame(
            f"frame exceeds {max_size} bytes",
            sanitize_log_data(raw),
        )

    if raw.strip() == MSG_PING_PLAIN:
        return PingFrame()

    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, ValueError) as e:
        raise MalformedFrame("invalid JSON", sanitize_log_data(raw)) from e

    if not isinstance(data, dict):
        raise MalformedFrame("frame is not a JSON object", sanitize_log_data(raw))

    return classify_frame(data)


def classify_frame(data: dict[str, Any]) -> InboundFrame:
    """Map an already-decoded JSON object to its frame variant."""
    # Delivery envelopes carry no "type"; they are recognized by shape
    if data.get("event") and data.get("channel") and data.get("data"):
        channel = data["channel"]
        payload = data["data"]
        sender = payload.get("user") if isinstance(payload, dict) else None
        if not isinstance(channel, str) or not _is_identity(sender):
            return UnrecognizedFrame(data, "delivery envelope without string channel and data.user")

        correlation_id = payload.get("messageId")
        if not isinstance(correlation_id, (str, int)) or isinstance(correlation_id, bool):
            correlation_id = None

        return DeliveryFrame(
            event=data["event"],
            channel=channel,
            sender=sender,
            envelope=copy.deepcopy(data),
            correlation_id=correlation_id,
        )

    frame_type = data.get("type")

    if frame_type == MessageType.REGISTER:
        username = data.get("username")
        if not _is_identity(username):
            return UnrecognizedFrame(data, "register without username")
        return RegisterFrame(identity=username)

    if frame_type == MessageType.IS_ONLINE_REQUEST:
        username = data.get("username")
        if not _is_identity(username):
            return UnrecognizedFrame(data, "is_online_request without username")
        return OnlineQueryFrame(identity=username)

    if frame_type == MessageType.PONG:
        return PongFrame()

    if frame_type == MessageType.PING:
        return PingFrame()

    return UnrecognizedFrame(data)


# =============================================================================
# Outbound frames
# =============================================================================


@dataclass(frozen=True, slots=True)
class PresenceEvent:
    """A presence change plus the full online set at the time it happened."""

    identity: str
    status: str
    users: tuple[str, ...]
    changed_at: str = field(default_factory=utc_now_iso)

    def to_frame(self) -> dict[str, Any]:
        return {
            "type": MessageType.PRESENCE_UPDATE,
            "changed": {
                "username": self.identity,
                "status": self.status,
                "changedAt": self.changed_at,
            },
            "users": list(self.users),
        }

    @property
    def is_online(self) -> bool:
        return self.status == PresenceStatus.ONLINE


def registered_frame(identity: str, session_id: str, users: tuple[str, ...]) -> dict[str, Any]:
    return {
        "type": MessageType.REGISTERED,
        "username": identity,
        "sessionId": session_id,
        "users": list(users),
    }


def message_frame(envelope: dict[str, Any]) -> dict[str, Any]:
    """Forwarded delivery: the original envelope tagged as a message."""
    return {"type": MessageType.MESSAGE, **envelope}


def delivery_status_frame(
    destination: str,
    delivered: bool,
    correlation_id: str | int | None,
) -> dict[str, Any]:
    return {
        "type": MessageType.DELIVERY_STATUS,
        "to": destination,
        "delivered": delivered,
        "messageId": correlation_id,
        "receiverUsername": destination,
    }


def online_response_frame(identity: str, online: bool) -> dict[str, Any]:
    return {
        "type": MessageType.IS_ONLINE_RESPONSE,
        "username": identity,
        "online": online,
    }


def ping_frame() -> dict[str, Any]:
    return {"type": MessageType.PING}


def pong_frame() -> dict[str, Any]:
    return {"type": MessageType.PONG}
