"""
Connection Registry for the presence gateway.

Single source of truth for "who is online": maps each registered identity to
the connection that registered it, and remembers which identity each
connection registered so teardown can find it again.

All operations are synchronous and serialized by one threading.Lock, so the
HTTP handlers running in the threadpool can read the registry while the event
loop mutates it. Nothing awaits while the lock is held.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from presence_gateway.components.connection.handle import ConnectionHandle
from presence_gateway.components.core.errors import ConnectionNotOpen
from shared.config.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ConnectionRecord:
    """Registry entry for one registered identity."""

    identity: str
    handle: ConnectionHandle
    session_id: str
    registered_at: float
    last_seen: float

    @property
    def last_seen_iso(self) -> str:
        return datetime.fromtimestamp(self.last_seen, tz=timezone.utc).isoformat()

    def to_dict(self) -> dict:
        return {
            "username": self.identity,
            "lastSeen": self.last_seen_iso,
            "online": self.handle.is_open,
        }


@dataclass(frozen=True, slots=True)
class RegistrationResult:
    """
    Outcome of `ConnectionRegistry.register`.

    Attributes:
        record: The new current record.
        superseded: Previous record for the same identity held by another
            connection. That connection is left open.
        replaced_identity: Identity this same connection had registered
            before, now removed and in need of an offline announcement.
    """

    record: ConnectionRecord
    superseded: ConnectionRecord | None = None
    replaced_identity: str | None = None


@dataclass(frozen=True, slots=True)
class UnregisterResult:
    """Outcome of `ConnectionRegistry.unregister`."""

    identity: str | None = None
    was_current: bool = False

    @property
    def removed(self) -> bool:
        return self.was_current


class ConnectionRegistry:
    """
    Identity <-> connection bookkeeping.

    Also tracks every accepted connection (registered or not) so presence
    updates and liveness probes can be fanned out to all of them.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        # Dicts keep insertion order, which is the order of snapshot()
        self._records: dict[str, ConnectionRecord] = {}
        # Identity each handle registered last, kept after it is superseded
        self._handle_identity: dict[ConnectionHandle, str] = {}
        # Accepted connections, used as an ordered set
        self._connections: dict[ConnectionHandle, None] = {}

    def now(self) -> float:
        return self._clock()

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, identity: str, handle: ConnectionHandle) -> RegistrationResult:
        """
        Make `handle` the current connection for `identity`.

        Any prior record for the identity is replaced without closing its
        connection (last registration wins).

        Raises:
            ValueError: If identity is empty.
            ConnectionNotOpen: If the handle can no longer be written to.
        """
        if not identity:
            raise ValueError("identity must be a non-empty string")
        if not handle.is_open:
            raise ConnectionNotOpen(identity, handle.connection_id)

        now = self._clock()
        with self._lock:
            replaced_identity = None
            previous_identity = self._handle_identity.get(handle)
            if previous_identity is not None and previous_identity != identity:
                previous = self._records.get(previous_identity)
                if previous is not None and previous.handle is handle:
                    del self._records[previous_identity]
                    replaced_identity = previous_identity

            superseded = self._records.pop(identity, None)
            if superseded is not None and superseded.handle is handle:
                # Same connection registering again is a refresh
                superseded = None

            record = ConnectionRecord(
                identity=identity,
                handle=handle,
                session_id=str(uuid.uuid4()),
                registered_at=now,
                last_seen=now,
            )
            self._records[identity] = record
            self._handle_identity[handle] = identity

        return RegistrationResult(
            record=record,
            superseded=superseded,
            replaced_identity=replaced_identity,
        )

    def unregister(self, handle: ConnectionHandle) -> UnregisterResult:
        """
        Forget everything registered by `handle`.

        Idempotent: a handle that never registered, or was already
        unregistered, is a no-op. The record is only removed when the handle
        is still the current one for its identity.
        """
        with self._lock:
            identity = self._handle_identity.pop(handle, None)
            if identity is None:
                return UnregisterResult()

            record = self._records.get(identity)
            if record is not None and record.handle is handle:
                del self._records[identity]
                return UnregisterResult(identity=identity, was_current=True)

        return UnregisterResult(identity=identity, was_current=False)

    # =========================================================================
    # Queries
    # =========================================================================

    def lookup(self, identity: str) -> ConnectionRecord | None:
        with self._lock:
            return self._records.get(identity)

    def identity_of(self, handle: ConnectionHandle) -> str | None:
        """Identity this handle registered, even if it was superseded since."""
        with self._lock:
            return self._handle_identity.get(handle)

    def is_online(self, identity: str) -> bool:
        with self._lock:
            record = self._records.get(identity)
        return record is not None and record.handle.is_open

    def snapshot(self) -> tuple[str, ...]:
        """Registered identities in registration order."""
        with self._lock:
            return tuple(self._records)

    def records(self) -> list[ConnectionRecord]:
        with self._lock:
            return list(self._records.values())

    def touch(self, identity: str, handle: ConnectionHandle | None = None) -> bool:
        """
        Refresh `last_seen` for an identity.

        When `handle` is given, only the current connection for the identity
        can refresh it; a superseded connection's pong is ignored.
        """
        now = self._clock()
        with self._lock:
            record = self._records.get(identity)
            if record is None:
                return False
            if handle is not None and record.handle is not handle:
                return False
            record.last_seen = now
            return True

    def stale_records(
        self,
        threshold: float,
        now: float | None = None,
    ) -> list[tuple[ConnectionRecord, float]]:
        """
        Records silent for longer than `threshold` seconds.

        Returns:
            (record, seconds since last_seen) pairs.
        """
        if now is None:
            now = self._clock()
        with self._lock:
            return [
                (record, now - record.last_seen)
                for record in self._records.values()
                if now - record.last_seen > threshold
            ]

    # =========================================================================
    # Accepted connections
    # =========================================================================

    def attach(self, handle: ConnectionHandle) -> None:
        with self._lock:
            self._connections[handle] = None

    def detach(self, handle: ConnectionHandle) -> None:
        with self._lock:
            self._connections.pop(handle, None)

    def connections(self) -> list[ConnectionHandle]:
        with self._lock:
            return list(self._connections)

    # =========================================================================
    # Stats
    # =========================================================================

    @property
    def online_count(self) -> int:
        with self._lock:
            return len(self._records)

    def get_stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "connections_total": len(self._connections),
                "users_online": len(self._records),
                "connections_unregistered": sum(
                    1 for h in self._connections if h not in self._handle_identity
                ),
            }
