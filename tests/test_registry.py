"""
Tests for the connection registry.

Tests verify:
- Last registration wins without closing the earlier connection
- Unregister only removes the record a handle still owns
- Liveness bookkeeping (touch, stale records)
- Snapshot invariants under arbitrary register/unregister sequences
"""

import pytest
from hypothesis import given, settings, strategies as st
from starlette.websockets import WebSocketState

from presence_gateway.components.connection.handle import ConnectionHandle, ConnectionState
from presence_gateway.components.connection.registry import ConnectionRegistry
from presence_gateway.components.core.errors import ConnectionNotOpen

from tests.conftest import FakeClock, FakeWebSocket


class TestRegister:
    """Tests for register / lookup / snapshot."""

    def test_register_creates_record(self, registry, open_handle, clock):
        handle = open_handle()

        result = registry.register("alice", handle)

        assert result.record.identity == "alice"
        assert result.record.handle is handle
        assert result.record.last_seen == clock.now
        assert result.record.session_id
        assert result.superseded is None
        assert result.replaced_identity is None
        assert registry.lookup("alice") is result.record
        assert registry.identity_of(handle) == "alice"

    def test_each_registration_gets_a_fresh_session_id(self, registry, open_handle):
        handle = open_handle()
        first = registry.register("alice", handle)
        second = registry.register("alice", handle)

        assert first.record.session_id != second.record.session_id
        # Refresh by the same connection is not a supersession
        assert second.superseded is None

    def test_snapshot_is_in_registration_order(self, registry, open_handle):
        for name in ("carol", "alice", "bob"):
            registry.register(name, open_handle())

        assert registry.snapshot() == ("carol", "alice", "bob")

    def test_register_on_closed_handle_raises(self, registry, open_handle):
        handle = open_handle()
        handle.websocket.vanish()

        with pytest.raises(ConnectionNotOpen) as exc_info:
            registry.register("alice", handle)

        assert exc_info.value.identity == "alice"
        assert registry.lookup("alice") is None

    def test_register_before_accept_raises(self, registry):
        handle = ConnectionHandle(FakeWebSocket())
        assert handle.state is ConnectionState.CONNECTING

        with pytest.raises(ConnectionNotOpen):
            registry.register("alice", handle)

    def test_register_empty_identity_raises(self, registry, open_handle):
        with pytest.raises(ValueError):
            registry.register("", open_handle())

    def test_last_registration_wins(self, registry, open_handle):
        first = open_handle()
        second = open_handle()
        registry.register("alice", first)

        result = registry.register("alice", second)

        assert result.superseded is not None
        assert result.superseded.handle is first
        assert registry.lookup("alice").handle is second
        assert registry.snapshot() == ("alice",)
        # The earlier connection is left open
        first.websocket.close.assert_not_called()
        assert first.is_open

    def test_same_handle_new_identity_replaces_old_record(self, registry, open_handle):
        handle = open_handle()
        registry.register("alice", handle)

        result = registry.register("alicia", handle)

        assert result.replaced_identity == "alice"
        assert registry.lookup("alice") is None
        assert registry.snapshot() == ("alicia",)
        assert registry.identity_of(handle) == "alicia"


class TestUnregister:
    """Tests for unregister idempotency and supersession."""

    def test_unregister_removes_current_record(self, registry, open_handle):
        handle = open_handle()
        registry.register("alice", handle)

        result = registry.unregister(handle)

        assert result.identity == "alice"
        assert result.was_current is True
        assert registry.lookup("alice") is None
        assert registry.snapshot() == ()

    def test_unregister_twice_removes_once(self, registry, open_handle):
        handle = open_handle()
        registry.register("alice", handle)

        first = registry.unregister(handle)
        second = registry.unregister(handle)

        assert first.removed is True
        assert second.removed is False
        assert second.identity is None

    def test_unregister_unknown_handle_is_noop(self, registry, open_handle):
        registry.register("bob", open_handle())

        result = registry.unregister(open_handle())

        assert result.identity is None
        assert result.was_current is False
        assert registry.snapshot() == ("bob",)

    def test_unregister_superseded_handle_keeps_new_record(self, registry, open_handle):
        old = open_handle()
        new = open_handle()
        registry.register("alice", old)
        registry.register("alice", new)

        result = registry.unregister(old)

        assert result.identity == "alice"
        assert result.was_current is False
        assert registry.lookup("alice").handle is new


class TestLiveness:
    """Tests for touch and stale record detection."""

    def test_touch_updates_last_seen(self, registry, open_handle, clock):
        handle = open_handle()
        registry.register("alice", handle)
        clock.advance(10)

        assert registry.touch("alice", handle) is True
        assert registry.lookup("alice").last_seen == clock.now

    def test_touch_from_superseded_handle_is_ignored(self, registry, open_handle, clock):
        old = open_handle()
        new = open_handle()
        registry.register("alice", old)
        registry.register("alice", new)
        registered_at = clock.now
        clock.advance(10)

        assert registry.touch("alice", old) is False
        assert registry.lookup("alice").last_seen == registered_at

    def test_touch_unknown_identity(self, registry):
        assert registry.touch("nobody") is False

    def test_stale_records(self, registry, open_handle, clock):
        registry.register("quiet", open_handle())
        clock.advance(50)
        chatty = open_handle()
        registry.register("chatty", chatty)
        clock.advance(20)

        stale = registry.stale_records(65)

        assert [(r.identity, silent) for r, silent in stale] == [("quiet", 70)]

    def test_stale_threshold_is_exclusive(self, registry, open_handle, clock):
        registry.register("alice", open_handle())
        clock.advance(65)

        assert registry.stale_records(65) == []

    def test_is_online_requires_open_handle(self, registry, open_handle):
        handle = open_handle()
        registry.register("alice", handle)
        assert registry.is_online("alice") is True

        handle.websocket.application_state = WebSocketState.DISCONNECTED
        assert registry.is_online("alice") is False
        assert registry.is_online("bob") is False


class TestConnections:
    """Tests for tracking accepted connections."""

    def test_attach_detach(self, registry, open_handle):
        a, b = open_handle(), open_handle()
        registry.attach(a)
        registry.attach(b)
        registry.attach(a)

        assert registry.connections() == [a, b]

        registry.detach(a)
        registry.detach(a)
        assert registry.connections() == [b]

    def test_stats(self, registry, open_handle):
        registered = open_handle()
        anonymous = open_handle()
        registry.attach(registered)
        registry.attach(anonymous)
        registry.register("alice", registered)

        assert registry.get_stats() == {
            "connections_total": 2,
            "users_online": 1,
            "connections_unregistered": 1,
        }
        assert registry.online_count == 1

    def test_record_to_dict(self, registry, open_handle):
        registry.register("alice", open_handle())

        data = registry.lookup("alice").to_dict()

        assert data["username"] == "alice"
        assert data["online"] is True
        assert data["lastSeen"].startswith("2023-")


# =============================================================================
# Property-based tests
# =============================================================================

_operation = st.tuples(
    st.sampled_from(["register", "unregister"]),
    st.integers(min_value=0, max_value=4),  # handle index
    st.sampled_from(["alice", "bob", "carol"]),
)


class TestRegistryProperties:
    """Invariants that hold after any sequence of operations."""

    @given(operations=st.lists(_operation, max_size=40))
    @settings(max_examples=100, deadline=None)
    def test_snapshot_matches_current_owners(self, operations):
        registry = ConnectionRegistry(clock=FakeClock())
        handles = []
        for i in range(5):
            handle = ConnectionHandle(FakeWebSocket(), connection_id=f"h{i}")
            handle.state = ConnectionState.OPEN
            handles.append(handle)

        for op, index, identity in operations:
            if op == "register":
                registry.register(identity, handles[index])
            else:
                registry.unregister(handles[index])

        snapshot = registry.snapshot()
        # At most one record per identity
        assert len(snapshot) == len(set(snapshot))
        for identity in snapshot:
            record = registry.lookup(identity)
            assert record.identity == identity
            # The current owner remembers the identity it owns
            assert registry.identity_of(record.handle) == identity

        owners = [registry.lookup(identity).handle for identity in snapshot]
        # A connection owns at most one identity
        assert len(owners) == len(set(owners))

    @given(operations=st.lists(_operation, max_size=40))
    @settings(max_examples=50, deadline=None)
    def test_unregister_every_handle_empties_registry(self, operations):
        registry = ConnectionRegistry(clock=FakeClock())
        handles = []
        for i in range(5):
            handle = ConnectionHandle(FakeWebSocket(), connection_id=f"h{i}")
            handle.state = ConnectionState.OPEN
            handles.append(handle)

        for op, index, identity in operations:
            if op == "register":
                registry.register(identity, handles[index])
            else:
                registry.unregister(handles[index])

        removed = sum(registry.unregister(h).was_current for h in handles)

        assert registry.snapshot() == ()
        assert removed <= 3
