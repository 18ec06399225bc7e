"""
Unit Tests: Readiness Gate

Tests:
    - Valid and invalid transitions
    - Immediate dispatch while CONNECTED
    - FIFO release of queued operations on AUTH_SUCCEEDED
    - Rejection of queued and later operations on AUTH_REJECTED
    - Rejection of queued and later operations on CLOSE
    - Listener notification
"""

import asyncio

from osapi.connection.state_machine import (
    ConnectionState,
    PendingOperation,
    ReadinessGate,
    VALID_TRANSITIONS,
)
from osapi.core.errors import AuthenticationError, ResponseSummary, StorageRequestError

AUTH_ERROR = AuthenticationError.rejected(ResponseSummary(status_code=401, status_message="Unauthorized"))


class Recorder:
    """Collects what happened to submitted operations."""

    def __init__(self):
        self.ran: list[str] = []
        self.rejected: list[tuple[str, object]] = []

    def op(self, label: str) -> PendingOperation:
        async def run():
            self.ran.append(label)

        def reject(error):
            self.rejected.append((label, error))

        return PendingOperation(label, run, reject)


async def settle():
    """Let dispatched tasks run."""
    for _ in range(3):
        await asyncio.sleep(0)


class TestTransitions:
    """Tests for the transition table."""

    def test_table(self):
        triggers = {(t.from_state, t.trigger): t.to_state for t in VALID_TRANSITIONS}
        assert triggers == {
            (ConnectionState.DISCONNECTED, "CONNECT"): ConnectionState.AUTHENTICATING,
            (ConnectionState.AUTHENTICATING, "AUTH_SUCCEEDED"): ConnectionState.CONNECTED,
            (ConnectionState.AUTHENTICATING, "AUTH_REJECTED"): ConnectionState.FAILED,
            (ConnectionState.DISCONNECTED, "CLOSE"): ConnectionState.FAILED,
            (ConnectionState.AUTHENTICATING, "CLOSE"): ConnectionState.FAILED,
        }

    def test_invalid_transition(self):
        gate = ReadinessGate(ConnectionState.CONNECTED)
        result = gate.transition("AUTH_REJECTED", AUTH_ERROR)
        assert result.is_err()
        assert gate.state is ConnectionState.CONNECTED

    def test_failed_is_absorbing(self):
        gate = ReadinessGate(ConnectionState.AUTHENTICATING)
        gate.transition("AUTH_REJECTED", AUTH_ERROR)
        assert gate.state.is_terminal
        assert not gate.can_transition("CONNECT")
        assert not gate.can_transition("AUTH_SUCCEEDED")

    def test_listener(self):
        events = []
        gate = ReadinessGate(ConnectionState.DISCONNECTED)
        gate.add_listener(events.append)

        gate.transition("CONNECT")

        assert len(events) == 1
        assert events[0].from_state is ConnectionState.DISCONNECTED
        assert events[0].to_state is ConnectionState.AUTHENTICATING

    def test_listener_failure_isolated(self):
        gate = ReadinessGate(ConnectionState.DISCONNECTED)

        def broken(event):
            raise RuntimeError("boom")

        gate.add_listener(broken)
        assert gate.transition("CONNECT").is_ok()


class TestQueue:
    """Tests for the wait-list."""

    async def test_connected_dispatches(self):
        rec = Recorder()
        gate = ReadinessGate(ConnectionState.CONNECTED)

        gate.submit(rec.op("a"))
        await settle()

        assert rec.ran == ["a"]
        assert gate.queued == 0

    async def test_fifo_release(self):
        rec = Recorder()
        gate = ReadinessGate(ConnectionState.AUTHENTICATING)
        for label in ("a", "b", "c"):
            gate.submit(rec.op(label))
        assert gate.queued == 3
        assert rec.ran == []

        event = gate.transition("AUTH_SUCCEEDED").unwrap()
        await settle()

        assert event.released == 3
        assert rec.ran == ["a", "b", "c"]
        assert gate.queued == 0

    async def test_release_happens_once(self):
        rec = Recorder()
        gate = ReadinessGate(ConnectionState.AUTHENTICATING)
        gate.submit(rec.op("a"))
        gate.transition("AUTH_SUCCEEDED")
        gate.transition("AUTH_SUCCEEDED")
        await settle()

        assert rec.ran == ["a"]

    async def test_rejection(self):
        rec = Recorder()
        gate = ReadinessGate(ConnectionState.AUTHENTICATING)
        gate.submit(rec.op("a"))
        gate.submit(rec.op("b"))

        gate.transition("AUTH_REJECTED", AUTH_ERROR)
        gate.submit(rec.op("c"))
        await settle()

        assert rec.ran == []
        assert [label for label, _ in rec.rejected] == ["a", "b", "c"]
        assert all(error is AUTH_ERROR for _, error in rec.rejected)
        assert gate.failure is AUTH_ERROR

    async def test_disconnected_hook(self):
        calls = []
        gate = ReadinessGate(ConnectionState.DISCONNECTED, on_disconnected=lambda: calls.append(1))

        gate.submit(Recorder().op("a"))

        assert calls == [1]
        assert gate.queued == 1

    async def test_close_rejects_waiting_and_later(self):
        rec = Recorder()
        gate = ReadinessGate(ConnectionState.AUTHENTICATING)
        gate.submit(rec.op("a"))
        closed = StorageRequestError.internal("CLOSE", RuntimeError("closed"))

        event = gate.transition("CLOSE", closed).unwrap()
        gate.submit(rec.op("b"))
        await settle()

        assert event.released == 1
        assert gate.state is ConnectionState.FAILED
        assert rec.ran == []
        assert rec.rejected == [("a", closed), ("b", closed)]
        assert gate.failure is closed

    def test_close_from_connected_is_invalid(self):
        gate = ReadinessGate(ConnectionState.CONNECTED)
        assert not gate.can_transition("CLOSE")

    async def test_connected_dispatch_starts_next_turn(self):
        rec = Recorder()
        gate = ReadinessGate(ConnectionState.CONNECTED)

        gate.submit(rec.op("a"))
        assert rec.ran == []
        assert gate.in_flight == 1

        await asyncio.sleep(0)
        assert rec.ran == ["a"]
