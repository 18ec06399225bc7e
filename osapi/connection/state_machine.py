"""
Connection State Machine: Readiness FSM with an Operation Wait-List

States:
    DISCONNECTED   → Swift connection created outside a running loop
    AUTHENTICATING → Token exchange in flight
    CONNECTED      → Operations run immediately
    FAILED         → Absorbing; the token exchange was refused, or the
                     connection was closed before it became ready

Transitions:
    DISCONNECTED   → AUTHENTICATING : CONNECT
    AUTHENTICATING → CONNECTED      : AUTH_SUCCEEDED
    AUTHENTICATING → FAILED         : AUTH_REJECTED
    DISCONNECTED   → FAILED         : CLOSE
    AUTHENTICATING → FAILED         : CLOSE

S3 connections start CONNECTED and never move.

Queue policy:
    - Submitted while CONNECTED: dispatched at once as a task, which starts
      on the next loop iteration
    - Submitted while DISCONNECTED/AUTHENTICATING: appended to the wait-list
    - On CONNECTED: the whole wait-list is dispatched in FIFO order, once
    - On FAILED: every waiter is rejected with the auth (or close) error
    - Submitted while FAILED: rejected at once with the cached error
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Awaitable, Callable, Optional

from osapi.core.errors import OsapiError
from osapi.core.types import Err, Ok, Result

logger = logging.getLogger(__name__)


# =============================================================================
# CONNECTION STATE ENUMERATION
# =============================================================================
class ConnectionState(Enum):
    """
    Connection readiness states.

    Exactly one is current at any time; FAILED is terminal.
    """
    DISCONNECTED = auto()
    AUTHENTICATING = auto()
    CONNECTED = auto()
    FAILED = auto()

    @property
    def is_terminal(self) -> bool:
        return self is ConnectionState.FAILED

    @property
    def is_ready(self) -> bool:
        """Operations can be dispatched without waiting."""
        return self is ConnectionState.CONNECTED


# =============================================================================
# TRANSITION DEFINITIONS
# =============================================================================
@dataclass(frozen=True, slots=True)
class ConnectionTransition:
    """A valid state transition and the trigger that causes it."""
    from_state: ConnectionState
    to_state: ConnectionState
    trigger: str


VALID_TRANSITIONS: frozenset[ConnectionTransition] = frozenset({
    ConnectionTransition(ConnectionState.DISCONNECTED, ConnectionState.AUTHENTICATING, "CONNECT"),
    ConnectionTransition(ConnectionState.AUTHENTICATING, ConnectionState.CONNECTED, "AUTH_SUCCEEDED"),
    ConnectionTransition(ConnectionState.AUTHENTICATING, ConnectionState.FAILED, "AUTH_REJECTED"),
    ConnectionTransition(ConnectionState.DISCONNECTED, ConnectionState.FAILED, "CLOSE"),
    ConnectionTransition(ConnectionState.AUTHENTICATING, ConnectionState.FAILED, "CLOSE"),
})


@dataclass(frozen=True, slots=True)
class StateTransitionEvent:
    """Emitted to listeners after every transition."""
    from_state: ConnectionState
    to_state: ConnectionState
    trigger: str
    released: int
    timestamp_nanos: int = field(default_factory=time.time_ns)


# =============================================================================
# PENDING OPERATION
# =============================================================================
@dataclass(slots=True)
class PendingOperation:
    """
    A deferred unit of work plus its result channel.

    run() performs the work and settles the caller's channel itself;
    reject() settles it with an error without running anything.
    Owned by the gate until fired exactly once.
    """
    label: str
    run: Callable[[], Awaitable[None]]
    reject: Callable[[OsapiError], None]
    enqueued_at_nanos: int = field(default_factory=time.time_ns)


# =============================================================================
# READINESS GATE
# =============================================================================
class ReadinessGate:
    """
    State holder plus the wait-list of operations issued before readiness.

    Runs on the event loop thread only; no locking. Every write to the
    connection (session, agents) happens before the AUTH_SUCCEEDED
    transition that releases the waiters.

    Usage:
        gate = ReadinessGate(ConnectionState.AUTHENTICATING)
        gate.submit(PendingOperation("OBJECT_GET", run, reject))
        ...
        gate.transition("AUTH_SUCCEEDED")   # dispatches the queue
    """

    __slots__ = ("_state", "_queue", "_failure", "_listeners", "_tasks", "_on_disconnected")

    def __init__(
        self,
        initial: ConnectionState = ConnectionState.DISCONNECTED,
        on_disconnected: Optional[Callable[[], None]] = None,
    ) -> None:
        self._state = initial
        self._queue: deque[PendingOperation] = deque()
        self._failure: Optional[OsapiError] = None
        self._listeners: list[Callable[[StateTransitionEvent], None]] = []
        self._tasks: set[asyncio.Task[None]] = set()
        self._on_disconnected = on_disconnected

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def failure(self) -> Optional[OsapiError]:
        """The error cached on entering FAILED, else None."""
        return self._failure

    @property
    def queued(self) -> int:
        return len(self._queue)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def add_listener(self, listener: Callable[[StateTransitionEvent], None]) -> None:
        """Register listener for state transition events."""
        self._listeners.append(listener)

    def can_transition(self, trigger: str) -> bool:
        return any(
            t.from_state is self._state and t.trigger == trigger
            for t in VALID_TRANSITIONS
        )

    def transition(
        self,
        trigger: str,
        failure: Optional[OsapiError] = None,
    ) -> Result[StateTransitionEvent, str]:
        """
        Attempt state transition.

        Args:
            trigger: Transition trigger name
            failure: The error cached by FAILED, required for AUTH_REJECTED
                and CLOSE

        Returns:
            Ok(event) on successful transition
            Err(message) when no transition matches
        """
        valid: Optional[ConnectionTransition] = None
        for t in VALID_TRANSITIONS:
            if t.from_state is self._state and t.trigger == trigger:
                valid = t
                break

        if valid is None:
            return Err(
                f"No valid transition from {self._state.name} "
                f"with trigger '{trigger}'"
            )

        old_state = self._state
        self._state = valid.to_state
        released = 0

        if valid.to_state is ConnectionState.CONNECTED:
            released = self._release()
        elif valid.to_state is ConnectionState.FAILED:
            self._failure = failure
            released = self._reject_all(failure)

        event = StateTransitionEvent(
            from_state=old_state,
            to_state=valid.to_state,
            trigger=trigger,
            released=released,
        )

        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(f"State listener failed on {trigger}")

        return Ok(event)

    def submit(self, operation: PendingOperation) -> None:
        """Run, queue or reject an operation according to the current state."""
        if self._state is ConnectionState.CONNECTED:
            self._dispatch(operation)
            return

        if self._state is ConnectionState.FAILED:
            logger.debug(f"Rejecting {operation.label}: connection failed")
            operation.reject(self._failure)  # type: ignore[arg-type]
            return

        self._queue.append(operation)
        logger.debug(
            f"Queued {operation.label} while {self._state.name} "
            f"(queue depth {len(self._queue)})"
        )
        if self._state is ConnectionState.DISCONNECTED and self._on_disconnected is not None:
            self._on_disconnected()

    def _dispatch(self, operation: PendingOperation) -> None:
        task = asyncio.get_running_loop().create_task(operation.run(), name=operation.label)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _release(self) -> int:
        count = 0
        while self._queue:
            self._dispatch(self._queue.popleft())
            count += 1
        return count

    def _reject_all(self, error: Optional[OsapiError]) -> int:
        count = 0
        while self._queue:
            operation = self._queue.popleft()
            operation.reject(error)  # type: ignore[arg-type]
            count += 1
        return count

    def __repr__(self) -> str:
        return (
            f"ReadinessGate(state={self._state.name}, queued={len(self._queue)}, "
            f"in_flight={len(self._tasks)})"
        )
