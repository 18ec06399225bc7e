"""
Connection module: the operation façade and its readiness gate.

- S3Connection: signed requests, always ready
- SwiftConnection: token exchange first, operations queued until ready
"""

from osapi.connection.state_machine import (
    ConnectionState,
    ConnectionTransition,
    VALID_TRANSITIONS,
    StateTransitionEvent,
    PendingOperation,
    ReadinessGate,
)
from osapi.connection.base import Connection, ConnectionStats
from osapi.connection.s3 import S3Connection
from osapi.connection.swift import SwiftConnection

__all__ = [
    "ConnectionState",
    "ConnectionTransition",
    "VALID_TRANSITIONS",
    "StateTransitionEvent",
    "PendingOperation",
    "ReadinessGate",
    "Connection",
    "ConnectionStats",
    "S3Connection",
    "SwiftConnection",
]
