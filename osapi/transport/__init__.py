"""
Transport module: the HTTP collaborator and the streaming sink.
"""

from osapi.transport.agent import (
    RequestDescriptor,
    TransportResponse,
    StreamSink,
    TransportAgent,
    HttpxAgent,
)
from osapi.transport.receiver import StreamReceiver

__all__ = [
    "RequestDescriptor",
    "TransportResponse",
    "StreamSink",
    "TransportAgent",
    "HttpxAgent",
    "StreamReceiver",
]
