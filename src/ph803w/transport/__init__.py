"""Transport layer for PH803-W sessions.

This package provides the asyncio TCP wrapper, the response correlator and
the device session state machine.
"""

from ph803w.transport.correlator import ResponseCorrelator
from ph803w.transport.exceptions import (
    AlreadyConnectedError,
    AuthRejectedError,
    DiscoverySocketError,
    NotConnectedError,
    PH803WConnectionError,
    ResponseTimeoutError,
)
from ph803w.transport.session import PH803WDevice, SessionState
from ph803w.transport.socket_abstraction import TCPConnection
from ph803w.transport.types import PendingRequest

__all__ = [
    "AlreadyConnectedError",
    "AuthRejectedError",
    "DiscoverySocketError",
    "NotConnectedError",
    "PH803WConnectionError",
    "PH803WDevice",
    "PendingRequest",
    "ResponseCorrelator",
    "ResponseTimeoutError",
    "SessionState",
    "TCPConnection",
]
