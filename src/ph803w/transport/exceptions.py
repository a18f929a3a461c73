"""Exception types for PH803-W session and discovery errors.

Extends the protocol exception hierarchy so ``PH803WProtocolError`` catches
every error this library raises.
"""

from __future__ import annotations

from ph803w.protocol.exceptions import PH803WProtocolError


class PH803WConnectionError(PH803WProtocolError):
    """Connection state error.

    Note: Named PH803WConnectionError to avoid shadowing Python's built-in ConnectionError.

    Attributes:
        reason: Specific failure reason
        state: Session state when error occurred
    """

    def __init__(self, reason: str, state: str = "unknown"):
        self.reason = reason
        self.state = state
        super().__init__(f"Connection error: {reason} (state: {state})")


class NotConnectedError(PH803WConnectionError):
    """Command issued without a live connection, or rejected by ``close()``."""


class AlreadyConnectedError(PH803WConnectionError):
    """``connect()`` called while a connection already exists."""


class AuthRejectedError(PH803WProtocolError):
    """Device answered the login with a non-zero status byte.

    Attributes:
        status: Status byte from the 0x09 login response
    """

    def __init__(self, status: int):
        self.status = status
        super().__init__(f"Login rejected by device (status 0x{status:02x}), check the passcode")


class ResponseTimeoutError(PH803WProtocolError):
    """No response of the expected type arrived in time.

    Attributes:
        message_type: Expected response message type
        timeout_seconds: Timeout value that was exceeded
    """

    def __init__(self, message_type: int, timeout_seconds: float):
        self.message_type = message_type
        self.timeout_seconds = timeout_seconds
        super().__init__(f"No response of type 0x{message_type:02x} within {timeout_seconds}s")


class DiscoverySocketError(PH803WProtocolError):
    """Discovery UDP socket could not be bound or the probe could not be sent.

    Attributes:
        reason: Specific failure reason
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Discovery socket error: {reason}")
