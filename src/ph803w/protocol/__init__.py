"""PH803-W protocol package - frame encoding, decoding, and stream splitting.

Public API:
- Message type constants (MSG_TYPE_*)
- Frame and message dataclasses
- Protocol encoder/decoder (PH803WProtocol)
- Byte cursor for sequential field reads (ByteCursor)
"""

from ph803w.protocol.byte_cursor import ByteCursor
from ph803w.protocol.exceptions import (
    FramingError,
    PacketDecodeError,
    PH803WProtocolError,
    UnknownMessageTypeError,
)
from ph803w.protocol.message_types import (
    MSG_TYPE_DATA_EXTENDED_RESPONSE,
    MSG_TYPE_DATA_REQUEST,
    MSG_TYPE_DATA_RESPONSE,
    MSG_TYPE_DISCOVERY_PROBE,
    MSG_TYPE_DISCOVERY_REPLY,
    MSG_TYPE_LOGIN_REQUEST,
    MSG_TYPE_LOGIN_RESPONSE,
    MSG_TYPE_PASSCODE_REQUEST,
    MSG_TYPE_PASSCODE_RESPONSE,
    MSG_TYPE_PING,
    MSG_TYPE_PONG,
    Frame,
    LoginResponse,
    PasscodeResponse,
    Pong,
    RequestMessage,
    TelemetryReading,
    UnknownMessage,
)
from ph803w.protocol.ph803w_protocol import PH803WProtocol

__all__ = [
    # Protocol encoder/decoder
    "PH803WProtocol",
    "ByteCursor",
    # Message type constants
    "MSG_TYPE_DISCOVERY_PROBE",
    "MSG_TYPE_DISCOVERY_REPLY",
    "MSG_TYPE_PASSCODE_REQUEST",
    "MSG_TYPE_PASSCODE_RESPONSE",
    "MSG_TYPE_LOGIN_REQUEST",
    "MSG_TYPE_LOGIN_RESPONSE",
    "MSG_TYPE_PING",
    "MSG_TYPE_PONG",
    "MSG_TYPE_DATA_REQUEST",
    "MSG_TYPE_DATA_RESPONSE",
    "MSG_TYPE_DATA_EXTENDED_RESPONSE",
    # Dataclasses
    "Frame",
    "LoginResponse",
    "PasscodeResponse",
    "Pong",
    "RequestMessage",
    "TelemetryReading",
    "UnknownMessage",
    # Exceptions
    "PH803WProtocolError",
    "PacketDecodeError",
    "FramingError",
    "UnknownMessageTypeError",
]
