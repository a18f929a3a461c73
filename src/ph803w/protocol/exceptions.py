"""Exception types for PH803-W protocol errors.

Decoding problems raise exceptions instead of returning None; the session and
the discovery listener catch them per frame/datagram so malformed input never
aborts a stream.
"""

from __future__ import annotations


class PH803WProtocolError(Exception):
    """Base exception for all PH803-W protocol and session errors."""


class PacketDecodeError(PH803WProtocolError):
    """Packet cannot be decoded.

    Attributes:
        reason: Specific failure reason (e.g., "too_short", "invalid_prefix")
        data_preview: First 16 bytes of packet data (keeps passcodes out of logs)
    """

    def __init__(self, reason: str, data: bytes = b""):
        self.reason = reason
        self.data_preview = bytes(data[:16]) if data else b""
        super().__init__(f"Packet decode failed: {reason}")


class FramingError(PacketDecodeError):
    """Frame boundary violation.

    Raised when the protocol prefix does not match, the header is incomplete,
    or the buffer is shorter than the declared frame length. The offending
    bytes are dropped; there is no reassembly across reads.
    """


class UnknownMessageTypeError(PacketDecodeError):
    """Well-formed frame carrying a message type this client does not handle.

    Not raised by the codec (which returns ``UnknownMessage``); published on
    the ``error`` notification channel so consumers can observe it.

    Attributes:
        message_type: The unrecognized message type byte
    """

    def __init__(self, message_type: int, data: bytes = b""):
        self.message_type = message_type
        super().__init__(f"unknown_message_type_0x{message_type:02x}", data)
