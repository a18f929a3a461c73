"""PH803-W protocol encoder/decoder implementation.

This module implements header parsing, frame encoding, stream splitting and
message decoding for the PH803-W LAN protocol.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from ph803w.protocol.byte_cursor import ByteCursor
from ph803w.protocol.exceptions import FramingError
from ph803w.protocol.message_types import (
    FRAME_HEADER_LENGTH,
    LENGTH_FIELD_END,
    MAX_DECLARED_LENGTH,
    MSG_TYPE_DATA_EXTENDED_RESPONSE,
    MSG_TYPE_DATA_REQUEST,
    MSG_TYPE_DATA_RESPONSE,
    MSG_TYPE_DISCOVERY_PROBE,
    MSG_TYPE_LOGIN_REQUEST,
    MSG_TYPE_LOGIN_RESPONSE,
    MSG_TYPE_PASSCODE_REQUEST,
    MSG_TYPE_PASSCODE_RESPONSE,
    MSG_TYPE_PING,
    MSG_TYPE_PONG,
    PROTOCOL_PREFIX,
    REQUEST_MESSAGE_TYPES,
    Frame,
    LoginResponse,
    Message,
    PasscodeResponse,
    Pong,
    RequestMessage,
    TelemetryReading,
    UnknownMessage,
)

# Bytes counted by the declared length before the payload: reserved (2) + type (1)
DECLARED_LENGTH_OVERHEAD = 3
LOGIN_LENGTH_FIELD_BYTES = 2
MAX_PASSCODE_LENGTH = MAX_DECLARED_LENGTH - DECLARED_LENGTH_OVERHEAD - LOGIN_LENGTH_FIELD_BYTES

# Payload offset of the telemetry fields per response type. The four leading
# bytes of 0x94 are not interpreted.
TELEMETRY_OFFSETS = {
    MSG_TYPE_DATA_RESPONSE: 0,
    MSG_TYPE_DATA_EXTENDED_RESPONSE: 4,
}
PH_DIVISOR = 100
REDOX_OFFSET_MV = 2000
PH_SWITCH_BIT = 0
REDOX_SWITCH_BIT = 1
DATA_REQUEST_PAYLOAD = b"\x02"

logger = logging.getLogger(__name__)


class PH803WProtocol:
    """PH803-W protocol encoder/decoder.

    Provides static methods for encoding and decoding PH803-W frames.
    All methods are stateless - no instance state maintained.
    """

    @staticmethod
    def parse_header(data: bytes) -> tuple[int, int]:
        """Parse the 8-byte frame header and return (declared_length, message_type).

        Raises:
            FramingError: If the prefix does not match or the header is incomplete

        Example:
            >>> PH803WProtocol.parse_header(bytes.fromhex("0000000303000015"))
            (3, 21)

        """
        if len(data) < FRAME_HEADER_LENGTH:
            reason = "too_short" if PROTOCOL_PREFIX.startswith(bytes(data[:4])) else "invalid_prefix"
            raise FramingError(reason, data)
        if not data.startswith(PROTOCOL_PREFIX):
            raise FramingError("invalid_prefix", data)

        declared_length = data[4]
        message_type = data[7]

        logger.debug(
            "Parsed header: type=0x%02x, declared_length=%d",
            message_type,
            declared_length,
        )

        return (declared_length, message_type)

    @staticmethod
    def encode(message_type: int, payload: bytes = b"") -> bytes:
        """Encode a frame: prefix + declared length + reserved + type + payload.

        Raises:
            ValueError: If the payload does not fit the 1-byte length field

        Example:
            >>> PH803WProtocol.encode(0x90, b"\\x02").hex()
            '000000030400009002'

        """
        declared_length = len(payload) + DECLARED_LENGTH_OVERHEAD
        if declared_length > MAX_DECLARED_LENGTH:
            error_msg = f"Payload too large for a frame: {len(payload)} bytes"
            raise ValueError(error_msg)

        frame = PROTOCOL_PREFIX + bytes([declared_length, 0x00, 0x00, message_type]) + payload

        logger.debug(
            "Encoded frame: type=0x%02x, payload_len=%d",
            message_type,
            len(payload),
        )

        return frame

    @staticmethod
    def encode_passcode_request() -> bytes:
        """Encode 0x06 passcode request (00 00 00 03 03 00 00 06)."""
        return PH803WProtocol.encode(MSG_TYPE_PASSCODE_REQUEST)

    @staticmethod
    def encode_login(passcode: str | bytes) -> bytes:
        """Encode 0x08 login request.

        Payload structure:
        - Bytes 0-1: passcode length (big-endian)
        - Bytes 2+: passcode bytes

        Args:
            passcode: Device passcode, ``str`` is encoded as UTF-8

        Raises:
            ValueError: If passcode is neither str nor bytes, or too long

        """
        if isinstance(passcode, str):
            passcode_bytes = passcode.encode("utf-8")
        elif isinstance(passcode, bytes | bytearray):
            passcode_bytes = bytes(passcode)
        else:
            error_msg = f"Invalid passcode type: {type(passcode).__name__}"
            raise ValueError(error_msg)

        if len(passcode_bytes) > MAX_PASSCODE_LENGTH:
            error_msg = f"Passcode must be at most {MAX_PASSCODE_LENGTH} bytes, got {len(passcode_bytes)}"
            raise ValueError(error_msg)

        payload = len(passcode_bytes).to_bytes(LOGIN_LENGTH_FIELD_BYTES, "big") + passcode_bytes
        return PH803WProtocol.encode(MSG_TYPE_LOGIN_REQUEST, payload)

    @staticmethod
    def encode_ping() -> bytes:
        """Encode 0x15 ping (00 00 00 03 03 00 00 15)."""
        return PH803WProtocol.encode(MSG_TYPE_PING)

    @staticmethod
    def encode_data_request() -> bytes:
        """Encode 0x90 telemetry request (00 00 00 03 04 00 00 90 02)."""
        return PH803WProtocol.encode(MSG_TYPE_DATA_REQUEST, DATA_REQUEST_PAYLOAD)

    @staticmethod
    def encode_discovery_probe() -> bytes:
        """Encode the UDP discovery probe (00 00 00 03 03 00 00 03)."""
        return PH803WProtocol.encode(MSG_TYPE_DISCOVERY_PROBE)

    @staticmethod
    def decode_frame(data: bytes) -> Frame:
        """Decode the first frame of ``data``.

        Bytes after the frame boundary are ignored; use ``iter_frames`` to
        process them.

        Raises:
            FramingError: Bad prefix, incomplete header, or fewer bytes than declared

        """
        declared_length, message_type = PH803WProtocol.parse_header(data)

        expected_total = declared_length + LENGTH_FIELD_END
        if len(data) < expected_total or expected_total < FRAME_HEADER_LENGTH:
            raise FramingError("invalid_length", data)

        raw = bytes(data[:expected_total])
        return Frame(
            message_type=message_type,
            declared_length=declared_length,
            payload=raw[FRAME_HEADER_LENGTH:],
            raw=raw,
        )

    @staticmethod
    def iter_frames(data: bytes) -> Iterator[Frame]:
        """Yield every frame of a buffer that may carry several back-to-back.

        A single TCP read can contain more than one message. Each frame is
        yielded before the remainder is examined, so a malformed tail raises
        ``FramingError`` only after the preceding frames were handed out.
        """
        remaining = bytes(data)
        while remaining:
            frame = PH803WProtocol.decode_frame(remaining)
            if len(remaining) > len(frame.raw):
                logger.debug(
                    "Splitting buffer, %d bytes follow frame type 0x%02x",
                    len(remaining) - len(frame.raw),
                    frame.message_type,
                )
            yield frame
            remaining = remaining[len(frame.raw) :]

    @staticmethod
    def parse_message(frame: Frame) -> Message:
        """Interpret a frame's payload according to its message type.

        Unknown types return ``UnknownMessage`` instead of raising.

        Raises:
            PacketDecodeError: If the payload is too short for its type

        """
        message_type = frame.message_type

        if message_type == MSG_TYPE_PASSCODE_RESPONSE:
            passcode = ByteCursor(frame.payload).read_length_prefixed()
            logger.debug("Decoded passcode response (%d bytes)", len(passcode))
            return PasscodeResponse(passcode=passcode)

        if message_type == MSG_TYPE_LOGIN_RESPONSE:
            return LoginResponse(status=ByteCursor(frame.payload).read_u8())

        if message_type == MSG_TYPE_PONG:
            return Pong()

        if message_type in TELEMETRY_OFFSETS:
            return PH803WProtocol.parse_telemetry(frame.payload, message_type)

        if message_type in REQUEST_MESSAGE_TYPES:
            return RequestMessage(message_type=message_type, payload=frame.payload)

        logger.debug("Unknown message type 0x%02x", message_type)
        return UnknownMessage(message_type=message_type, payload=frame.payload)

    @staticmethod
    def parse_telemetry(payload: bytes, message_type: int = MSG_TYPE_DATA_RESPONSE) -> TelemetryReading:
        """Decode telemetry fields from a 0x91/0x94 payload.

        Field layout (from the type's offset):
        - Byte 0: flags 1 (diagnostic only)
        - Byte 1: flags 2 (bit 0 pH switch, bit 1 redox switch)
        - Bytes 2-3: pH * 100 (big-endian)
        - Bytes 4-5: redox + 2000 mV (big-endian)

        Example:
            >>> reading = PH803WProtocol.parse_telemetry(bytes.fromhex("030302dc089d00000000"))
            >>> reading.ph, reading.redox, reading.ph_switch, reading.redox_switch
            (7.32, 205, True, True)

        """
        cursor = ByteCursor(payload, TELEMETRY_OFFSETS.get(message_type, 0))
        flags1 = cursor.read_u8()
        flags2 = cursor.read_u8()
        ph_raw = cursor.read_u16()
        redox_raw = cursor.read_u16()

        reading = TelemetryReading(
            ph=ph_raw / PH_DIVISOR,
            redox=redox_raw - REDOX_OFFSET_MV,
            ph_switch=bool((flags2 >> PH_SWITCH_BIT) & 1),
            redox_switch=bool((flags2 >> REDOX_SWITCH_BIT) & 1),
            bin_flags1=format(flags1, "b"),
            bin_flags2=format(flags2, "b"),
            message_type=message_type,
        )

        logger.debug(
            "Decoded telemetry: type=0x%02x, ph=%.2f, redox=%d",
            message_type,
            reading.ph,
            reading.redox,
        )

        return reading
