"""PH803-W message type definitions and frame/message dataclasses.

Every TCP and UDP message shares one frame layout:
- Bytes 0-3: Protocol prefix (0x00 0x00 0x00 0x03)
- Byte 4: Declared length (bytes following this field up to the frame end)
- Bytes 5-6: Reserved (0x00 0x00)
- Byte 7: Message type
- Bytes 8+: Payload

Message Type Overview:
- 0x03/0x04: Discovery probe / reply (UDP)
- 0x06/0x07: Passcode request / response
- 0x08/0x09: Login request / response
- 0x15/0x16: Ping / pong
- 0x90/0x91: Telemetry request / response
- 0x94: Extended telemetry response
"""

from dataclasses import dataclass

PROTOCOL_PREFIX = b"\x00\x00\x00\x03"
FRAME_HEADER_LENGTH = 8  # Prefix (4) + Length (1) + Reserved (2) + Type (1)
LENGTH_FIELD_END = 5  # Declared length counts the bytes after byte 4
MAX_DECLARED_LENGTH = 0xFF

# Discovery Flow (UDP)
MSG_TYPE_DISCOVERY_PROBE = 0x03  # Client → Broadcast: probe (also echoed back)
MSG_TYPE_DISCOVERY_REPLY = 0x04  # Device → Client: device descriptor

# Authentication Flow
MSG_TYPE_PASSCODE_REQUEST = 0x06  # Client → Device: ask for passcode
MSG_TYPE_PASSCODE_RESPONSE = 0x07  # Device → Client: passcode bytes
MSG_TYPE_LOGIN_REQUEST = 0x08  # Client → Device: login with passcode
MSG_TYPE_LOGIN_RESPONSE = 0x09  # Device → Client: status byte, 0 = success

# Keepalive Flow
MSG_TYPE_PING = 0x15  # Client → Device
MSG_TYPE_PONG = 0x16  # Device → Client, no payload

# Telemetry Flow
MSG_TYPE_DATA_REQUEST = 0x90  # Client → Device: fetch and subscribe
MSG_TYPE_DATA_RESPONSE = 0x91  # Device → Client: telemetry (solicited or pushed)
MSG_TYPE_DATA_EXTENDED_RESPONSE = 0x94  # Device → Client: telemetry at offset 4

REQUEST_MESSAGE_TYPES = frozenset(
    {
        MSG_TYPE_DISCOVERY_PROBE,
        MSG_TYPE_PASSCODE_REQUEST,
        MSG_TYPE_LOGIN_REQUEST,
        MSG_TYPE_PING,
        MSG_TYPE_DATA_REQUEST,
    },
)
TELEMETRY_MESSAGE_TYPES = frozenset({MSG_TYPE_DATA_RESPONSE, MSG_TYPE_DATA_EXTENDED_RESPONSE})


@dataclass(frozen=True)
class Frame:
    """One complete protocol frame.

    Attributes:
        message_type: Message type byte (byte 7)
        declared_length: Length field from byte 4
        payload: Bytes after the message type up to the frame boundary
        raw: Complete frame bytes (trailing stream data excluded)

    """

    message_type: int
    declared_length: int
    payload: bytes
    raw: bytes


@dataclass(frozen=True)
class PasscodeResponse:
    passcode: bytes


@dataclass(frozen=True)
class LoginResponse:
    status: int

    @property
    def success(self) -> bool:
        return self.status == 0


@dataclass(frozen=True)
class Pong:
    pass


@dataclass(frozen=True)
class TelemetryReading:
    """Decoded telemetry from a 0x91 or 0x94 frame.

    Attributes:
        ph: pH value (raw value / 100)
        redox: Redox potential in mV (raw value - 2000)
        ph_switch: True when the pH control switch is on (flag byte 2, bit 0)
        redox_switch: True when the redox control switch is on (flag byte 2, bit 1)
        bin_flags1: Binary representation of the first flag byte, for analysis
        bin_flags2: Binary representation of the second flag byte, for analysis
        message_type: Frame type the reading came from

    """

    ph: float
    redox: int
    ph_switch: bool
    redox_switch: bool
    bin_flags1: str
    bin_flags2: str
    message_type: int = MSG_TYPE_DATA_RESPONSE


@dataclass(frozen=True)
class RequestMessage:
    """A client-originated frame (seen when decoding our own requests)."""

    message_type: int
    payload: bytes


@dataclass(frozen=True)
class UnknownMessage:
    """Well-formed frame with an unrecognized message type."""

    message_type: int
    payload: bytes


Message = PasscodeResponse | LoginResponse | Pong | TelemetryReading | RequestMessage | UnknownMessage
