"""Unit tests for PH803WProtocol encoder/decoder."""

from __future__ import annotations

import pytest

from ph803w.protocol.exceptions import FramingError, PacketDecodeError
from ph803w.protocol.message_types import (
    MSG_TYPE_DATA_EXTENDED_RESPONSE,
    MSG_TYPE_DATA_REQUEST,
    MSG_TYPE_DATA_RESPONSE,
    MSG_TYPE_LOGIN_RESPONSE,
    MSG_TYPE_PASSCODE_RESPONSE,
    MSG_TYPE_PING,
    MSG_TYPE_PONG,
    LoginResponse,
    PasscodeResponse,
    Pong,
    RequestMessage,
    TelemetryReading,
    UnknownMessage,
)
from ph803w.protocol.ph803w_protocol import MAX_PASSCODE_LENGTH, PH803WProtocol
from tests.fixtures.real_frames import (
    DATA_0x91_DEV_TO_CLIENT,
    DATA_EXTENDED_0x94_DEV_TO_CLIENT,
    DATA_PUSH_0x91_HIGH_PH,
    DATA_PUSH_0x91_PH_ON,
    DATA_PUSH_0x91_REDOX_ON,
    DATA_PUSH_0x91_SWITCHES_OFF,
    DATA_REQUEST_0x90_CLIENT_TO_DEV,
    DISCOVERY_PROBE_0x03_CLIENT_TO_BROADCAST,
    LOGIN_0x08_CLIENT_TO_DEV,
    LOGIN_FAILED_0x09_DEV_TO_CLIENT,
    LOGIN_OK_0x09_DEV_TO_CLIENT,
    PASSCODE,
    PASSCODE_0x07_DEV_TO_CLIENT,
    PASSCODE_REQUEST_0x06_CLIENT_TO_DEV,
    PING_0x15_CLIENT_TO_DEV,
    PONG_0x16_DEV_TO_CLIENT,
)
from tests.helpers.expectations import expect_exception

FRAME_OVERHEAD = 5
UNKNOWN_FRAME_0xFF = bytes.fromhex("00000003040000ff00")

# =============================================================================
# Header Parsing Tests
# =============================================================================


def test_parse_header_ping() -> None:
    """Test parsing a payload-less header."""
    declared_length, message_type = PH803WProtocol.parse_header(PING_0x15_CLIENT_TO_DEV)

    assert declared_length == 3
    assert message_type == MSG_TYPE_PING


def test_parse_header_telemetry() -> None:
    """Test parsing the 0x91 header."""
    declared_length, message_type = PH803WProtocol.parse_header(DATA_0x91_DEV_TO_CLIENT)

    assert declared_length == 0x0D
    assert message_type == MSG_TYPE_DATA_RESPONSE


def test_parse_header_bad_prefix() -> None:
    """Test that a wrong prefix raises FramingError."""
    err = expect_exception(PH803WProtocol.parse_header, FramingError, bytes.fromhex("0000000403000016"))

    assert err.reason == "invalid_prefix"


def test_parse_header_too_short() -> None:
    """Test that an incomplete header with a valid prefix raises too_short."""
    err = expect_exception(PH803WProtocol.parse_header, FramingError, bytes.fromhex("0000000303"))

    assert err.reason == "too_short"


def test_parse_header_short_garbage_is_invalid_prefix() -> None:
    """Test that a short buffer not starting like a frame is reported as bad prefix."""
    err = expect_exception(PH803WProtocol.parse_header, FramingError, b"\xff\x00")

    assert err.reason == "invalid_prefix"


# =============================================================================
# Encoding Tests
# =============================================================================


def test_encode_passcode_request() -> None:
    assert PH803WProtocol.encode_passcode_request() == PASSCODE_REQUEST_0x06_CLIENT_TO_DEV


def test_encode_login_str() -> None:
    """Test login with a text passcode."""
    assert PH803WProtocol.encode_login("IPQRSTUVWX") == LOGIN_0x08_CLIENT_TO_DEV


def test_encode_login_bytes() -> None:
    """Test login with the passcode bytes returned by the device."""
    assert PH803WProtocol.encode_login(PASSCODE) == LOGIN_0x08_CLIENT_TO_DEV


def test_encode_login_length_fields() -> None:
    """Test declared length and 16-bit passcode length."""
    frame = PH803WProtocol.encode_login(b"abc")

    assert frame[4] == 5 + 3
    assert frame[8:10] == b"\x00\x03"
    assert frame[10:] == b"abc"
    assert len(frame) == frame[4] + FRAME_OVERHEAD


def test_encode_login_rejects_wrong_type() -> None:
    """Test that a non str/bytes passcode raises ValueError."""
    err = expect_exception(PH803WProtocol.encode_login, ValueError, 12345)  # type: ignore[arg-type]

    assert "passcode type" in str(err)


def test_encode_login_rejects_oversized_passcode() -> None:
    """Test that a passcode that does not fit a frame raises ValueError."""
    _ = expect_exception(PH803WProtocol.encode_login, ValueError, b"x" * (MAX_PASSCODE_LENGTH + 1))


def test_encode_login_max_passcode_fits() -> None:
    """Test the longest accepted passcode fills the length byte exactly."""
    frame = PH803WProtocol.encode_login(b"x" * MAX_PASSCODE_LENGTH)

    assert frame[4] == 0xFF


def test_encode_ping() -> None:
    assert PH803WProtocol.encode_ping() == PING_0x15_CLIENT_TO_DEV


def test_encode_data_request() -> None:
    assert PH803WProtocol.encode_data_request() == DATA_REQUEST_0x90_CLIENT_TO_DEV


def test_encode_discovery_probe() -> None:
    assert PH803WProtocol.encode_discovery_probe() == DISCOVERY_PROBE_0x03_CLIENT_TO_BROADCAST


def test_encode_rejects_oversized_payload() -> None:
    """Test that a payload exceeding the 1-byte length field raises ValueError."""
    _ = expect_exception(PH803WProtocol.encode, ValueError, MSG_TYPE_DATA_REQUEST, b"\x00" * 253)


# =============================================================================
# Frame Decoding Tests
# =============================================================================


@pytest.mark.parametrize(
    ("frame", "message_type"),
    [
        (PASSCODE_REQUEST_0x06_CLIENT_TO_DEV, 0x06),
        (PASSCODE_0x07_DEV_TO_CLIENT, 0x07),
        (LOGIN_0x08_CLIENT_TO_DEV, 0x08),
        (LOGIN_OK_0x09_DEV_TO_CLIENT, 0x09),
        (PING_0x15_CLIENT_TO_DEV, 0x15),
        (PONG_0x16_DEV_TO_CLIENT, 0x16),
        (DATA_REQUEST_0x90_CLIENT_TO_DEV, 0x90),
        (DATA_0x91_DEV_TO_CLIENT, 0x91),
        (DATA_EXTENDED_0x94_DEV_TO_CLIENT, 0x94),
    ],
)
def test_decode_frame_captured(frame: bytes, message_type: int) -> None:
    """Test that every captured frame decodes to its own bytes."""
    decoded = PH803WProtocol.decode_frame(frame)

    assert decoded.message_type == message_type
    assert decoded.raw == frame
    assert decoded.payload == frame[8:]
    assert len(decoded.raw) == decoded.declared_length + FRAME_OVERHEAD


def test_decode_frame_ignores_trailing_bytes() -> None:
    """Test that decode_frame returns only the first frame."""
    decoded = PH803WProtocol.decode_frame(LOGIN_OK_0x09_DEV_TO_CLIENT + DATA_0x91_DEV_TO_CLIENT)

    assert decoded.raw == LOGIN_OK_0x09_DEV_TO_CLIENT


def test_decode_frame_short_length() -> None:
    """Test that fewer bytes than declared raise invalid_length."""
    short = bytes.fromhex("000000030500000900")
    err = expect_exception(PH803WProtocol.decode_frame, FramingError, short)

    assert err.reason == "invalid_length"
    assert err.data_preview == short


def test_decode_frame_declared_length_below_header() -> None:
    """Test that a declared length ending inside the header is rejected."""
    err = expect_exception(PH803WProtocol.decode_frame, FramingError, bytes.fromhex("0000000301000016"))

    assert err.reason == "invalid_length"


# =============================================================================
# Stream Splitting Tests
# =============================================================================


def test_iter_frames_single() -> None:
    frames = list(PH803WProtocol.iter_frames(PONG_0x16_DEV_TO_CLIENT))

    assert [f.raw for f in frames] == [PONG_0x16_DEV_TO_CLIENT]


def test_iter_frames_split() -> None:
    """Test that concatenated frames are yielded one by one in order."""
    buffer = LOGIN_OK_0x09_DEV_TO_CLIENT + DATA_0x91_DEV_TO_CLIENT + PONG_0x16_DEV_TO_CLIENT
    frames = list(PH803WProtocol.iter_frames(buffer))

    assert [f.message_type for f in frames] == [MSG_TYPE_LOGIN_RESPONSE, MSG_TYPE_DATA_RESPONSE, MSG_TYPE_PONG]
    assert b"".join(f.raw for f in frames) == buffer


def test_iter_frames_yields_before_malformed_tail() -> None:
    """Test that frames ahead of a malformed remainder are still delivered."""
    iterator = PH803WProtocol.iter_frames(LOGIN_OK_0x09_DEV_TO_CLIENT + b"\x00\x00\x00\x03\x0d\x00")

    first = next(iterator)
    assert first.raw == LOGIN_OK_0x09_DEV_TO_CLIENT

    with pytest.raises(FramingError) as exc_info:
        _ = next(iterator)
    assert exc_info.value.reason == "too_short"


def test_iter_frames_empty() -> None:
    assert list(PH803WProtocol.iter_frames(b"")) == []


# =============================================================================
# Message Interpretation Tests
# =============================================================================


def test_parse_message_passcode() -> None:
    message = PH803WProtocol.parse_message(PH803WProtocol.decode_frame(PASSCODE_0x07_DEV_TO_CLIENT))

    assert message == PasscodeResponse(passcode=PASSCODE)


def test_parse_message_login_ok() -> None:
    message = PH803WProtocol.parse_message(PH803WProtocol.decode_frame(LOGIN_OK_0x09_DEV_TO_CLIENT))

    assert isinstance(message, LoginResponse)
    assert message.status == 0
    assert message.success is True


def test_parse_message_login_failed() -> None:
    message = PH803WProtocol.parse_message(PH803WProtocol.decode_frame(LOGIN_FAILED_0x09_DEV_TO_CLIENT))

    assert isinstance(message, LoginResponse)
    assert message.status == 1
    assert message.success is False


def test_parse_message_pong() -> None:
    message = PH803WProtocol.parse_message(PH803WProtocol.decode_frame(PONG_0x16_DEV_TO_CLIENT))

    assert isinstance(message, Pong)


def test_parse_message_request() -> None:
    """Test that client requests decode as RequestMessage."""
    message = PH803WProtocol.parse_message(PH803WProtocol.decode_frame(DATA_REQUEST_0x90_CLIENT_TO_DEV))

    assert message == RequestMessage(message_type=MSG_TYPE_DATA_REQUEST, payload=b"\x02")


def test_parse_message_unknown_type_is_not_an_error() -> None:
    """Test that an unknown type is returned as a value."""
    message = PH803WProtocol.parse_message(PH803WProtocol.decode_frame(UNKNOWN_FRAME_0xFF))

    assert message == UnknownMessage(message_type=0xFF, payload=b"\x00")


def test_parse_message_truncated_passcode() -> None:
    """Test that a passcode longer than its frame raises too_short."""
    frame = PH803WProtocol.decode_frame(bytes.fromhex("0000000307000007000a4950"))

    with pytest.raises(PacketDecodeError) as exc_info:
        _ = PH803WProtocol.parse_message(frame)
    assert exc_info.value.reason == "too_short"


def test_parse_message_truncated_telemetry() -> None:
    """Test that a telemetry payload shorter than six bytes raises too_short."""
    frame = PH803WProtocol.decode_frame(bytes.fromhex("0000000306000091030302"))

    err = expect_exception(PH803WProtocol.parse_message, PacketDecodeError, frame)
    assert err.reason == "too_short"


_REFERENCE_READING = {
    "ph": 7.32,
    "redox": 205,
    "ph_switch": True,
    "redox_switch": True,
    "bin_flags1": "11",
    "bin_flags2": "11",
}


@pytest.mark.parametrize(
    ("message_type", "payload", "expected"),
    [
        (MSG_TYPE_PASSCODE_RESPONSE, b"\x00\x0aIPQRSTUVWX", PasscodeResponse(passcode=b"IPQRSTUVWX")),
        (MSG_TYPE_LOGIN_RESPONSE, b"\x00", LoginResponse(status=0)),
        (MSG_TYPE_PONG, b"", Pong()),
        (
            MSG_TYPE_DATA_RESPONSE,
            bytes.fromhex("030302dc089d00000000"),
            TelemetryReading(**_REFERENCE_READING, message_type=MSG_TYPE_DATA_RESPONSE),
        ),
        (
            MSG_TYPE_DATA_EXTENDED_RESPONSE,
            bytes.fromhex("aabbccdd030302dc089d00000000"),
            TelemetryReading(**_REFERENCE_READING, message_type=MSG_TYPE_DATA_EXTENDED_RESPONSE),
        ),
        (0x06, b"", RequestMessage(message_type=0x06, payload=b"")),
        (0x08, b"\x00\x0aIPQRSTUVWX", RequestMessage(message_type=0x08, payload=b"\x00\x0aIPQRSTUVWX")),
        (MSG_TYPE_PING, b"", RequestMessage(message_type=MSG_TYPE_PING, payload=b"")),
        (MSG_TYPE_DATA_REQUEST, b"\x02", RequestMessage(message_type=MSG_TYPE_DATA_REQUEST, payload=b"\x02")),
        (0x42, b"\x01\x02", UnknownMessage(message_type=0x42, payload=b"\x01\x02")),
    ],
)
def test_encoded_frame_parses_back(message_type: int, payload: bytes, expected: object) -> None:
    """Test that every known type survives encode, decode_frame and parse_message."""
    frame = PH803WProtocol.decode_frame(PH803WProtocol.encode(message_type, payload))

    assert frame.message_type == message_type
    assert frame.payload == payload
    assert PH803WProtocol.parse_message(frame) == expected


# =============================================================================
# Telemetry Tests
# =============================================================================


def test_parse_telemetry_reference_reading() -> None:
    """Test the 02 dc / 08 9d reading with both switches on."""
    message = PH803WProtocol.parse_message(PH803WProtocol.decode_frame(DATA_0x91_DEV_TO_CLIENT))

    assert isinstance(message, TelemetryReading)
    assert message.ph == 7.32
    assert message.redox == 205
    assert message.ph_switch is True
    assert message.redox_switch is True
    assert message.bin_flags1 == "11"
    assert message.bin_flags2 == "11"
    assert message.message_type == MSG_TYPE_DATA_RESPONSE


def test_parse_telemetry_extended_offset() -> None:
    """Test that 0x94 fields are read after four leading bytes."""
    message = PH803WProtocol.parse_message(PH803WProtocol.decode_frame(DATA_EXTENDED_0x94_DEV_TO_CLIENT))

    assert isinstance(message, TelemetryReading)
    assert message.ph == 7.32
    assert message.redox == 205
    assert message.message_type == MSG_TYPE_DATA_EXTENDED_RESPONSE


@pytest.mark.parametrize(
    ("frame", "ph", "redox", "ph_switch", "redox_switch"),
    [
        (DATA_PUSH_0x91_SWITCHES_OFF, 7.32, 423, False, False),
        (DATA_PUSH_0x91_REDOX_ON, 7.32, 205, False, True),
        (DATA_PUSH_0x91_PH_ON, 4.76, 205, True, False),
        (DATA_PUSH_0x91_HIGH_PH, 7.51, 304, True, True),
    ],
)
def test_parse_telemetry_switch_bits(
    frame: bytes,
    ph: float,
    redox: int,
    ph_switch: bool,
    redox_switch: bool,
) -> None:
    """Test flag byte 2: bit 0 pH switch, bit 1 redox switch."""
    reading = PH803WProtocol.parse_telemetry(frame[8:])

    assert reading.ph == ph
    assert reading.redox == redox
    assert reading.ph_switch is ph_switch
    assert reading.redox_switch is redox_switch
    assert reading.bin_flags1 == "100"


def test_parse_telemetry_negative_redox() -> None:
    """Test that raw values below 2000 give negative millivolts."""
    reading = PH803WProtocol.parse_telemetry(bytes.fromhex("0000025807d0") + bytes(4))
    assert reading.redox == 0

    reading = PH803WProtocol.parse_telemetry(bytes.fromhex("0000025807cf"))
    assert reading.redox == -1
    assert reading.ph == 6.0


def test_parse_telemetry_flag_bit_3_does_not_set_redox() -> None:
    """Test that only bit 1 drives the redox switch."""
    reading = PH803WProtocol.parse_telemetry(bytes.fromhex("0009025807d0"))

    assert reading.ph_switch is True
    assert reading.redox_switch is False
    assert reading.bin_flags2 == "1001"
