"""Decoder for PH803-W UDP discovery replies.

Reply layout (after the 5-byte prefix + length header):
- Byte 5: Flag byte, 0x00 for replies
- Bytes 6-7: Subtype (0x0003 probe echo, 0x0004 device reply)
- Four fields, each preceded by a 16-bit big-endian length:
  device id (ASCII), MAC (binary), firmware (ASCII), product key (ASCII)
- 8 bytes not interpreted
- API server, NUL-terminated ASCII
- Firmware version, NUL-terminated ASCII
- Remaining bytes, kept as-is
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ph803w.protocol.byte_cursor import ByteCursor
from ph803w.protocol.exceptions import FramingError
from ph803w.protocol.message_types import (
    FRAME_HEADER_LENGTH,
    LENGTH_FIELD_END,
    MSG_TYPE_DISCOVERY_PROBE,
    MSG_TYPE_DISCOVERY_REPLY,
    PROTOCOL_PREFIX,
)

logger = logging.getLogger(__name__)

FLAG_OFFSET = 5
SKIPPED_REGION_LENGTH = 8


@dataclass(frozen=True)
class DiscoveredDevice:
    """Device descriptor decoded from one discovery reply.

    Attributes:
        ip: Address the reply came from
        device_id: Unique device id (also used by the vendor cloud)
        mac: MAC address as lowercase hex
        firmware: Firmware field, may be empty
        product_key: Product key
        api_server: Cloud API server ``host:port``
        version: Firmware version string
        extra: Trailing bytes after the version, not interpreted
    """

    ip: str
    device_id: str
    mac: str
    firmware: str
    product_key: str
    api_server: str
    version: str
    extra: bytes = b""


def _ascii(value: bytes) -> str:
    return value.decode("ascii", errors="replace")


class DiscoveryDecoder:
    """Stateless decoder for discovery datagrams."""

    @staticmethod
    def decode(datagram: bytes, sender: str) -> DiscoveredDevice | None:
        """Decode one datagram received from ``sender``.

        Returns:
            DiscoveredDevice for a device reply, None for the echo of our own
            probe and for any other subtype

        Raises:
            FramingError: Prefix mismatch ("invalid_prefix") or datagram
                length not equal to declared length + 5 ("invalid_length")
            PacketDecodeError: Reply body truncated

        """
        if not datagram.startswith(PROTOCOL_PREFIX):
            raise FramingError("invalid_prefix", datagram)
        if len(datagram) < FRAME_HEADER_LENGTH or len(datagram) != datagram[4] + LENGTH_FIELD_END:
            raise FramingError("invalid_length", datagram)

        cursor = ByteCursor(datagram, FLAG_OFFSET)
        flag = cursor.read_u8()
        subtype = cursor.read_u16()

        if subtype == MSG_TYPE_DISCOVERY_PROBE:
            logger.debug("Ignoring probe echo from %s", sender)
            return None
        if flag != 0 or subtype != MSG_TYPE_DISCOVERY_REPLY:
            logger.debug(
                "Ignoring discovery datagram from %s (flag 0x%02x, subtype 0x%04x)",
                sender,
                flag,
                subtype,
            )
            return None

        device_id = _ascii(cursor.read_length_prefixed())
        mac = cursor.read_length_prefixed().hex()
        firmware = _ascii(cursor.read_length_prefixed())
        product_key = _ascii(cursor.read_length_prefixed())
        cursor.skip(SKIPPED_REGION_LENGTH)
        api_server = _ascii(cursor.read_cstring())
        version = _ascii(cursor.read_cstring())

        return DiscoveredDevice(
            ip=sender,
            device_id=device_id,
            mac=mac,
            firmware=firmware,
            product_key=product_key,
            api_server=api_server,
            version=version,
            extra=cursor.read_remainder(),
        )
