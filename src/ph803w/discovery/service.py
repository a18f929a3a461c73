"""UDP broadcast discovery of PH803-W controllers on the local network."""

from __future__ import annotations

import asyncio
import logging

from ph803w.correlation import correlation_context, generate_correlation_id
from ph803w.discovery.decoder import DiscoveredDevice, DiscoveryDecoder
from ph803w.events import EventPublisher, Notification
from ph803w.metrics import registry
from ph803w.protocol.exceptions import FramingError, PacketDecodeError
from ph803w.protocol.ph803w_protocol import PH803WProtocol
from ph803w.structs import DiscoveryOptions
from ph803w.transport.exceptions import DiscoverySocketError

logger = logging.getLogger(__name__)


class _DiscoveryDatagramProtocol(asyncio.DatagramProtocol):
    """Forwards socket callbacks to the owning ``PH803WDiscovery``."""

    def __init__(self, discovery: PH803WDiscovery) -> None:
        self._discovery = discovery

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self._discovery._handle_datagram(data, addr)

    def error_received(self, exc: Exception) -> None:
        self._discovery._handle_socket_error(exc)


class PH803WDiscovery:
    """Broadcast a discovery probe and publish each device that replies.

    One device may answer more than once; every reply is published as a
    DEVICE notification. Malformed datagrams never stop the listener.

    Usage:
        >>> discovery = PH803WDiscovery()
        >>> discovery.events.subscribe(Notification.DEVICE, print)
        >>> await discovery.discover()
        >>> await asyncio.sleep(3)
        >>> await discovery.stop()

    """

    def __init__(self, options: DiscoveryOptions | None = None) -> None:
        self.options = options or DiscoveryOptions()
        self.events = EventPublisher("PH803WDiscovery")
        self.run_id = generate_correlation_id()
        self._transport: asyncio.DatagramTransport | None = None

    @property
    def is_listening(self) -> bool:
        return self._transport is not None

    async def discover(self) -> bool:
        """Bind the UDP socket (once) and broadcast the probe.

        Raises:
            DiscoverySocketError: Socket could not be bound or the probe not sent

        """
        with correlation_context(self.run_id):
            if self._transport is None:
                loop = asyncio.get_running_loop()
                try:
                    transport, _ = await loop.create_datagram_endpoint(
                        lambda: _DiscoveryDatagramProtocol(self),
                        local_addr=(self.options.listen_address, 0),
                        allow_broadcast=True,
                    )
                except OSError as e:
                    logger.warning(
                        "Cannot listen for discovery replies on %s: %s",
                        self.options.listen_address,
                        e,
                        extra={"listen_address": self.options.listen_address, "error": str(e)},
                    )
                    error = DiscoverySocketError("bind_failed")
                    self.events.publish(Notification.ERROR, error)
                    raise error from e
                self._transport = transport

            probe = PH803WProtocol.encode_discovery_probe()
            target = (self.options.broadcast_address, self.options.port)
            try:
                self._transport.sendto(probe, target)
            except OSError as e:
                logger.warning(
                    "Cannot send discovery probe to %s:%d: %s",
                    target[0],
                    target[1],
                    e,
                    extra={"error": str(e)},
                )
                error = DiscoverySocketError("send_failed")
                self.events.publish(Notification.ERROR, error)
                raise error from e

            logger.debug("Sent discovery probe %s to %s:%d", probe.hex(), target[0], target[1])
            return True

    async def stop(self) -> bool:
        """Close the UDP socket."""
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            logger.debug("Discovery socket closed")
        return True

    async def collect(self, duration: float = 3.0) -> list[DiscoveredDevice]:
        """Run one discovery for ``duration`` seconds and return every reply."""
        found: list[DiscoveredDevice] = []
        unsubscribe = self.events.subscribe(Notification.DEVICE, found.append)
        try:
            _ = await self.discover()
            await asyncio.sleep(duration)
        finally:
            unsubscribe()
            _ = await self.stop()
        return found

    def _handle_datagram(self, data: bytes, addr: tuple[str, int]) -> None:
        sender = addr[0]
        with correlation_context(self.run_id):
            try:
                device = DiscoveryDecoder.decode(data, sender)
            except FramingError as e:
                registry.record_decode_error(sender, e.reason)
                if e.reason == "invalid_length":
                    logger.warning(
                        "Ignoring discovery datagram from %s with invalid length",
                        sender,
                        extra={"sender": sender, "data_preview": e.data_preview.hex()},
                    )
                    self.events.publish(Notification.ERROR, e)
                else:
                    logger.debug("Ignoring discovery datagram from %s: %s", sender, e)
                return
            except PacketDecodeError as e:
                registry.record_decode_error(sender, e.reason)
                logger.debug("Ignoring truncated discovery reply from %s: %s", sender, e)
                return

            if device is None:
                return

            registry.record_discovered_device()
            logger.info(
                "Discovered PH803-W %s at %s (version %s)",
                device.device_id,
                device.ip,
                device.version,
                extra={"device_id": device.device_id, "ip": device.ip, "mac": device.mac},
            )
            self.events.publish(Notification.DEVICE, device)

    def _handle_socket_error(self, exc: Exception) -> None:
        logger.warning("Discovery socket error: %s", exc, extra={"error": str(exc)})
        self.events.publish(Notification.ERROR, exc)
