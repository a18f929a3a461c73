"""Device session with state machine, authentication, keepalive and reconnect.

This module implements PH803WDevice, which owns one TCP connection at a time
to a PH803-W controller, routes inbound frames to the response correlator and
the notification channel, and keeps the link alive with ping/pong.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from enum import Enum
from types import TracebackType
from typing import Any, Self

from ph803w.correlation import correlation_context, generate_correlation_id
from ph803w.events import EventPublisher, Notification
from ph803w.metrics import registry
from ph803w.protocol.exceptions import FramingError, PacketDecodeError, UnknownMessageTypeError
from ph803w.protocol.message_types import (
    MSG_TYPE_DATA_RESPONSE,
    MSG_TYPE_LOGIN_RESPONSE,
    MSG_TYPE_PASSCODE_RESPONSE,
    Frame,
    LoginResponse,
    PasscodeResponse,
    Pong,
    RequestMessage,
    TelemetryReading,
    UnknownMessage,
)
from ph803w.protocol.ph803w_protocol import PH803WProtocol
from ph803w.structs import SessionOptions
from ph803w.transport.correlator import ResponseCorrelator
from ph803w.transport.exceptions import (
    AlreadyConnectedError,
    AuthRejectedError,
    NotConnectedError,
    ResponseTimeoutError,
)
from ph803w.transport.socket_abstraction import TCPConnection

logger = logging.getLogger(__name__)

# Pong must arrive within this many ping intervals
_PONG_WAIT_FACTOR = 2


class SessionState(Enum):
    """Session state enumeration."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    READY = "ready"
    RECONNECT_PENDING = "reconnect_pending"


class PH803WDevice:
    """Client session for one PH803-W controller.

    The session survives reconnects; a fresh ``TCPConnection`` is opened per
    connect attempt. Connection and reconnect timer are mutually exclusive.

    **Timers**: reconnect, ping and pong-wait are ``loop.call_later`` handles
    held on the session, one of each at most. Work they trigger (ping writes,
    reconnect attempts, forced close) runs in tracked tasks that ``close()``
    cancels.

    **Notifications** (via ``events``):
    - CONNECTED: connection established
    - DISCONNECTED: connection torn down, once per connection
    - DATA: every telemetry frame, solicited or not
    - ERROR: socket errors, malformed frames, unknown message types

    Usage:
        >>> device = PH803WDevice("192.168.1.50")
        >>> device.events.subscribe(Notification.DATA, print)
        >>> await device.connect()
        >>> await device.authenticate()
        >>> reading = await device.retrieve_data()

    """

    def __init__(self, host: str | SessionOptions, **overrides: Any) -> None:
        """Initialize the session.

        Args:
            host: Device address or a complete ``SessionOptions``
            **overrides: ``SessionOptions`` fields applied on top

        """
        if isinstance(host, SessionOptions):
            # Each session owns its options; close() and login write to them
            options = SessionOptions.model_validate({**host.model_dump(), **overrides})
        else:
            options = SessionOptions(host=host, **overrides)

        self.options: SessionOptions = options
        self.events: EventPublisher = EventPublisher(f"PH803WDevice({options.host})")
        self.state: SessionState = SessionState.DISCONNECTED
        self.session_id: str = generate_correlation_id()

        self._connection: TCPConnection | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._correlator = ResponseCorrelator(
            self._write,
            timeout=options.response_timeout,
            device=options.host,
        )

        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._ping_handle: asyncio.TimerHandle | None = None
        self._pong_wait_handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def host(self) -> str:
        return self.options.host

    @property
    def port(self) -> int:
        return self.options.port

    @property
    def passcode(self) -> str | bytes | None:
        """Passcode in use, negotiated or supplied."""
        return self.options.device_passcode

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and self._connection.is_connected

    def _set_state(self, state: SessionState) -> None:
        if state is self.state:
            return
        logger.debug(
            "Session %s: %s → %s",
            self.host,
            self.state.value,
            state.value,
            extra={"device": self.host, "from_state": self.state.value, "to_state": state.value},
        )
        self.state = state
        registry.record_connection_state(self.host, state.value)

    async def connect(self) -> bool:
        """Open the TCP connection to the device.

        Returns:
            True if connected, False if the attempt failed (a reconnect is
            scheduled when auto-reconnect is enabled)

        Raises:
            AlreadyConnectedError: If a connection exists or is being opened

        """
        if self._connection is not None:
            raise AlreadyConnectedError("connection_exists", state=self.state.value)

        self._cancel_reconnect()
        self._set_state(SessionState.CONNECTING)

        connection = TCPConnection(
            self.host,
            self.port,
            connect_timeout=self.options.connect_timeout,
            io_timeout=self.options.connect_timeout,
        )
        self._connection = connection

        with correlation_context(self.session_id):
            connected = await connection.connect()

            if self._connection is not connection:
                # close() ran while the connection was being opened
                await connection.close()
                return False

            if not connected:
                self._connection = None
                self._set_state(SessionState.DISCONNECTED)
                if connection.last_error is not None:
                    self.events.publish(Notification.ERROR, connection.last_error)
                self.events.publish(Notification.DISCONNECTED)
                self._schedule_reconnect("connect_failed")
                return False

            self._set_state(SessionState.CONNECTED)
            self._reader_task = asyncio.create_task(self._receive_loop(connection))
            logger.info(
                "Connected to PH803-W at %s:%d",
                self.host,
                self.port,
                extra={"device": self.host},
            )
            self.events.publish(Notification.CONNECTED)
            return True

    async def get_passcode(self) -> bytes:
        """Ask the device for its passcode (0x06 → 0x07) and remember it.

        Raises:
            NotConnectedError: Without a live connection
            ResponseTimeoutError: No 0x07 response in time

        """
        self._require_connection()
        future = await self._correlator.send(
            MSG_TYPE_PASSCODE_RESPONSE,
            PH803WProtocol.encode_passcode_request(),
        )
        passcode: bytes = await asyncio.shield(future)
        self.options.device_passcode = passcode
        logger.debug("Negotiated passcode with %s", self.host, extra={"device": self.host})
        return passcode

    async def authenticate(self, passcode: str | bytes | None = None) -> bool:
        """Log in to the device (0x08 → 0x09).

        A supplied ``passcode`` is stored for later logins. Without one, and
        with none stored, it is negotiated via ``get_passcode()`` first.
        On success the session is READY and keepalive starts.

        Raises:
            NotConnectedError: Without a live connection
            AuthRejectedError: Device answered with a non-zero status
            ResponseTimeoutError: No 0x07 or 0x09 response in time

        """
        self._require_connection()
        if passcode is not None:
            self.options.device_passcode = passcode
        if not self.options.device_passcode:
            await self.get_passcode()

        future = await self._correlator.send(
            MSG_TYPE_LOGIN_RESPONSE,
            PH803WProtocol.encode_login(self.options.device_passcode or b""),
        )
        try:
            status: int = await asyncio.shield(future)
        except ResponseTimeoutError:
            registry.record_login(self.host, "timeout")
            raise

        if status != 0:
            registry.record_login(self.host, "rejected")
            logger.warning(
                "Login to %s rejected (status 0x%02x)",
                self.host,
                status,
                extra={"device": self.host, "status": status},
            )
            raise AuthRejectedError(status)

        registry.record_login(self.host, "success")
        self._set_state(SessionState.READY)
        self._arm_ping()
        logger.info("Logged in to %s", self.host, extra={"device": self.host})
        return True

    login = authenticate

    async def retrieve_data(self) -> TelemetryReading:
        """Request a telemetry reading (0x90 → 0x91).

        Raises:
            NotConnectedError: Without a live connection
            ResponseTimeoutError: No 0x91 response in time

        """
        self._require_connection()
        future = await self._correlator.send(
            MSG_TYPE_DATA_RESPONSE,
            PH803WProtocol.encode_data_request(),
        )
        return await asyncio.shield(future)

    async def close(self, reconnect: bool = False) -> bool:
        """Close the connection; optionally schedule a reconnect.

        Sets auto-reconnect to ``reconnect``, cancels every timer, rejects
        every pending request with ``NotConnectedError`` and publishes
        DISCONNECTED when a connection existed. With ``reconnect`` the
        reconnect countdown restarts, with or without a connection.
        """
        self.options.auto_reconnect = reconnect
        self._cancel_reconnect()
        self._cancel_keepalive()
        self._correlator.reject_all(NotConnectedError("session_closed", state=self.state.value))
        self._cancel_tasks()

        connection = self._connection
        if connection is None:
            self._set_state(SessionState.DISCONNECTED)
            self._schedule_reconnect("close")
            return True

        self._connection = None
        self._stop_reader()
        await connection.close()
        self._set_state(SessionState.DISCONNECTED)
        logger.info(
            "Closed connection to %s (reconnect: %s)",
            self.host,
            reconnect,
            extra={"device": self.host, "reconnect": reconnect},
        )
        self.events.publish(Notification.DISCONNECTED)
        self._schedule_reconnect("close")
        return True

    async def destroy(self) -> bool:
        """Close without reconnect."""
        return await self.close(reconnect=False)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        _ = await self.close(reconnect=False)

    def __repr__(self) -> str:
        return f"PH803WDevice({self.host}:{self.port}, {self.state.value})"

    def _require_connection(self) -> None:
        if not self.is_connected:
            raise NotConnectedError("no_connection", state=self.state.value)

    async def _write(self, frame: bytes) -> bool:
        connection = self._connection
        if connection is None or not connection.is_connected:
            return False
        sent = await connection.send(frame)
        if sent:
            registry.record_frame_sent(self.host, frame[7])
        return sent

    async def _receive_loop(self, connection: TCPConnection) -> None:
        """Read from the connection and dispatch frames until EOF or error.

        **Task Lifecycle**:
        - **Start**: Created by connect() on success
        - **Stop**: Cancelled by close(), or ends on EOF / socket error
        """
        with correlation_context(self.session_id):
            try:
                while True:
                    data = await connection.recv()
                    if data is None:
                        break
                    self._handle_data(data)
            except asyncio.CancelledError:
                logger.debug("Receive loop cancelled (clean shutdown)")
                raise

            await self._handle_connection_lost(connection)

    async def _handle_connection_lost(self, connection: TCPConnection) -> None:
        if self._connection is not connection:
            return

        self._connection = None
        self._reader_task = None
        self._cancel_keepalive()
        self._correlator.reject_all(NotConnectedError("connection_lost", state=self.state.value))
        await connection.close()

        error = connection.last_error
        logger.warning(
            "Connection to %s lost%s",
            self.host,
            f": {error}" if error else "",
            extra={"device": self.host, "error": str(error) if error else None},
        )
        self._set_state(SessionState.DISCONNECTED)
        if error is not None:
            self.events.publish(Notification.ERROR, error)
        self.events.publish(Notification.DISCONNECTED)
        self._schedule_reconnect("connection_lost")

    def _handle_data(self, data: bytes) -> None:
        try:
            for frame in PH803WProtocol.iter_frames(data):
                self._handle_frame(frame)
        except FramingError as e:
            registry.record_decode_error(self.host, e.reason)
            logger.warning(
                "Dropping malformed data from %s: %s",
                self.host,
                e,
                extra={"device": self.host, "reason": e.reason, "data_preview": e.data_preview},
            )
            self.events.publish(Notification.ERROR, e)

    def _handle_frame(self, frame: Frame) -> None:
        registry.record_frame_recv(self.host, frame.message_type)
        try:
            message = PH803WProtocol.parse_message(frame)
        except PacketDecodeError as e:
            registry.record_decode_error(self.host, e.reason)
            logger.warning(
                "Cannot decode frame 0x%02x from %s: %s",
                frame.message_type,
                self.host,
                e,
                extra={"device": self.host, "reason": e.reason},
            )
            self.events.publish(Notification.ERROR, e)
            return

        if isinstance(message, PasscodeResponse):
            self._correlator.resolve(MSG_TYPE_PASSCODE_RESPONSE, message.passcode)
        elif isinstance(message, LoginResponse):
            self._correlator.resolve(MSG_TYPE_LOGIN_RESPONSE, message.status)
        elif isinstance(message, Pong):
            self._handle_pong()
        elif isinstance(message, TelemetryReading):
            self.events.publish(Notification.DATA, message)
            if self._correlator.is_pending(message.message_type):
                self._correlator.resolve(message.message_type, message)
        elif isinstance(message, RequestMessage):
            logger.debug(
                "Ignoring request frame 0x%02x sent by %s",
                message.message_type,
                self.host,
            )
        elif isinstance(message, UnknownMessage):
            self.events.publish(
                Notification.ERROR,
                UnknownMessageTypeError(message.message_type, frame.raw),
            )

    def _handle_pong(self) -> None:
        if self._pong_wait_handle is not None:
            self._pong_wait_handle.cancel()
            self._pong_wait_handle = None
        registry.record_heartbeat(self.host, "pong")
        logger.debug("Pong from %s", self.host)
        if self.state is SessionState.READY:
            self._arm_ping()

    def _arm_ping(self) -> None:
        if self._ping_handle is not None:
            self._ping_handle.cancel()
        self._ping_handle = asyncio.get_running_loop().call_later(
            self.options.ping_interval,
            self._on_ping_timer,
        )

    def _on_ping_timer(self) -> None:
        self._ping_handle = None
        self._spawn(self._send_ping())

    async def _send_ping(self) -> None:
        if not await self._write(PH803WProtocol.encode_ping()):
            # Receive loop notices the dead connection
            registry.record_heartbeat(self.host, "send_failed")
            return

        registry.record_heartbeat(self.host, "ping")
        if self._pong_wait_handle is None:
            self._pong_wait_handle = asyncio.get_running_loop().call_later(
                self.options.ping_interval * _PONG_WAIT_FACTOR,
                self._on_pong_timeout,
            )

    def _on_pong_timeout(self) -> None:
        self._pong_wait_handle = None
        registry.record_heartbeat(self.host, "timeout")
        logger.warning(
            "No pong from %s within %.1fs, reconnecting",
            self.host,
            self.options.ping_interval * _PONG_WAIT_FACTOR,
            extra={"device": self.host},
        )
        self._spawn(self.close(reconnect=True))

    def _schedule_reconnect(self, reason: str) -> None:
        if not self.options.auto_reconnect:
            return
        if self._reconnect_handle is not None:
            logger.debug("Reconnect already scheduled", extra={"device": self.host, "reason": reason})
            self._set_state(SessionState.RECONNECT_PENDING)
            return

        self._reconnect_handle = asyncio.get_running_loop().call_later(
            self.options.reconnect_delay,
            self._on_reconnect_timer,
        )
        self._set_state(SessionState.RECONNECT_PENDING)
        registry.record_reconnection(self.host, reason)
        logger.info(
            "Reconnecting to %s in %.1fs",
            self.host,
            self.options.reconnect_delay,
            extra={"device": self.host, "reason": reason},
        )

    def _on_reconnect_timer(self) -> None:
        self._reconnect_handle = None
        self._spawn(self._reconnect())

    async def _reconnect(self) -> None:
        if self._connection is not None:
            return
        _ = await self.connect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _cancel_keepalive(self) -> None:
        if self._ping_handle is not None:
            self._ping_handle.cancel()
            self._ping_handle = None
        if self._pong_wait_handle is not None:
            self._pong_wait_handle.cancel()
            self._pong_wait_handle = None

    def _stop_reader(self) -> None:
        task = self._reader_task
        self._reader_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            _ = task.cancel()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _cancel_tasks(self) -> None:
        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current and not task.done():
                _ = task.cancel()

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Background task for %s failed: %s",
                self.host,
                error,
                exc_info=error,
            )
            self.events.publish(Notification.ERROR, error)
