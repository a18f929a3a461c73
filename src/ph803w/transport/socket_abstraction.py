"""Asyncio TCP socket abstraction with deadlines and instrumentation."""

import asyncio
import logging
import time

logger = logging.getLogger(__name__)


class TCPConnection:
    """Async TCP connection with timeouts and instrumentation.

    Failures are reported through return values (``False`` / ``None``) rather
    than exceptions; ``last_error`` keeps the most recent socket error.
    """

    def __init__(
        self,
        host: str,
        port: int,
        connect_timeout: float = 5.0,
        io_timeout: float = 1.5,
        read_timeout: float | None = None,
        max_read_size: int = 4096,
    ):
        """
        Initialize TCP connection parameters.

        Args:
            host: Target host
            port: Target port
            connect_timeout: Connection timeout in seconds
            io_timeout: Write drain timeout in seconds
            read_timeout: Read timeout in seconds (None waits indefinitely)
            max_read_size: Maximum bytes to read in one operation
        """
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.io_timeout = io_timeout
        self.read_timeout = read_timeout
        self.max_read_size = max_read_size
        self.reader: asyncio.StreamReader | None = None
        self.writer: asyncio.StreamWriter | None = None
        self.last_error: OSError | None = None
        self._connected = False

    async def connect(self) -> bool:
        """
        Establish TCP connection with timeout.

        Returns:
            True if connected successfully, False otherwise
        """
        start_time = time.perf_counter()
        try:
            logger.debug(
                "Connecting to %s:%d (timeout: %.1fs)",
                self.host,
                self.port,
                self.connect_timeout,
                extra={"host": self.host, "port": self.port, "timeout": self.connect_timeout},
            )
            self.reader, self.writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            self._connected = True
            self.last_error = None
            logger.info(
                "Connected to %s:%d in %.1fms",
                self.host,
                self.port,
                elapsed_ms,
                extra={"host": self.host, "port": self.port, "elapsed_ms": elapsed_ms},
            )
        except TimeoutError as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            self.last_error = e
            logger.warning(
                "Connection to %s:%d timed out after %.1fms",
                self.host,
                self.port,
                elapsed_ms,
                extra={"host": self.host, "port": self.port, "elapsed_ms": elapsed_ms, "error": "timeout"},
            )
            return False
        except OSError as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            self.last_error = e
            logger.warning(
                "Connection to %s:%d failed after %.1fms: %s",
                self.host,
                self.port,
                elapsed_ms,
                e,
                extra={"host": self.host, "port": self.port, "elapsed_ms": elapsed_ms, "error": str(e)},
            )
            return False
        else:
            return True

    async def send(self, data: bytes) -> bool:
        """
        Send data with timeout.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self._connected or not self.writer:
            logger.error(
                "Cannot send: not connected",
                extra={"host": self.host, "port": self.port},
            )
            return False

        start_time = time.perf_counter()
        try:
            logger.debug(
                "Sending %d bytes to %s:%d: %s",
                len(data),
                self.host,
                self.port,
                data.hex(),
            )
            self.writer.write(data)
            await asyncio.wait_for(self.writer.drain(), timeout=self.io_timeout)
        except TimeoutError:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.warning(
                "Send to %s:%d timed out after %.1fms",
                self.host,
                self.port,
                elapsed_ms,
                extra={"host": self.host, "port": self.port, "elapsed_ms": elapsed_ms, "error": "timeout"},
            )
            return False
        except OSError as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            self.last_error = e
            logger.warning(
                "Send to %s:%d failed after %.1fms: %s",
                self.host,
                self.port,
                elapsed_ms,
                e,
                extra={"host": self.host, "port": self.port, "elapsed_ms": elapsed_ms, "error": str(e)},
            )
            return False
        else:
            return True

    async def recv(self, max_bytes: int | None = None) -> bytes | None:
        """
        Receive data, optionally bounded by ``read_timeout``.

        Returns:
            Received bytes, or None on EOF, socket error or read timeout.
            After EOF or a socket error ``is_connected`` is False.
        """
        if not self._connected or not self.reader:
            logger.error(
                "Cannot receive: not connected",
                extra={"host": self.host, "port": self.port},
            )
            return None

        if max_bytes is None:
            max_bytes = self.max_read_size

        try:
            if self.read_timeout is None:
                data = await self.reader.read(max_bytes)
            else:
                data = await asyncio.wait_for(self.reader.read(max_bytes), timeout=self.read_timeout)
        except TimeoutError:
            logger.debug(
                "Receive from %s:%d timed out after %.1fs",
                self.host,
                self.port,
                self.read_timeout,
            )
            return None
        except OSError as e:
            self.last_error = e
            self._connected = False
            logger.warning(
                "Receive from %s:%d failed: %s",
                self.host,
                self.port,
                e,
                extra={"host": self.host, "port": self.port, "error": str(e)},
            )
            return None

        if not data:
            logger.info(
                "Connection closed by %s:%d",
                self.host,
                self.port,
                extra={"host": self.host, "port": self.port},
            )
            self._connected = False
            return None

        logger.debug(
            "Received %d bytes from %s:%d: %s",
            len(data),
            self.host,
            self.port,
            data.hex(),
        )
        return data

    async def close(self) -> None:
        """Close the connection."""
        if self.writer:
            logger.debug(
                "Closing connection to %s:%d",
                self.host,
                self.port,
                extra={"host": self.host, "port": self.port},
            )
            try:
                self.writer.close()
                await asyncio.wait_for(self.writer.wait_closed(), timeout=self.io_timeout)
            except (OSError, TimeoutError) as e:
                logger.warning(
                    "Error closing connection: %s",
                    e,
                    extra={
                        "host": self.host,
                        "port": self.port,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
            finally:
                self._connected = False
                self.writer = None
                self.reader = None

    @property
    def is_connected(self) -> bool:
        """Check if connection is active."""
        return self._connected

    def __repr__(self) -> str:
        status = "connected" if self._connected else "disconnected"
        return f"TCPConnection({self.host}:{self.port}, {status})"
