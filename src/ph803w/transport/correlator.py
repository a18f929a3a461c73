"""Request/response correlation keyed by response message type.

The PH803-W protocol carries no request ids: a response is matched to the
outstanding request by its message type alone. At most one request per
response type is in flight; a second caller asking for the same type shares
the first caller's future.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ph803w.correlation import ensure_correlation_id
from ph803w.metrics import registry
from ph803w.transport.exceptions import NotConnectedError, ResponseTimeoutError
from ph803w.transport.types import PendingRequest

logger = logging.getLogger(__name__)

Writer = Callable[[bytes], Awaitable[bool]]


class ResponseCorrelator:
    """Pending-request table with one slot per response message type.

    Args:
        writer: Coroutine function writing a frame, returning False on failure
        timeout: Seconds to wait for a response before rejecting
        device: Label used in logs and metrics

    """

    def __init__(self, writer: Writer, timeout: float = 5.0, device: str = "unknown") -> None:
        self._writer = writer
        self.timeout = timeout
        self.device = device
        self._pending: dict[int, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def is_pending(self, message_type: int) -> bool:
        return message_type in self._pending

    async def send(self, message_type: int, request: bytes) -> asyncio.Future[Any]:
        """Write ``request`` and return the future completed by a ``message_type`` response.

        When a request for ``message_type`` is already pending, its future is
        returned and nothing is written.
        """
        existing = self._pending.get(message_type)
        if existing is not None:
            logger.debug(
                "Request for 0x%02x already pending, sharing its response",
                message_type,
                extra={"device": self.device, "correlation_id": existing.correlation_id},
            )
            return existing.future

        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        pending = PendingRequest(
            message_type=message_type,
            future=future,
            timeout_handle=loop.call_later(self.timeout, self._on_timeout, message_type),
            correlation_id=ensure_correlation_id(),
            sent_at=loop.time(),
        )
        # Registered before the write so a fast response finds its slot
        self._pending[message_type] = pending

        if not await self._writer(request):
            self.reject(
                message_type,
                NotConnectedError("write_failed", state="connected"),
            )
        return future

    def resolve(self, message_type: int, value: object) -> bool:
        """Complete the pending request for ``message_type`` with ``value``."""
        pending = self._pop(message_type)
        if pending is None:
            logger.debug(
                "No pending request for response 0x%02x",
                message_type,
                extra={"device": self.device},
            )
            registry.record_unsolicited_response(self.device, message_type)
            return False

        if not pending.future.done():
            pending.future.set_result(value)
        logger.debug(
            "Resolved 0x%02x after %.1fms",
            message_type,
            (asyncio.get_running_loop().time() - pending.sent_at) * 1000,
            extra={"device": self.device, "correlation_id": pending.correlation_id},
        )
        return True

    def reject(self, message_type: int, error: BaseException) -> bool:
        """Fail the pending request for ``message_type`` with ``error``."""
        pending = self._pop(message_type)
        if pending is None:
            logger.debug(
                "No pending request for 0x%02x to reject",
                message_type,
                extra={"device": self.device},
            )
            return False

        if not pending.future.done():
            pending.future.set_exception(error)
        return True

    def reject_all(self, error: BaseException) -> int:
        """Reject every pending request with ``error`` and return how many there were."""
        count = 0
        for message_type in list(self._pending):
            if self.reject(message_type, error):
                count += 1
        return count

    def _pop(self, message_type: int) -> PendingRequest | None:
        pending = self._pending.pop(message_type, None)
        if pending is not None:
            pending.timeout_handle.cancel()
        return pending

    def _on_timeout(self, message_type: int) -> None:
        pending = self._pending.get(message_type)
        if pending is None:
            return

        logger.warning(
            "No response of type 0x%02x within %.1fs",
            message_type,
            self.timeout,
            extra={"device": self.device, "correlation_id": pending.correlation_id},
        )
        registry.record_response_timeout(self.device, message_type)
        self.reject(message_type, ResponseTimeoutError(message_type, self.timeout))
