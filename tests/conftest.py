"""Shared fixtures for PH803-W tests."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest

from ph803w.events import EventPublisher, Notification
from tests.helpers.fake_device import FakeDiscoveryResponder, FakePH803WServer


class NotificationRecorder:
    """Subscribe to every notification kind of a publisher and record the arguments."""

    def __init__(self, publisher: EventPublisher) -> None:
        self.received: defaultdict[Notification, list[tuple[object, ...]]] = defaultdict(list)
        for notification in Notification:
            _ = publisher.subscribe(notification, self._recorder(notification))

    def _recorder(self, notification: Notification):
        def _record(*args: object) -> None:
            self.received[notification].append(args)

        return _record

    def count(self, notification: Notification) -> int:
        return len(self.received[notification])

    def first(self, notification: Notification) -> object:
        return self.received[notification][0][0]

    def values(self, notification: Notification) -> list[object]:
        return [args[0] for args in self.received[notification]]

    async def wait_for(self, notification: Notification, count: int = 1, timeout: float = 2.0) -> None:
        """Wait until ``notification`` was published at least ``count`` times."""
        async with asyncio.timeout(timeout):
            while self.count(notification) < count:
                await asyncio.sleep(0.01)


@pytest.fixture
def recorder_factory():
    """Build a NotificationRecorder for any publisher."""
    return NotificationRecorder


@pytest.fixture
def mock_connection() -> MagicMock:
    """Connected TCPConnection stand-in that accepts every write."""
    connection = MagicMock()
    connection.is_connected = True
    connection.last_error = None
    connection.send = AsyncMock(return_value=True)
    connection.close = AsyncMock()
    return connection


@pytest.fixture
async def fake_device() -> AsyncGenerator[FakePH803WServer]:
    """Fake controller listening on a free localhost port."""
    server = FakePH803WServer()
    await server.start()
    yield server
    await server.stop()


@pytest.fixture
async def discovery_responder() -> AsyncGenerator[tuple[FakeDiscoveryResponder, int]]:
    """UDP responder on a free localhost port; yields (responder, port)."""
    loop = asyncio.get_running_loop()
    transport, responder = await loop.create_datagram_endpoint(
        FakeDiscoveryResponder,
        local_addr=("127.0.0.1", 0),
    )
    port = transport.get_extra_info("sockname")[1]
    yield responder, port
    transport.close()
