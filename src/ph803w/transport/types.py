"""Core dataclasses for request/response correlation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any


@dataclass
class PendingRequest:
    """Request awaiting a response of a given message type.

    Attributes:
        message_type: Expected response message type (correlation key)
        future: Completion handle shared by every caller of this request type
        timeout_handle: Timer that rejects the request when it fires
        correlation_id: UUID v7 for observability and event tracing
        sent_at: Loop time when the request was registered
    """

    message_type: int
    future: asyncio.Future[Any]
    timeout_handle: asyncio.TimerHandle
    correlation_id: str
    sent_at: float
