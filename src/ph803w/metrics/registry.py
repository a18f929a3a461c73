"""Prometheus metrics registry for PH803-W sessions and discovery."""

import threading
from typing import Final

from prometheus_client import (  # type: ignore[import-untyped]
    Counter,
    Gauge,
    start_http_server,
)

CONNECTION_STATES: Final = ("disconnected", "connecting", "connected", "ready", "reconnect_pending")

# Frame metrics
ph803w_frame_sent_total: Final = Counter(  # type: ignore[assignment]
    "ph803w_frame_sent_total",
    "Total frames written to a device",
    ["device", "message_type"],
)

ph803w_frame_recv_total: Final = Counter(  # type: ignore[assignment]
    "ph803w_frame_recv_total",
    "Total frames received from a device",
    ["device", "message_type"],
)

ph803w_decode_errors_total: Final = Counter(  # type: ignore[assignment]
    "ph803w_decode_errors_total",
    "Total frames or datagrams dropped as malformed",
    ["device", "reason"],
)

# Correlation metrics
ph803w_response_timeout_total: Final = Counter(  # type: ignore[assignment]
    "ph803w_response_timeout_total",
    "Total requests that got no response in time",
    ["device", "message_type"],
)

ph803w_unsolicited_response_total: Final = Counter(  # type: ignore[assignment]
    "ph803w_unsolicited_response_total",
    "Total responses that matched no pending request",
    ["device", "message_type"],
)

# Session metrics
ph803w_connection_state: Final = Gauge(  # type: ignore[assignment]
    "ph803w_connection_state",
    "Current session state",
    ["device", "state"],
)

ph803w_login_total: Final = Counter(  # type: ignore[assignment]
    "ph803w_login_total",
    "Total login attempts",
    ["device", "outcome"],
)

ph803w_reconnection_total: Final = Counter(  # type: ignore[assignment]
    "ph803w_reconnection_total",
    "Total scheduled reconnects",
    ["device", "reason"],
)

ph803w_heartbeat_total: Final = Counter(  # type: ignore[assignment]
    "ph803w_heartbeat_total",
    "Total keepalive exchanges",
    ["device", "outcome"],
)

# Discovery metrics
ph803w_discovered_devices_total: Final = Counter(  # type: ignore[assignment]
    "ph803w_discovered_devices_total",
    "Total discovery replies decoded",
)

_server_state = {"started": False}
_server_lock = threading.Lock()


def _type_label(message_type: int) -> str:
    return f"0x{message_type:02x}"


def start_metrics_server(port: int = 9403) -> None:
    """Start Prometheus HTTP metrics server (idempotent)."""
    with _server_lock:
        if not _server_state["started"]:
            start_http_server(port)  # type: ignore[no-untyped-call]
            _server_state["started"] = True


def record_frame_sent(device: str, message_type: int) -> None:
    """Record a frame written to a device."""
    ph803w_frame_sent_total.labels(device=device, message_type=_type_label(message_type)).inc()  # type: ignore[no-untyped-call]


def record_frame_recv(device: str, message_type: int) -> None:
    """Record a frame received from a device."""
    ph803w_frame_recv_total.labels(device=device, message_type=_type_label(message_type)).inc()  # type: ignore[no-untyped-call]


def record_decode_error(device: str, reason: str) -> None:
    """Record a dropped frame or datagram."""
    ph803w_decode_errors_total.labels(device=device, reason=reason).inc()  # type: ignore[no-untyped-call]


def record_response_timeout(device: str, message_type: int) -> None:
    """Record a request that timed out."""
    ph803w_response_timeout_total.labels(device=device, message_type=_type_label(message_type)).inc()  # type: ignore[no-untyped-call]


def record_unsolicited_response(device: str, message_type: int) -> None:
    """Record a response without a pending request."""
    ph803w_unsolicited_response_total.labels(
        device=device, message_type=_type_label(message_type),
    ).inc()  # type: ignore[no-untyped-call]


def record_connection_state(device: str, state: str) -> None:
    """Record session state change."""
    # Set gauge to 1 for current state, 0 for all others
    for s in CONNECTION_STATES:
        value = 1 if s == state else 0
        ph803w_connection_state.labels(device=device, state=s).set(value)  # type: ignore[no-untyped-call]


def record_login(device: str, outcome: str) -> None:
    """Record a login attempt."""
    ph803w_login_total.labels(device=device, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_reconnection(device: str, reason: str) -> None:
    """Record a scheduled reconnect."""
    ph803w_reconnection_total.labels(device=device, reason=reason).inc()  # type: ignore[no-untyped-call]


def record_heartbeat(device: str, outcome: str) -> None:
    """Record a keepalive exchange."""
    ph803w_heartbeat_total.labels(device=device, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_discovered_device() -> None:
    """Record a decoded discovery reply."""
    ph803w_discovered_devices_total.inc()  # type: ignore[no-untyped-call]
