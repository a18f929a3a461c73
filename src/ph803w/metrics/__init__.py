"""Metrics module."""

from .registry import (
    record_connection_state,
    record_decode_error,
    record_discovered_device,
    record_frame_recv,
    record_frame_sent,
    record_heartbeat,
    record_login,
    record_reconnection,
    record_response_timeout,
    record_unsolicited_response,
    start_metrics_server,
)

__all__ = [
    "record_connection_state",
    "record_decode_error",
    "record_discovered_device",
    "record_frame_recv",
    "record_frame_sent",
    "record_heartbeat",
    "record_login",
    "record_reconnection",
    "record_response_timeout",
    "record_unsolicited_response",
    "start_metrics_server",
]
