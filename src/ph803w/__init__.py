"""Client for the PH803-W pH/redox controller LAN protocol.

Provides the TCP device session (passcode negotiation, login, keepalive,
telemetry) and UDP broadcast discovery.
"""

from ph803w.const import PH803W_VERSION as __version__
from ph803w.discovery import DiscoveredDevice, PH803WDiscovery
from ph803w.events import Notification
from ph803w.protocol import TelemetryReading
from ph803w.structs import DiscoveryOptions, SessionOptions
from ph803w.transport import PH803WDevice, SessionState

__all__ = [
    "DiscoveredDevice",
    "DiscoveryOptions",
    "Notification",
    "PH803WDevice",
    "PH803WDiscovery",
    "SessionOptions",
    "SessionState",
    "TelemetryReading",
    "__version__",
]
