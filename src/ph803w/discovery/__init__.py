"""UDP broadcast discovery of PH803-W devices."""

from ph803w.discovery.decoder import DiscoveredDevice, DiscoveryDecoder
from ph803w.discovery.service import PH803WDiscovery

__all__ = [
    "DiscoveredDevice",
    "DiscoveryDecoder",
    "PH803WDiscovery",
]
