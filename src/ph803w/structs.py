"""Configuration models for device sessions and discovery."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ph803w.const import (
    PH803W_CONNECT_TIMEOUT,
    PH803W_DEFAULT_TCP_PORT,
    PH803W_DISCOVERY_BROADCAST_ADDRESS,
    PH803W_DISCOVERY_LISTEN_ADDRESS,
    PH803W_PING_INTERVAL,
    PH803W_RECONNECT_DELAY,
    PH803W_RESPONSE_TIMEOUT,
    PH803W_UDP_PORT,
)


class SessionOptions(BaseModel):
    """Options for one device session. Durations are in seconds.

    ``device_passcode`` may be left unset; it is then negotiated with the
    device during authentication and stored here.
    """

    model_config = ConfigDict(validate_assignment=True)

    host: str = Field(min_length=1)
    port: int = Field(default=PH803W_DEFAULT_TCP_PORT, gt=0, lt=65536)
    device_passcode: str | bytes | None = None
    auto_reconnect: bool = True
    reconnect_delay: float = Field(default=PH803W_RECONNECT_DELAY, gt=0)
    response_timeout: float = Field(default=PH803W_RESPONSE_TIMEOUT, gt=0)
    ping_interval: float = Field(default=PH803W_PING_INTERVAL, gt=0)
    connect_timeout: float = Field(default=PH803W_CONNECT_TIMEOUT, gt=0)


class DiscoveryOptions(BaseModel):
    """Options for UDP broadcast discovery."""

    listen_address: str = PH803W_DISCOVERY_LISTEN_ADDRESS
    port: int = Field(default=PH803W_UDP_PORT, gt=0, lt=65536)
    broadcast_address: str = PH803W_DISCOVERY_BROADCAST_ADDRESS
