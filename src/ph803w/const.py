import os

__all__ = [
    "PH803W_CONNECT_TIMEOUT",
    "PH803W_DEBUG",
    "PH803W_DEFAULT_TCP_PORT",
    "PH803W_DISCOVERY_BROADCAST_ADDRESS",
    "PH803W_DISCOVERY_LISTEN_ADDRESS",
    "PH803W_LOG_CORRELATION_ENABLED",
    "PH803W_LOG_FORMAT",
    "PH803W_LOG_HUMAN_OUTPUT",
    "PH803W_LOG_JSON_FILE",
    "PH803W_LOG_NAME",
    "PH803W_PING_INTERVAL",
    "PH803W_RECONNECT_DELAY",
    "PH803W_RESPONSE_TIMEOUT",
    "PH803W_UDP_PORT",
    "PH803W_VERSION",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")

PH803W_VERSION: str = "0.3.0"
PH803W_LOG_NAME: str = "ph803w"

# Device defaults (seconds for all durations)
PH803W_DEFAULT_TCP_PORT = 12416
PH803W_UDP_PORT = 12414
PH803W_PING_INTERVAL: float = 4.0
PH803W_RECONNECT_DELAY: float = 10.0
PH803W_RESPONSE_TIMEOUT: float = 5.0
PH803W_CONNECT_TIMEOUT: float = 5.0
PH803W_DISCOVERY_LISTEN_ADDRESS: str = os.environ.get("PH803W_DISCOVERY_LISTEN_ADDRESS", "0.0.0.0")
PH803W_DISCOVERY_BROADCAST_ADDRESS: str = "255.255.255.255"

PH803W_DEBUG = os.environ.get("PH803W_DEBUG", "0").casefold() in YES_ANSWER

# Logging configuration
PH803W_LOG_FORMAT: str = os.environ.get("PH803W_LOG_FORMAT", "human").casefold()
_json_file = os.environ.get("PH803W_LOG_JSON_FILE")
PH803W_LOG_JSON_FILE: str | None = _json_file if _json_file else None
PH803W_LOG_HUMAN_OUTPUT: str = os.environ.get("PH803W_LOG_HUMAN_OUTPUT", "stderr")
PH803W_LOG_CORRELATION_ENABLED: bool = (
    os.environ.get("PH803W_LOG_CORRELATION_ENABLED", "true").casefold() in YES_ANSWER
)
