"""Command line entry point for discovering and reading PH803-W controllers."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Protocol, cast, runtime_checkable

import dotenv

from ph803w.const import PH803W_DEBUG, PH803W_LOG_NAME, PH803W_VERSION, YES_ANSWER
from ph803w.correlation import correlation_context
from ph803w.discovery import DiscoveredDevice, PH803WDiscovery
from ph803w.events import Notification
from ph803w.logging_abstraction import get_logger
from ph803w.metrics import start_metrics_server
from ph803w.protocol import PH803WProtocolError, TelemetryReading
from ph803w.structs import DiscoveryOptions
from ph803w.transport import PH803WDevice

logger = get_logger(PH803W_LOG_NAME)


@runtime_checkable
class _CLIArgs(Protocol):
    command: str
    debug: bool
    env: Path | None
    metrics_port: int | None


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(prog="ph803w", description="PH803-W pH/redox controller client")
    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {PH803W_VERSION}")
    _ = parser.add_argument(
        "-D",
        "--debug",
        action="store_true",
        help="Enable debug mode",
    )
    _ = parser.add_argument("--env", help="Path to the environment file", default=None, type=Path)
    _ = parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Serve Prometheus metrics on this port",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    discover = subparsers.add_parser("discover", help="Find controllers on the local network")
    _ = discover.add_argument(
        "--duration",
        type=float,
        default=3.0,
        help="Seconds to wait for replies (default: 3)",
    )
    _ = discover.add_argument("--listen-address", default=None, help="Local address to bind")

    data = subparsers.add_parser("data", help="Log in to a controller and print telemetry")
    _ = data.add_argument("host", help="Controller address")
    _ = data.add_argument("--passcode", default=None, help="Device passcode (negotiated when omitted)")

    return parser.parse_args(argv)


def _load_env(env_file: Path) -> None:
    env_path = env_file.expanduser().resolve()
    if not env_path.exists():
        logger.error(
            "Environment file not found",
            extra={"path": str(env_path)},
        )
        return

    if dotenv.load_dotenv(env_path, override=True):
        logger.info(
            "Environment variables loaded",
            extra={"source": str(env_path)},
        )
    else:
        logger.warning(
            "No environment variables loaded from file",
            extra={"path": str(env_path)},
        )


def _metrics_port_from_env() -> int | None:
    value = os.environ.get("PH803W_METRICS_PORT", "")
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring invalid PH803W_METRICS_PORT", extra={"value": value})
        return None


def _print_device(device: DiscoveredDevice) -> None:
    print(
        f"{device.ip}\tid={device.device_id}\tmac={device.mac}\t"
        f"version={device.version}\tapi={device.api_server}",
    )


def _print_reading(reading: TelemetryReading) -> None:
    print(
        f"pH {reading.ph:.2f}\tredox {reading.redox} mV\t"
        f"pH switch {'on' if reading.ph_switch else 'off'}\t"
        f"redox switch {'on' if reading.redox_switch else 'off'}",
    )


def _log_error(error: object) -> None:
    logger.warning("Device reported an error: %s", error)


async def run_discover(duration: float, listen_address: str | None = None) -> int:
    """Broadcast a probe and print every reply received within ``duration``."""
    options = DiscoveryOptions(listen_address=listen_address) if listen_address else DiscoveryOptions()
    discovery = PH803WDiscovery(options)
    _ = discovery.events.subscribe(Notification.ERROR, _log_error)

    try:
        devices = await discovery.collect(duration)
    except PH803WProtocolError as e:
        logger.error("Discovery failed: %s", e)
        return 1

    for device in devices:
        _print_device(device)
    logger.info("Discovery finished", extra={"devices": len(devices)})
    return 0


async def run_data(host: str, passcode: str | None = None) -> int:
    """Connect, log in and print telemetry until interrupted.

    Login and the initial data request are repeated after every reconnect.
    """
    device = PH803WDevice(host, device_passcode=passcode)
    _ = device.events.subscribe(Notification.DATA, _print_reading)
    _ = device.events.subscribe(Notification.ERROR, _log_error)

    async def _on_connected() -> None:
        try:
            _ = await device.authenticate()
            _ = await device.retrieve_data()
        except PH803WProtocolError as e:
            logger.error("Session setup with %s failed: %s", host, e)

    _ = device.events.subscribe(Notification.CONNECTED, _on_connected)

    async with device:
        _ = await device.connect()
        await asyncio.Event().wait()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the ph803w command line entry point."""
    with correlation_context():
        parsed_args = parse_cli(argv)
        args = cast("_CLIArgs", cast("object", parsed_args))

        if args.env:
            _load_env(args.env)

        debug = args.debug or PH803W_DEBUG or os.environ.get("PH803W_DEBUG", "0").casefold() in YES_ANSWER
        if debug:
            logger.set_level(logging.DEBUG)
            logger.debug("Debug logging enabled")

        metrics_port = args.metrics_port if args.metrics_port is not None else _metrics_port_from_env()
        if metrics_port is not None:
            start_metrics_server(metrics_port)
            logger.info("Serving metrics", extra={"port": metrics_port})

        try:
            if args.command == "discover":
                return asyncio.run(run_discover(parsed_args.duration, parsed_args.listen_address))
            return asyncio.run(run_data(parsed_args.host, parsed_args.passcode))
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received, shutting down...")
            return 0


if __name__ == "__main__":
    sys.exit(main())
