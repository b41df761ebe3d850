"""Command line entry point for the input capture client."""

from __future__ import annotations

import argparse
import asyncio
import logging
import re
from collections.abc import Sequence

from asteria.capture import InputCapture
from asteria.keys import key_name
from asteria.log import init_logging
from asteria.network import NetworkClient

__all__ = ["parse_toggle_key", "build_parser", "main"]

log = logging.getLogger(__name__)

_VERSION = "0.1.0"
_DEFAULT_TOGGLE_KEY = "0x1D"
_HEX_DIGITS = re.compile(r"\+?[0-9A-Fa-f]+")
_DEC_DIGITS = re.compile(r"\+?[0-9]+")
_U32_MAX = 0xFFFF_FFFF


def parse_toggle_key(text: str) -> int:
    """Parse a key code given in decimal or as hexadecimal with a 0x prefix."""
    if text.startswith("0x"):
        digits = text[2:]
        if not _HEX_DIGITS.fullmatch(digits) or int(digits, 16) > _U32_MAX:
            raise ValueError(f"Invalid hexadecimal key code: {text}")
        return int(digits, 16)
    if not _DEC_DIGITS.fullmatch(text) or int(text) > _U32_MAX:
        raise ValueError(f"Invalid key code: {text}")
    return int(text)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with its start and ping subcommands."""
    parser = argparse.ArgumentParser(
        prog="asteria-client", description="Asteria client application"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_VERSION}")
    commands = parser.add_subparsers(dest="command")
    start = commands.add_parser("start", help="Start the Asteria client")
    start.add_argument(
        "--toggle-key",
        metavar="KEY_CODE",
        default=_DEFAULT_TOGGLE_KEY,
        help="Hexadecimal key code for the toggle key (e.g., 0x1D for Left Ctrl)",
    )
    ping = commands.add_parser("ping", help="Send a ping to test connectivity")
    ping.add_argument("host", nargs="?", help="Specific host to ping")
    return parser


def _start(toggle_text: str) -> None:
    log.info("Starting Asteria client...")
    toggle_key = parse_toggle_key(toggle_text)
    log.info("=== Asteria Client Started ===")
    log.info("Toggle key set to: 0x%02x (%s)", toggle_key, key_name(toggle_key))
    log.info("Press the toggle key to enable/disable relay")
    log.info("When relay is enabled:")
    log.info("  - Your input is sent to the server")
    log.info("  - Local input is suppressed")
    log.info("Press the toggle key again to regain local control")
    log.info("================================")

    network_client = NetworkClient()
    with InputCapture(toggle_key) as capture:
        try:
            asyncio.run(capture.start_and_relay(network_client))
        except OSError as exc:
            log.error("Input capture failed: %s", exc)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the client command line; returns the process exit status."""
    args = build_parser().parse_args(argv)
    init_logging()
    try:
        match args.command:
            case "start":
                _start(args.toggle_key)
            case "ping":
                network_client = NetworkClient()
                if args.host:
                    log.info("Pinging host: %s", args.host)
                asyncio.run(network_client.ping())
            case _:
                log.error("Invalid command. Use --help for usage information.")
    except KeyboardInterrupt:
        log.info("Received shutdown signal")
    except (OSError, ValueError) as exc:
        log.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())