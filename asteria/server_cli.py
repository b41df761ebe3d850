"""Command line entry point for the input server."""

from __future__ import annotations

import argparse
import asyncio
import logging
from collections.abc import Sequence

from asteria.log import init_logging
from asteria.server import InputServer

__all__ = ["build_parser", "main"]

log = logging.getLogger(__name__)

_VERSION = "1.3.0"


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with its start and ping subcommands."""
    parser = argparse.ArgumentParser(
        prog="asteria-server", description="Asteria server application"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_VERSION}")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("start", help="Start the Asteria server")
    ping = commands.add_parser("ping", help="Send a ping to test connectivity")
    ping.add_argument("host", nargs="?", help="Specific host to ping")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the server command line; returns the process exit status."""
    args = build_parser().parse_args(argv)
    init_logging()
    try:
        match args.command:
            case "start":
                log.info("Starting Asteria server...")
                asyncio.run(InputServer().start())
            case "ping":
                asyncio.run(InputServer().ping(args.host))
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