"""Client side of the connection: sends packets to the input server."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from asteria.config import ClientConfig, load_config
from asteria.protocol import Packet, input_event_packet

__all__ = ["NetworkClient", "DEFAULT_SERVER_HOST"]

log = logging.getLogger(__name__)

DEFAULT_SERVER_HOST = "192.168.137.1"


class NetworkClient:
    """Holds a TCP connection to the server and writes packets to it."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        server_host: str = DEFAULT_SERVER_HOST,
        retry_delay: float = 1.0,
    ) -> None:
        self.config = config if config is not None else load_config(ClientConfig)
        self.server_host = server_host
        self.retry_delay = retry_delay
        self._writer: asyncio.StreamWriter | None = None

    @property
    def connected(self) -> bool:
        return self._writer is not None

    async def connect(self) -> None:
        """Open a connection to the server, replacing any earlier one."""
        port = self.config.network.port
        log.info("Connecting to server at %s:%d", self.server_host, port)
        _, writer = await asyncio.open_connection(self.server_host, port)
        await self.close()
        self._writer = writer
        log.info("Successfully connected to server")

    async def close(self) -> None:
        """Close the connection if one is open."""
        writer, self._writer = self._writer, None
        if writer is not None:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()

    async def send_packet(self, packet: Packet) -> None:
        """Write one packet; without a connection the packet is dropped."""
        if self._writer is None:
            log.warning("Attempted to send packet without connection")
            return
        self._writer.write(packet.encode())
        await self._writer.drain()
        log.debug("Sent packet: %s", packet.id)

    async def start_relay(self, queue: asyncio.Queue[Packet | None]) -> None:
        """Connect, then send packets taken from ``queue`` until it yields None."""
        await self.connect()
        try:
            while (packet := await queue.get()) is not None:
                try:
                    await self.send_packet(packet)
                except OSError as exc:
                    log.error("Failed to send packet: %s", exc)
                    try:
                        await self.connect()
                    except OSError as reconnect_exc:
                        log.error("Failed to reconnect: %s", reconnect_exc)
                        await asyncio.sleep(self.retry_delay)
        finally:
            await self.close()

    async def ping(self) -> None:
        """Send a ping packet to the configured host and port."""
        host, port = self.config.network.host, self.config.network.port
        log.info("Testing connectivity to %s:%d", host, port)
        _, writer = await asyncio.open_connection(host, port)
        try:
            writer.write(input_event_packet("PING", 0, 0).encode())
            await writer.drain()
        finally:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()
        log.info("Ping sent successfully")