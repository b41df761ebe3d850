"""TCP server that receives input packets and replays them on a simulator."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from asteria.config import ServerConfig, load_config
from asteria.protocol import DecodeError, InputEvent, Packet, decode_packet, input_event_packet
from asteria.simulator import InputSimulator

__all__ = ["InputServer", "try_deserialize_packet"]

log = logging.getLogger(__name__)

_READ_SIZE = 4096


def try_deserialize_packet(buffer: bytearray) -> Packet | None:
    """Take one packet from the start of ``buffer``.

    The buffer is emptied whether or not decoding succeeds. Any bytes that
    follow a decoded packet are dropped along with it.
    """
    if not buffer:
        return None
    try:
        packet, _ = decode_packet(bytes(buffer))
    except DecodeError as exc:
        log.debug("Failed to deserialize packet: %s", exc)
        buffer.clear()
        return None
    buffer.clear()
    return packet


class InputServer:
    """Accepts client connections and simulates the input events they send."""

    def __init__(
        self,
        config: ServerConfig | None = None,
        simulator: InputSimulator | None = None,
    ) -> None:
        self.config = config if config is not None else load_config(ServerConfig)
        self.simulator = simulator if simulator is not None else InputSimulator()
        self._lock = asyncio.Lock()

    async def start(self) -> None:
        """Listen on the configured address and serve clients until cancelled."""
        host, port = self.config.network.host, self.config.network.port
        log.info("Starting input server on %s:%d", host, port)
        server = await asyncio.start_server(self._serve_client, host, port)
        log.info("Server listening on %s:%d", host, port)
        async with server:
            await server.serve_forever()

    async def _serve_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        peer = writer.get_extra_info("peername")
        log.info("New client connected from %s", peer)
        try:
            await self.handle_client(reader, writer)
        except Exception as exc:  # one client's failure must not stop the server
            log.error("Error handling client %s: %s", peer, exc)
        finally:
            log.info("Client %s disconnected", peer)

    async def handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Read packets from one connection until it closes."""
        buffer = bytearray()
        try:
            while True:
                try:
                    chunk = await reader.read(_READ_SIZE)
                except OSError as exc:
                    log.error("Error reading from client: %s", exc)
                    break
                if not chunk:
                    log.debug("Client disconnected")
                    break
                buffer += chunk
                while (packet := try_deserialize_packet(buffer)) is not None:
                    await self.process_packet(packet)
        finally:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()

    async def process_packet(self, packet: Packet) -> None:
        """Replay the packet's message; simulation failures are logged."""
        log.debug("Processing packet: %s", packet.id)
        message = packet.message
        async with self._lock:
            try:
                if isinstance(message, InputEvent):
                    self.simulator.simulate_input(message)
                else:
                    self.simulator.simulate_typed_input(message)
            except Exception as exc:
                log.error("Failed to simulate input event: %s", exc)

    async def ping(self, host: str | None = None) -> None:
        """Connect to a host on the configured port and send a ping packet."""
        target_host = host if host is not None else self.config.network.host
        port = self.config.network.port
        log.info("Attempting to connect to %s:%d", target_host, port)
        try:
            _, writer = await asyncio.open_connection(target_host, port)
        except OSError as exc:
            log.error("Failed to connect to %s:%d: %s", target_host, port, exc)
            raise
        log.info("Successfully connected to %s:%d", target_host, port)
        try:
            writer.write(input_event_packet("PING", 0, 0).encode())
            await writer.drain()
        finally:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()
        log.info("Ping sent successfully")