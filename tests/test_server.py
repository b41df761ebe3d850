import asyncio
import socket

import pytest

from asteria.config import NetworkConfig, ServerConfig
from asteria.protocol import (
    InputEvent,
    KeyPress,
    MouseScroll,
    decode_packet,
    new_packet,
)
from asteria.server import InputServer, try_deserialize_packet
from asteria.simulator import Action, Axis, Direction, InputSimulator, RecordingBackend


def _free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _server(port=3100):
    backend = RecordingBackend()
    config = ServerConfig(network=NetworkConfig(host="127.0.0.1", port=port))
    return InputServer(config=config, simulator=InputSimulator(backend)), backend


class _FailingBackend(RecordingBackend):
    def key(self, key, direction):
        super().key(key, direction)
        raise RuntimeError("backend failure")


def test_empty_buffer_gives_nothing():
    buffer = bytearray()
    assert try_deserialize_packet(buffer) is None
    assert buffer == bytearray()


def test_valid_packet_is_decoded_and_buffer_cleared():
    packet = new_packet(KeyPress(30))
    buffer = bytearray(packet.encode())
    assert try_deserialize_packet(buffer) == packet
    assert len(buffer) == 0


def test_trailing_bytes_are_dropped_with_packet():
    first = new_packet(KeyPress(30))
    second = new_packet(KeyPress(48))
    buffer = bytearray(first.encode() + second.encode())
    assert try_deserialize_packet(buffer) == first
    assert try_deserialize_packet(buffer) is None


def test_garbage_is_discarded():
    buffer = bytearray(b"\xff\xff\xff")
    assert try_deserialize_packet(buffer) is None
    assert len(buffer) == 0


def test_truncated_packet_is_discarded():
    data = new_packet(MouseScroll(1, -1)).encode()
    buffer = bytearray(data[:-1])
    assert try_deserialize_packet(buffer) is None
    assert len(buffer) == 0


@pytest.mark.asyncio
async def test_process_typed_packet():
    server, backend = _server()
    await server.process_packet(new_packet(KeyPress(30)))
    assert backend.actions == [Action("key", ("a", Direction.PRESS))]


@pytest.mark.asyncio
async def test_process_raw_packet():
    server, backend = _server()
    await server.process_packet(new_packet(InputEvent("EV_REL", 8, 3)))
    assert backend.actions == [Action("scroll", (3, Axis.VERTICAL))]


@pytest.mark.asyncio
async def test_simulation_failure_is_contained():
    backend = _FailingBackend()
    server = InputServer(
        config=ServerConfig(), simulator=InputSimulator(backend)
    )
    await server.process_packet(new_packet(KeyPress(30)))
    await server.process_packet(new_packet(KeyPress(48)))
    assert [action.args[0] for action in backend.actions] == ["a", "b"]


@pytest.mark.asyncio
async def test_handle_client_replays_sent_packet():
    server, backend = _server()
    listener = await asyncio.start_server(server.handle_client, "127.0.0.1", 0)
    port = listener.sockets[0].getsockname()[1]
    async with listener:
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        writer.write(new_packet(KeyPress(57)).encode())
        await writer.drain()
        writer.write_eof()
        remaining = await asyncio.wait_for(reader.read(), 5)
        writer.close()
    assert remaining == b""
    assert backend.actions == [Action("key", ("Space", Direction.PRESS))]


@pytest.mark.asyncio
async def test_ping_sends_ping_packet():
    received = bytearray()
    done = asyncio.Event()

    async def collect(reader, writer):
        received.extend(await reader.read())
        writer.close()
        done.set()

    listener = await asyncio.start_server(collect, "127.0.0.1", 0)
    port = listener.sockets[0].getsockname()[1]
    async with listener:
        server, _ = _server(port)
        await server.ping()
        await asyncio.wait_for(done.wait(), 5)
    packet, used = decode_packet(bytes(received))
    assert packet.message == InputEvent("PING", 0, 0)
    assert used == len(received)


@pytest.mark.asyncio
async def test_ping_unreachable_raises():
    server, _ = _server(_free_port())
    with pytest.raises(OSError):
        await server.ping("127.0.0.1")