import asyncio
import socket

import pytest

from asteria.config import ClientConfig, NetworkConfig
from asteria.network import DEFAULT_SERVER_HOST, NetworkClient
from asteria.protocol import InputEvent, KeyPress, MouseMove, decode_packet, new_packet


def _free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _client(port):
    config = ClientConfig(network=NetworkConfig(host="127.0.0.1", port=port))
    return NetworkClient(config=config, server_host="127.0.0.1")


async def _collector():
    received = bytearray()
    done = asyncio.Event()

    async def handle(reader, writer):
        received.extend(await reader.read())
        writer.close()
        done.set()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    return server, server.sockets[0].getsockname()[1], received, done


def _decode_all(data):
    packets = []
    data = bytes(data)
    while data:
        packet, used = decode_packet(data)
        packets.append(packet)
        data = data[used:]
    return packets


def test_default_server_host():
    client = NetworkClient(config=ClientConfig())
    assert client.server_host == DEFAULT_SERVER_HOST == "192.168.137.1"


@pytest.mark.asyncio
async def test_send_without_connection_is_dropped():
    client = _client(_free_port())
    await client.send_packet(new_packet(KeyPress(30)))
    assert client.connected is False


@pytest.mark.asyncio
async def test_connect_and_send_packet():
    server, port, received, done = await _collector()
    async with server:
        client = _client(port)
        await client.connect()
        assert client.connected is True
        packet = new_packet(MouseMove(5, -7))
        await client.send_packet(packet)
        await client.close()
        await asyncio.wait_for(done.wait(), 5)
    assert _decode_all(received) == [packet]
    assert client.connected is False


@pytest.mark.asyncio
async def test_start_relay_sends_queued_packets_in_order():
    server, port, received, done = await _collector()
    packets = [new_packet(KeyPress(30)), new_packet(KeyPress(48))]
    queue = asyncio.Queue()
    for packet in packets:
        queue.put_nowait(packet)
    queue.put_nowait(None)
    async with server:
        client = _client(port)
        await asyncio.wait_for(client.start_relay(queue), 5)
        await asyncio.wait_for(done.wait(), 5)
    assert _decode_all(received) == packets
    assert client.connected is False


@pytest.mark.asyncio
async def test_start_relay_fails_when_server_unreachable():
    client = _client(_free_port())
    queue = asyncio.Queue()
    queue.put_nowait(None)
    with pytest.raises(OSError):
        await client.start_relay(queue)


@pytest.mark.asyncio
async def test_ping_sends_ping_packet():
    server, port, received, done = await _collector()
    async with server:
        await _client(port).ping()
        await asyncio.wait_for(done.wait(), 5)
    [packet] = _decode_all(received)
    assert packet.message == InputEvent("PING", 0, 0)


@pytest.mark.asyncio
async def test_connect_failure_raises():
    client = _client(_free_port())
    with pytest.raises(OSError):
        await client.connect()
    assert client.connected is False