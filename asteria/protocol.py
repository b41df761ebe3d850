"""Wire protocol: input events, packets and their compact binary encoding.

Integers use a variable-length little-endian encoding. Values below 251 take
one byte. Larger values take a marker byte (251, 252 or 253) followed by 2, 4
or 8 bytes. Signed integers are zigzag-mapped first. Strings are a varint
length followed by UTF-8 bytes. Enum variants are a varint index.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass

__all__ = [
    "DecodeError",
    "InputEvent",
    "KeyPress",
    "KeyRelease",
    "MouseMove",
    "MouseButton",
    "MouseScroll",
    "Packet",
    "new_packet",
    "input_event_packet",
    "decode_packet",
]


class DecodeError(ValueError):
    """Raised when bytes do not hold a complete, valid packet."""


@dataclass(frozen=True)
class InputEvent:
    """A raw event named by its Linux event type, with a code and a value."""

    event_type: str
    code: int
    value: int


@dataclass(frozen=True)
class KeyPress:
    key_code: int


@dataclass(frozen=True)
class KeyRelease:
    key_code: int


@dataclass(frozen=True)
class MouseMove:
    x: int
    y: int


@dataclass(frozen=True)
class MouseButton:
    button: int
    pressed: bool


@dataclass(frozen=True)
class MouseScroll:
    dx: int
    dy: int


InputEventType = KeyPress | KeyRelease | MouseMove | MouseButton | MouseScroll
Message = InputEvent | InputEventType

_TYPED_VARIANTS: tuple[type, ...] = (KeyPress, KeyRelease, MouseMove, MouseButton, MouseScroll)
_VARINT_WIDTHS = {251: 2, 252: 4, 253: 8, 254: 16}


def _varint(value: int, bits: int) -> bytes:
    if not 0 <= value < 1 << bits:
        raise ValueError(f"{value} does not fit in an unsigned {bits}-bit integer")
    if value < 251:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfb" + value.to_bytes(2, "little")
    if value <= 0xFFFF_FFFF:
        return b"\xfc" + value.to_bytes(4, "little")
    return b"\xfd" + value.to_bytes(8, "little")


def _signed(value: int, bits: int) -> bytes:
    low, high = -(1 << (bits - 1)), 1 << (bits - 1)
    if not low <= value < high:
        raise ValueError(f"{value} does not fit in a signed {bits}-bit integer")
    return _varint((value << 1) ^ (value >> (bits - 1)), bits)


def _string(text: str) -> bytes:
    raw = text.encode("utf-8")
    return _varint(len(raw), 64) + raw


def _u8(value: int) -> bytes:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{value} does not fit in an unsigned 8-bit integer")
    return bytes([value])


def _encode_message(message: Message) -> bytes:
    if isinstance(message, InputEvent):
        return (
            _varint(0, 32)
            + _string(message.event_type)
            + _varint(message.code, 16)
            + _signed(message.value, 32)
        )
    match message:
        case KeyPress(key_code=code) | KeyRelease(key_code=code):
            body = _varint(code, 16)
        case MouseMove(x=x, y=y):
            body = _signed(x, 32) + _signed(y, 32)
        case MouseButton(button=button, pressed=pressed):
            body = _u8(button) + (b"\x01" if pressed else b"\x00")
        case MouseScroll(dx=dx, dy=dy):
            body = _signed(dx, 32) + _signed(dy, 32)
        case _:
            raise TypeError(f"not a protocol message: {message!r}")
    return _varint(1, 32) + _varint(_TYPED_VARIANTS.index(type(message)), 32) + body


@dataclass(frozen=True)
class Packet:
    """A message with a unique id and a timestamp in whole seconds."""

    id: str
    message: Message
    timestamp: int

    def encode(self) -> bytes:
        """Serialise the packet to its binary wire form."""
        return _string(self.id) + _encode_message(self.message) + _varint(self.timestamp, 64)


def new_packet(message: Message) -> Packet:
    """Wrap a message in a packet with a fresh UUID and the current time."""
    return Packet(id=str(uuid.uuid4()), message=message, timestamp=int(time.time()))


def input_event_packet(event_type: str, code: int, value: int) -> Packet:
    """Build a packet carrying a raw input event."""
    return new_packet(InputEvent(event_type=event_type, code=code, value=value))


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = memoryview(bytes(data))
        self.pos = 0

    def take(self, count: int) -> bytes:
        end = self.pos + count
        if end > len(self._data):
            raise DecodeError("unexpected end of data")
        chunk = bytes(self._data[self.pos:end])
        self.pos = end
        return chunk

    def varint(self, bits: int) -> int:
        marker = self.take(1)[0]
        if marker < 251:
            return marker
        width = _VARINT_WIDTHS.get(marker)
        if width is None or width * 8 > bits:
            raise DecodeError(f"invalid integer marker {marker} for a {bits}-bit value")
        return int.from_bytes(self.take(width), "little")

    def signed(self, bits: int) -> int:
        raw = self.varint(bits)
        return (raw >> 1) ^ -(raw & 1)

    def string(self) -> str:
        length = self.varint(64)
        try:
            return self.take(length).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError("string is not valid UTF-8") from exc

    def u8(self) -> int:
        return self.take(1)[0]

    def boolean(self) -> bool:
        value = self.u8()
        if value not in (0, 1):
            raise DecodeError(f"invalid boolean byte {value}")
        return value == 1


def _decode_message(reader: _Reader) -> Message:
    variant = reader.varint(32)
    if variant == 0:
        return InputEvent(reader.string(), reader.varint(16), reader.signed(32))
    if variant != 1:
        raise DecodeError(f"unknown message variant {variant}")
    typed = reader.varint(32)
    match typed:
        case 0:
            return KeyPress(reader.varint(16))
        case 1:
            return KeyRelease(reader.varint(16))
        case 2:
            return MouseMove(reader.signed(32), reader.signed(32))
        case 3:
            return MouseButton(reader.u8(), reader.boolean())
        case 4:
            return MouseScroll(reader.signed(32), reader.signed(32))
    raise DecodeError(f"unknown input event variant {typed}")


def decode_packet(data: bytes) -> tuple[Packet, int]:
    """Decode one packet from the start of ``data``.

    Returns the packet and the number of bytes it occupied. Raises
    DecodeError if the data is incomplete or malformed.
    """
    reader = _Reader(data)
    packet_id = reader.string()
    message = _decode_message(reader)
    timestamp = reader.varint(64)
    return Packet(id=packet_id, message=message, timestamp=timestamp), reader.pos