"""Captures Linux input events and relays them to the server as packets.

Events are read straight from the evdev devices under ``/dev/input``. A
toggle key switches relaying on and off. While relaying is on, keyboard and
pointer events become protocol packets handed to a network client.
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import fcntl
import logging
import os
import struct
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol

from asteria.keys import KeyCode, key_name
from asteria.protocol import (
    KeyPress,
    KeyRelease,
    MouseButton,
    MouseMove,
    MouseScroll,
    Packet,
    new_packet,
)

__all__ = [
    "RelayState",
    "RawEvent",
    "InputCapture",
    "parse_raw_events",
    "EVENT_SIZE",
    "EV_KEY",
    "EV_REL",
    "EV_ABS",
    "REL_X",
    "REL_Y",
    "REL_HWHEEL",
    "REL_WHEEL",
    "BTN_LEFT",
    "BTN_RIGHT",
    "BTN_MIDDLE",
]

log = logging.getLogger(__name__)

EV_KEY = 0x01
EV_REL = 0x02
EV_ABS = 0x03

REL_X = 0x00
REL_Y = 0x01
REL_HWHEEL = 0x06
REL_WHEEL = 0x08
ABS_X = 0x00
ABS_Y = 0x01

BTN_LEFT = 0x110
BTN_RIGHT = 0x111
BTN_MIDDLE = 0x112
_POINTER_BUTTONS = range(0x110, 0x118)
_BUTTON_CODES = {BTN_LEFT: 1, BTN_RIGHT: 2, BTN_MIDDLE: 3}

# One wheel detent, expressed in degrees of rotation.
_WHEEL_STEP = 15

DEFAULT_INPUT_DIR = "/dev/input"
_QUEUE_SIZE = 1000
_READ_EVENTS = 64

# struct input_event: struct timeval, __u16 type, __u16 code, __s32 value
_EVENT_STRUCT = struct.Struct("@llHHi")
EVENT_SIZE = _EVENT_STRUCT.size

_SPECIAL_NAME_PARTS = ("virtual", "uinput", "asteria")


def _ioc_read(number: int, length: int) -> int:
    return (2 << 30) | (length << 16) | (ord("E") << 8) | number


def _eviocgbit(event_type: int, length: int) -> int:
    return _ioc_read(0x20 + event_type, length)


_NAME_LENGTH = 256
_EVIOCGNAME = _ioc_read(0x06, _NAME_LENGTH)
_KEY_BITS_LENGTH = 96
_AXIS_BITS_LENGTH = 8


@dataclass
class RelayState:
    """Whether events are relayed and local input is suppressed."""

    relay_enabled: bool = False
    suppress_local_input: bool = False


@dataclass(frozen=True)
class RawEvent:
    """One evdev event as the kernel reports it."""

    event_type: int
    code: int
    value: int
    seconds: int = 0
    microseconds: int = 0


def parse_raw_events(data: bytes) -> list[RawEvent]:
    """Split bytes read from an evdev device into events."""
    if len(data) % EVENT_SIZE:
        raise ValueError(
            f"{len(data)} bytes is not a whole number of {EVENT_SIZE}-byte input events"
        )
    return [
        RawEvent(event_type, code, value, seconds, microseconds)
        for seconds, microseconds, event_type, code, value in _EVENT_STRUCT.iter_unpack(data)
    ]


def _is_special_device_name(name: str) -> bool:
    lowered = name.lower()
    return any(part in lowered for part in _SPECIAL_NAME_PARTS)


def _has_input_capabilities(
    key_bits: bytes | None, rel_bits: bytes | None, abs_bits: bytes | None
) -> bool:
    axes = (1 << REL_X) | (1 << REL_Y)
    has_keyboard = bool(key_bits) and any(key_bits)
    has_mouse_rel = bool(rel_bits) and (rel_bits[0] & axes) != 0
    has_abs_pos = bool(abs_bits) and (abs_bits[0] & ((1 << ABS_X) | (1 << ABS_Y))) != 0
    return has_keyboard or has_mouse_rel or has_abs_pos


def _query(fd: int, request: int, size: int) -> bytes | None:
    buffer = bytearray(size)
    try:
        length = fcntl.ioctl(fd, request, buffer, True)
    except OSError:
        return None
    if length < 0:
        return None
    return bytes(buffer[:length])


class _Relay(Protocol):
    async def start_relay(self, queue: asyncio.Queue[Packet | None]) -> None: ...


class InputCapture:
    """Reads input events, toggles relaying and turns events into packets."""

    def __init__(
        self,
        toggle_key: int = KeyCode.KEY_LEFTCTRL,
        *,
        input_dir: str | Path = DEFAULT_INPUT_DIR,
        event_source: AsyncIterable[RawEvent] | None = None,
    ) -> None:
        self.toggle_key = toggle_key
        self.input_dir = Path(input_dir)
        self.event_source = event_source
        self._state = RelayState()
        self._grabbed: dict[str, BinaryIO] = {}
        log.info("Toggle key set to: 0x%02x (%s)", toggle_key, key_name(toggle_key))

    @property
    def relay_state(self) -> RelayState:
        """A copy of the current relay state."""
        return dataclasses.replace(self._state)

    def __enter__(self) -> InputCapture:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Release every tracked device."""
        if self._grabbed:
            log.info("Releasing %d grabbed devices", len(self._grabbed))
        self._release_input_devices()

    def toggle_relay(self) -> None:
        """Switch relaying on or off, grabbing or releasing devices."""
        if self._state.relay_enabled:
            self._state = RelayState(relay_enabled=False, suppress_local_input=False)
            self._release_input_devices()
            log.info("Relay disabled - local input restored")
        else:
            self._grab_input_devices()
            self._state = RelayState(relay_enabled=True, suppress_local_input=True)
            log.info("Relay enabled - local input suppressed, relaying to the server")

    def handle_event(self, event: RawEvent) -> Packet | None:
        """Process one event: toggle on the toggle key, else convert if relaying."""
        if event.event_type == EV_KEY and event.code == self.toggle_key and event.value == 1:
            try:
                self.toggle_relay()
            except OSError as exc:
                log.error("Failed to toggle relay: %s", exc)
            return None
        if not self._state.relay_enabled:
            return None
        return self.convert_event(event)

    def convert_event(self, event: RawEvent) -> Packet | None:
        """Turn a keyboard or pointer event into a packet, or None."""
        match event.event_type:
            case 0x01:
                if event.code in _POINTER_BUTTONS:
                    return self._convert_button(event)
                return self._convert_key(event)
            case 0x02:
                return self._convert_relative(event)
            case _:
                log.debug("Ignoring unsupported event: %r", event)
                return None

    def _convert_key(self, event: RawEvent) -> Packet | None:
        log.debug("Keyboard event - Key: %d, Value: %d", event.code, event.value)
        match event.value:
            case 1:
                return new_packet(KeyPress(key_code=event.code))
            case 0:
                return new_packet(KeyRelease(key_code=event.code))
            case _:
                return None

    def _convert_button(self, event: RawEvent) -> Packet | None:
        log.debug("Pointer button - Button: %d, Value: %d", event.code, event.value)
        button = _BUTTON_CODES.get(event.code)
        if button is None:
            log.warning("Unsupported mouse button: %d", event.code)
            return None
        if event.value not in (0, 1):
            return None
        return new_packet(MouseButton(button=button, pressed=event.value == 1))

    def _convert_relative(self, event: RawEvent) -> Packet | None:
        value = event.value
        if value == 0:
            return None
        match event.code:
            case 0x00:
                log.debug("Pointer motion - dx: %d", value)
                return new_packet(MouseMove(x=value, y=0))
            case 0x01:
                log.debug("Pointer motion - dy: %d", value)
                return new_packet(MouseMove(x=0, y=value))
            case 0x08:
                log.debug("Pointer scroll - vertical: %d", value)
                return new_packet(MouseScroll(dx=0, dy=value * _WHEEL_STEP))
            case 0x06:
                log.debug("Pointer scroll - horizontal: %d", value)
                return new_packet(MouseScroll(dx=value * _WHEEL_STEP, dy=0))
            case _:
                log.debug("Ignoring unsupported relative event: %r", event)
                return None

    async def start_and_relay(self, network_client: _Relay) -> None:
        """Capture events and relay packets through ``network_client``."""
        log.info("Starting input capture and relay...")
        queue: asyncio.Queue[Packet | None] = asyncio.Queue(maxsize=_QUEUE_SIZE)
        relay = asyncio.create_task(network_client.start_relay(queue))
        try:
            if self.event_source is None:
                async with contextlib.aclosing(self._device_events()) as events:
                    await self._pump(events, queue, relay)
            else:
                await self._pump(self.event_source, queue, relay)
        except BaseException:
            relay.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await relay
            raise
        if not relay.done():
            await queue.put(None)
        try:
            await relay
        except Exception as exc:
            log.error("Packet relay failed: %s", exc)

    async def _pump(
        self,
        events: AsyncIterable[RawEvent],
        queue: asyncio.Queue[Packet | None],
        relay: asyncio.Task[None],
    ) -> None:
        log.info("Press the toggle key (0x%02x) to enable/disable relay", self.toggle_key)
        async for event in events:
            packet = self.handle_event(event)
            if packet is None:
                continue
            if relay.done():
                raise ConnectionError("Packet sender channel closed")
            await queue.put(packet)

    async def _device_events(self) -> AsyncIterator[RawEvent]:
        descriptors: list[int] = []
        for path in self.input_device_paths():
            try:
                descriptors.append(os.open(path, os.O_RDONLY | os.O_NONBLOCK))
            except OSError as exc:
                log.warning("Cannot read device %s: %s", path, exc)
        if not descriptors:
            raise OSError(f"no readable input devices in {self.input_dir}")

        loop = asyncio.get_running_loop()
        pending: asyncio.Queue[RawEvent] = asyncio.Queue()
        active = set(descriptors)

        def on_readable(fd: int) -> None:
            try:
                data = os.read(fd, EVENT_SIZE * _READ_EVENTS)
            except BlockingIOError:
                return
            except OSError as exc:
                log.warning("Input device stopped: %s", exc)
                loop.remove_reader(fd)
                active.discard(fd)
                return
            whole = len(data) - len(data) % EVENT_SIZE
            for raw in parse_raw_events(data[:whole]):
                pending.put_nowait(raw)

        try:
            for fd in descriptors:
                loop.add_reader(fd, on_readable, fd)
            while True:
                yield await pending.get()
        finally:
            for fd in descriptors:
                if fd in active:
                    loop.remove_reader(fd)
                os.close(fd)

    def _grab_input_devices(self) -> None:
        log.info("Grabbing input devices for suppression...")
        for path in self.input_device_paths():
            try:
                self._grab_device(path)
            except OSError as exc:
                log.warning("Failed to grab device %s: %s", path, exc)
        log.info("Successfully grabbed %d input devices", len(self._grabbed))

    def _grab_device(self, device_path: str) -> None:
        # Devices are only tracked, not exclusively grabbed, so that a fault
        # in the relay can never lock the user out of their own machine.
        handle = open(device_path, "r+b", buffering=0)  # noqa: SIM115
        previous = self._grabbed.pop(device_path, None)
        if previous is not None:
            previous.close()
        self._grabbed[device_path] = handle
        log.debug("Tracking device (not grabbing): %s", device_path)

    def _release_input_devices(self) -> None:
        log.info("Releasing grabbed input devices...")
        while self._grabbed:
            path, handle = self._grabbed.popitem()
            handle.close()
            log.debug("Released device: %s", path)
        log.info("All input devices released")

    def input_device_paths(self) -> list[str]:
        """Sorted paths of event devices that should be grabbed."""
        paths = sorted(
            str(entry)
            for entry in self.input_dir.iterdir()
            if entry.name.startswith("event") and self.should_grab_device(str(entry))
        )
        log.debug("Found %d grabbable input devices", len(paths))
        return paths

    def should_grab_device(self, device_path: str) -> bool:
        """True if the device has keyboard keys, relative or absolute axes."""
        if not self.is_safe_to_grab(device_path):
            return False
        try:
            fd = os.open(device_path, os.O_RDONLY | os.O_NONBLOCK)
        except OSError as exc:
            log.debug("Cannot open device %s for capability check: %s", device_path, exc)
            return False
        try:
            key_bits = _query(fd, _eviocgbit(EV_KEY, _KEY_BITS_LENGTH), _KEY_BITS_LENGTH)
            rel_bits = _query(fd, _eviocgbit(EV_REL, _AXIS_BITS_LENGTH), _AXIS_BITS_LENGTH)
            abs_bits = _query(fd, _eviocgbit(EV_ABS, _AXIS_BITS_LENGTH), _AXIS_BITS_LENGTH)
        finally:
            os.close(fd)
        grab = _has_input_capabilities(key_bits, rel_bits, abs_bits)
        if grab:
            log.debug("Device %s has input capabilities", device_path)
        return grab

    def is_safe_to_grab(self, device_path: str) -> bool:
        """False for virtual, uinput and asteria devices, judged by name."""
        try:
            fd = os.open(device_path, os.O_RDONLY | os.O_NONBLOCK)
        except OSError:
            return True
        try:
            raw = _query(fd, _EVIOCGNAME, _NAME_LENGTH)
        finally:
            os.close(fd)
        if raw is None:
            return True
        try:
            name = raw.decode("utf-8").rstrip("\0")
        except UnicodeDecodeError:
            return True
        log.debug("Device %s name: %s", device_path, name)
        if _is_special_device_name(name):
            log.debug("Skipping virtual/special device: %s", name)
            return False
        return True

    def shutdown(self) -> None:
        """Turn relaying off and release devices if it was on."""
        log.info("Shutting down input capture system...")
        if self._state.relay_enabled:
            self._state = RelayState(relay_enabled=False, suppress_local_input=False)
            self._release_input_devices()
        log.info("Input capture system shutdown complete")