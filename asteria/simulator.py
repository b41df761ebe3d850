"""Turns protocol events into keyboard and mouse actions on a backend."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from asteria.protocol import (
    InputEvent,
    KeyPress,
    KeyRelease,
    MouseButton,
    MouseMove,
    MouseScroll,
)

__all__ = [
    "Direction",
    "Axis",
    "MouseButtonName",
    "Action",
    "RecordingBackend",
    "InputSimulator",
    "linux_key_to_key",
]

log = logging.getLogger(__name__)


class Direction(Enum):
    PRESS = "press"
    RELEASE = "release"


class Axis(Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


class MouseButtonName(Enum):
    LEFT = "left"
    RIGHT = "right"
    MIDDLE = "middle"


@dataclass(frozen=True)
class Action:
    """One call made on a backend: its kind and its arguments."""

    kind: str
    args: tuple[Any, ...]


class _Backend(Protocol):
    def key(self, key: str, direction: Direction) -> None: ...

    def button(self, button: MouseButtonName, direction: Direction) -> None: ...

    def move_mouse(self, x: int, y: int) -> None: ...

    def scroll(self, amount: int, axis: Axis) -> None: ...


@dataclass
class RecordingBackend:
    """A backend that records every action it is asked to perform."""

    actions: list[Action] = field(default_factory=list)

    def key(self, key: str, direction: Direction) -> None:
        self.actions.append(Action("key", (key, direction)))

    def button(self, button: MouseButtonName, direction: Direction) -> None:
        self.actions.append(Action("button", (button, direction)))

    def move_mouse(self, x: int, y: int) -> None:
        """Move the pointer relative to its current position."""
        self.actions.append(Action("move_mouse", (x, y)))

    def scroll(self, amount: int, axis: Axis) -> None:
        self.actions.append(Action("scroll", (amount, axis)))


_LINUX_KEYS: dict[int, str] = {
    30: "a", 48: "b", 46: "c", 32: "d", 18: "e", 33: "f", 34: "g", 35: "h",
    23: "i", 36: "j", 37: "k", 38: "l", 50: "m", 49: "n", 24: "o", 25: "p",
    16: "q", 19: "r", 31: "s", 20: "t", 22: "u", 47: "v", 17: "w", 45: "x",
    21: "y", 44: "z",
    2: "1", 3: "2", 4: "3", 5: "4", 6: "5", 7: "6", 8: "7", 9: "8", 10: "9", 11: "0",
    57: "Space",
    28: "Return",
    1: "Escape",
    14: "Backspace",
    15: "Tab",
    42: "Shift",
    54: "Shift",
    29: "Control",
    97: "Control",
    56: "Alt",
    100: "Alt",
    103: "UpArrow",
    108: "DownArrow",
    105: "LeftArrow",
    106: "RightArrow",
    59: "F1", 60: "F2", 61: "F3", 62: "F4", 63: "F5", 64: "F6",
    65: "F7", 66: "F8", 67: "F9", 68: "F10", 87: "F11", 88: "F12",
}

# Mouse button codes arrive as buttons, never as keys.
_MOUSE_BUTTON_CODES = frozenset({272, 273, 274})

_TYPED_BUTTONS = {0: MouseButtonName.LEFT, 1: MouseButtonName.RIGHT, 2: MouseButtonName.MIDDLE}


def linux_key_to_key(code: int) -> str | None:
    """Map a Linux key code to a key: a single character or a key name."""
    key = _LINUX_KEYS.get(code)
    if key is None and code not in _MOUSE_BUTTON_CODES:
        log.debug("Unmapped key code: %d", code)
    return key


class InputSimulator:
    """Replays protocol events as keyboard and mouse actions on a backend."""

    def __init__(self, backend: _Backend | None = None) -> None:
        self.backend: _Backend = backend if backend is not None else RecordingBackend()

    def simulate_input(self, event: InputEvent) -> None:
        """Replay a raw event named by its Linux event type."""
        log.debug("Simulating input event: %r", event)
        match event.event_type:
            case "EV_KEY":
                self._key_event(event.code, event.value)
            case "EV_REL":
                self._relative_event(event.code, event.value)
            case "EV_ABS":
                self._absolute_event(event.code, event.value)
            case other:
                log.debug("Unsupported event type: %s", other)

    def simulate_typed_input(self, event: KeyPress | KeyRelease | MouseMove | MouseButton | MouseScroll) -> None:
        """Replay a typed keyboard or mouse event."""
        log.debug("Simulating typed input event: %r", event)
        match event:
            case KeyPress(key_code=code):
                if (key := linux_key_to_key(code)) is not None:
                    self.backend.key(key, Direction.PRESS)
            case KeyRelease(key_code=code):
                if (key := linux_key_to_key(code)) is not None:
                    self.backend.key(key, Direction.RELEASE)
            case MouseMove(x=x, y=y):
                self.backend.move_mouse(x, y)
            case MouseButton(button=button, pressed=pressed):
                name = _TYPED_BUTTONS.get(button)
                if name is not None:
                    self.backend.button(name, Direction.PRESS if pressed else Direction.RELEASE)
            case MouseScroll(dx=dx, dy=dy):
                if dx:
                    self.backend.scroll(dx, Axis.HORIZONTAL)
                if dy:
                    self.backend.scroll(dy, Axis.VERTICAL)

    def _key_event(self, code: int, value: int) -> None:
        if value == 0:
            direction = Direction.RELEASE
        elif value == 1:
            direction = Direction.PRESS
        else:
            return  # repeats and unknown values are ignored
        key = linux_key_to_key(code)
        if key is None:
            log.debug("Unknown key code: %d", code)
            return
        self.backend.key(key, direction)

    def _relative_event(self, code: int, value: int) -> None:
        match code:
            case 0:
                self.backend.move_mouse(value, 0)
            case 1:
                self.backend.move_mouse(0, value)
            case 8:
                self.backend.scroll(value, Axis.VERTICAL)
            case 6:
                self.backend.scroll(value, Axis.HORIZONTAL)
            case _:
                log.debug("Unsupported relative event code: %d", code)

    def _absolute_event(self, code: int, value: int) -> None:
        match code:
            case 0:
                log.debug("Absolute X position: %d", value)
            case 1:
                log.debug("Absolute Y position: %d", value)
            case _:
                log.debug("Unsupported absolute event code: %d", code)