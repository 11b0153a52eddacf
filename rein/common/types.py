"""Common types and data structures for rein"""

from dataclasses import dataclass
from enum import Enum


class ConnectionState(Enum):
    """Client-side logical connection state"""
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class MouseButton(Enum):
    """Pointer buttons addressable over the wire"""
    LEFT = "left"
    RIGHT = "right"
    MIDDLE = "middle"


@dataclass(frozen=True)
class Position:
    """Absolute pointer position in screen pixels"""
    x: int
    y: int

    def offset(self, dx: float, dy: float) -> "Position":
        """Return a new position displaced by (dx, dy), rounded to pixels"""
        return Position(x=int(round(self.x + dx)), y=int(round(self.y + dy)))
