"""Backend protocol for OS-level pointer and keyboard injection."""

from __future__ import annotations

from typing import Hashable, Protocol

from rein.common.types import MouseButton, Position

KeyCode = Hashable
"""Opaque backend-specific key handle returned by the key resolvers."""


class InputBackend(Protocol):
    """Abstract OS input injection interface."""

    def connection_establish(self) -> None:
        """
        Open the backend (display connection, device handles).

        Raises:
            RuntimeError: If injection is not available on this host.
        """

    def connection_close(self) -> None:
        """Release backend resources."""

    def pointerPosition_get(self) -> Position:
        """
        Get current absolute pointer position.

        Returns:
            Pointer position in screen pixels.
        """

    def pointerPosition_set(self, position: Position) -> None:
        """
        Warp pointer to an absolute position.

        The OS clamps the position to the screen bounds.

        Args:
            position: Target position.
        """

    def mouseButton_press(self, button: MouseButton) -> None:
        """Press and hold a pointer button."""

    def mouseButton_release(self, button: MouseButton) -> None:
        """Release a pointer button."""

    def scroll_vertical(self, amount: float) -> None:
        """
        Scroll the wheel vertically.

        Args:
            amount: Scroll units; positive scrolls down, negative up.
        """

    def scroll_horizontal(self, amount: float) -> None:
        """
        Scroll the wheel horizontally.

        Args:
            amount: Scroll units; positive scrolls right, negative left.
        """

    def scroll_zoom(self, amount: float) -> None:
        """
        Scroll the wheel vertically on behalf of a zoom gesture.

        Partial clicks are carried only between zoom calls, never into
        scroll_vertical, since the zoom modifier is not held then.

        Args:
            amount: Scroll units; positive scrolls down, negative up.
        """

    def namedKey_resolve(self, name: str) -> KeyCode | None:
        """
        Resolve a lowercase semantic key name ("enter", "ctrl", "f5").

        Args:
            name: Semantic key name.

        Returns:
            Backend key handle, or None when the name is not in the key table.
        """

    def charKey_resolve(self, char: str) -> KeyCode | None:
        """
        Resolve a single literal character to a key handle.

        Args:
            char: One-character string.

        Returns:
            Backend key handle, or None when no key produces the character.
        """

    def key_press(self, key: KeyCode) -> None:
        """Press and hold a resolved key."""

    def key_release(self, key: KeyCode) -> None:
        """Release a resolved key."""

    def text_type(self, text: str) -> None:
        """
        Type a literal string verbatim.

        Args:
            text: Text to type.
        """


class ScrollAccumulator:
    """
    Converts fractional scroll deltas into whole wheel clicks.

    Touch gestures produce many small deltas; backends that can only emit
    discrete clicks carry the remainder over to the next call so slow
    scrolling still moves.
    """

    def __init__(self, units_per_click: float = 1.0, max_clicks: int | None = None) -> None:
        """
        Initialize accumulator.

        Args:
            units_per_click: Delta units making up one wheel click.
            max_clicks: Cap on clicks returned per call, None for no cap.
        """
        self.units_per_click: float = units_per_click
        self.max_clicks: int | None = max_clicks
        self._remainder: float = 0.0

    def clicks_take(self, amount: float) -> int:
        """
        Add a delta and take the whole clicks it completes.

        Args:
            amount: Signed scroll delta.

        Returns:
            Signed number of whole clicks to emit now.
        """
        if self._remainder and (self._remainder > 0) != (amount > 0):
            # direction reversal discards the stale remainder
            self._remainder = 0.0
        self._remainder += amount / self.units_per_click
        if self.max_clicks is not None and abs(self._remainder) > self.max_clicks:
            clicks = self.max_clicks if self._remainder > 0 else -self.max_clicks
            self._remainder = 0.0
            return clicks
        clicks = int(self._remainder)
        self._remainder -= clicks
        return clicks
