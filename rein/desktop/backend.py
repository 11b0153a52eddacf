"""Cross-platform input backend built on pynput (macOS, Windows, X11)."""

from __future__ import annotations

import logging
from typing import Any

from rein.common.settings import settings
from rein.common.types import MouseButton, Position
from rein.input.backend import InputBackend, ScrollAccumulator
from rein.input.keymap import canonicalKey_get

logger = logging.getLogger(__name__)

# Canonical key name -> pynput.keyboard.Key member name
_PYNPUT_KEY_BY_CANONICAL: dict[str, str] = {
    "enter": "enter",
    "tab": "tab",
    "escape": "esc",
    "backspace": "backspace",
    "delete": "delete",
    "insert": "insert",
    "space": "space",
    "up": "up",
    "down": "down",
    "left": "left",
    "right": "right",
    "home": "home",
    "end": "end",
    "page_up": "page_up",
    "page_down": "page_down",
    "ctrl": "ctrl",
    "shift": "shift",
    "alt": "alt",
    "super": "cmd",
    "caps_lock": "caps_lock",
    "print_screen": "print_screen",
    "pause": "pause",
    "menu": "menu",
    "volume_up": "media_volume_up",
    "volume_down": "media_volume_down",
    "volume_mute": "media_volume_mute",
    "media_play_pause": "media_play_pause",
    "media_next": "media_next",
    "media_previous": "media_previous",
}
_PYNPUT_KEY_BY_CANONICAL.update({f"f{number}": f"f{number}" for number in range(1, 13)})


class DesktopInputBackend(InputBackend):
    """Injects input through pynput controllers."""

    def __init__(
        self,
        mouse_controller: Any = None,
        keyboard_controller: Any = None,
        key_namespace: Any = None,
        button_namespace: Any = None,
    ) -> None:
        """
        Initialize pynput backend.

        pynput is imported on connection_establish() because it needs a live
        desktop session at import time. Tests pass fakes for all four.

        Args:
            mouse_controller: pynput.mouse.Controller instance.
            keyboard_controller: pynput.keyboard.Controller instance.
            key_namespace: pynput.keyboard.Key (special key enum).
            button_namespace: pynput.mouse.Button (pointer button enum).
        """
        self._mouse: Any = mouse_controller
        self._keyboard: Any = keyboard_controller
        self._key_namespace: Any = key_namespace
        self._button_namespace: Any = button_namespace
        max_clicks = settings.SCROLL_MAX_CLICKS_PER_MESSAGE
        self._vertical = ScrollAccumulator(settings.SCROLL_UNITS_PER_CLICK, max_clicks)
        self._horizontal = ScrollAccumulator(settings.SCROLL_UNITS_PER_CLICK, max_clicks)
        self._zoom = ScrollAccumulator(settings.SCROLL_UNITS_PER_CLICK, max_clicks)

    def connection_establish(self) -> None:
        """
        Create pynput controllers.

        Raises:
            RuntimeError: If pynput has no usable platform backend.
        """
        if self._mouse is not None and self._keyboard is not None:
            return
        try:
            from pynput import keyboard, mouse
        except ImportError as e:
            raise RuntimeError(f"pynput backend unavailable: {e}") from e

        self._mouse = mouse.Controller()
        self._keyboard = keyboard.Controller()
        self._key_namespace = keyboard.Key
        self._button_namespace = mouse.Button
        logger.info("pynput input controllers ready")

    def connection_close(self) -> None:
        """pynput controllers hold no resources."""

    def pointerPosition_get(self) -> Position:
        """Return current pointer position."""
        x, y = self._mouse.position
        return Position(x=int(x), y=int(y))

    def pointerPosition_set(self, position: Position) -> None:
        """Warp pointer to an absolute position."""
        self._mouse.position = (position.x, position.y)

    def mouseButton_press(self, button: MouseButton) -> None:
        """Press a pointer button."""
        self._mouse.press(getattr(self._button_namespace, button.value))

    def mouseButton_release(self, button: MouseButton) -> None:
        """Release a pointer button."""
        self._mouse.release(getattr(self._button_namespace, button.value))

    def scroll_vertical(self, amount: float) -> None:
        """Scroll down (positive) or up (negative)."""
        clicks = self._vertical.clicks_take(amount)
        if clicks:
            # pynput treats positive dy as scrolling up
            self._mouse.scroll(0, -clicks)

    def scroll_zoom(self, amount: float) -> None:
        """Vertical scroll for a zoom, with a remainder of its own."""
        clicks = self._zoom.clicks_take(amount)
        if clicks:
            self._mouse.scroll(0, -clicks)

    def scroll_horizontal(self, amount: float) -> None:
        """Scroll right (positive) or left (negative)."""
        clicks = self._horizontal.clicks_take(amount)
        if clicks:
            self._mouse.scroll(clicks, 0)

    def namedKey_resolve(self, name: str) -> Any:
        """
        Resolve a semantic key name to a pynput Key member.

        Members missing on the current platform (e.g. insert on macOS)
        resolve to None.
        """
        canonical = canonicalKey_get(name)
        if canonical is None:
            return None
        return getattr(self._key_namespace, _PYNPUT_KEY_BY_CANONICAL[canonical], None)

    def charKey_resolve(self, char: str) -> str | None:
        """pynput presses single characters directly."""
        return char if len(char) == 1 else None

    def key_press(self, key: Any) -> None:
        """Press a resolved key."""
        self._keyboard.press(key)

    def key_release(self, key: Any) -> None:
        """Release a resolved key."""
        self._keyboard.release(key)

    def text_type(self, text: str) -> None:
        """Type text verbatim."""
        self._keyboard.type(text)
