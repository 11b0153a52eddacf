"""X11 input backend using the XTest extension."""

from __future__ import annotations

import logging
from typing import Optional

from Xlib import X, XK
from Xlib.ext import xtest

from rein.common.settings import settings
from rein.common.types import MouseButton, Position
from rein.input.backend import InputBackend, ScrollAccumulator
from rein.input.keymap import canonicalKey_get
from rein.x11.display import DisplayManager

logger = logging.getLogger(__name__)

_BUTTON_DETAIL: dict[MouseButton, int] = {
    MouseButton.LEFT: 1,
    MouseButton.MIDDLE: 2,
    MouseButton.RIGHT: 3,
}

# Core protocol wheel buttons
SCROLL_UP = 4
SCROLL_DOWN = 5
SCROLL_LEFT = 6
SCROLL_RIGHT = 7

_KEYSYM_BY_CANONICAL: dict[str, str] = {
    "enter": "Return",
    "tab": "Tab",
    "escape": "Escape",
    "backspace": "BackSpace",
    "delete": "Delete",
    "insert": "Insert",
    "space": "space",
    "up": "Up",
    "down": "Down",
    "left": "Left",
    "right": "Right",
    "home": "Home",
    "end": "End",
    "page_up": "Prior",
    "page_down": "Next",
    "ctrl": "Control_L",
    "shift": "Shift_L",
    "alt": "Alt_L",
    "super": "Super_L",
    "caps_lock": "Caps_Lock",
    "print_screen": "Print",
    "pause": "Pause",
    "menu": "Menu",
    "volume_up": "XF86AudioRaiseVolume",
    "volume_down": "XF86AudioLowerVolume",
    "volume_mute": "XF86AudioMute",
    "media_play_pause": "XF86AudioPlay",
    "media_next": "XF86AudioNext",
    "media_previous": "XF86AudioPrev",
}
_KEYSYM_BY_CANONICAL.update({f"f{number}": f"F{number}" for number in range(1, 13)})

_CONTROL_CHAR_KEYSYMS: dict[str, str] = {
    "\n": "Return",
    "\r": "Return",
    "\t": "Tab",
    "\b": "BackSpace",
}


def charKeysym_get(char: str) -> int:
    """
    Map a character onto its X11 keysym.

    Latin-1 characters share their code point with the keysym; everything
    else uses the Unicode keysym range.

    Args:
        char: One-character string.

    Returns:
        X11 keysym.
    """
    if char in _CONTROL_CHAR_KEYSYMS:
        return XK.string_to_keysym(_CONTROL_CHAR_KEYSYMS[char])
    codepoint = ord(char)
    if 0x20 <= codepoint <= 0x7E or 0xA0 <= codepoint <= 0xFF:
        return codepoint
    return 0x01000000 | codepoint


class X11InputBackend(InputBackend):
    """Injects pointer and keyboard events into an X11 session via XTest."""

    def __init__(
        self,
        display_name: Optional[str] = None,
        display_manager: Optional[DisplayManager] = None,
    ) -> None:
        """
        Initialize X11 input backend.

        Args:
            display_name: X11 display name, None for $DISPLAY.
            display_manager: Pre-built display manager (tests).
        """
        self._display_manager: DisplayManager = display_manager or DisplayManager(
            display_name=display_name
        )
        max_clicks = settings.SCROLL_MAX_CLICKS_PER_MESSAGE
        self._vertical = ScrollAccumulator(settings.SCROLL_UNITS_PER_CLICK, max_clicks)
        self._horizontal = ScrollAccumulator(settings.SCROLL_UNITS_PER_CLICK, max_clicks)
        self._zoom = ScrollAccumulator(settings.SCROLL_UNITS_PER_CLICK, max_clicks)

    def connection_establish(self) -> None:
        """Connect to the display and verify XTest."""
        self._display_manager.connection_establish()
        if not self._display_manager.xtestExtension_verify():
            raise RuntimeError("X11 display does not support the XTEST extension")

    def connection_close(self) -> None:
        """Close the display connection."""
        self._display_manager.connection_close()

    def pointerPosition_get(self) -> Position:
        """Return current pointer position from the root window."""
        display = self._display_manager.display_get()
        pointer_data = display.screen().root.query_pointer()
        return Position(x=pointer_data.root_x, y=pointer_data.root_y)

    def pointerPosition_set(self, position: Position) -> None:
        """Warp the pointer with a fake absolute motion event."""
        display = self._display_manager.display_get()
        xtest.fake_input(display, X.MotionNotify, detail=0, x=position.x, y=position.y)
        display.sync()

    def mouseButton_press(self, button: MouseButton) -> None:
        """Press a pointer button."""
        display = self._display_manager.display_get()
        xtest.fake_input(display, X.ButtonPress, detail=_BUTTON_DETAIL[button])
        display.sync()

    def mouseButton_release(self, button: MouseButton) -> None:
        """Release a pointer button."""
        display = self._display_manager.display_get()
        xtest.fake_input(display, X.ButtonRelease, detail=_BUTTON_DETAIL[button])
        display.sync()

    def scroll_vertical(self, amount: float) -> None:
        """Scroll down (positive) or up (negative) by whole wheel clicks."""
        clicks = self._vertical.clicks_take(amount)
        self._wheelClicks_emit(SCROLL_DOWN if clicks > 0 else SCROLL_UP, abs(clicks))

    def scroll_zoom(self, amount: float) -> None:
        """Vertical wheel clicks for a zoom, with a remainder of its own."""
        clicks = self._zoom.clicks_take(amount)
        self._wheelClicks_emit(SCROLL_DOWN if clicks > 0 else SCROLL_UP, abs(clicks))

    def scroll_horizontal(self, amount: float) -> None:
        """Scroll right (positive) or left (negative) by whole wheel clicks."""
        clicks = self._horizontal.clicks_take(amount)
        self._wheelClicks_emit(SCROLL_RIGHT if clicks > 0 else SCROLL_LEFT, abs(clicks))

    def _wheelClicks_emit(self, button: int, count: int) -> None:
        """
        Emit press/release pairs on a wheel button.

        Args:
            button: Core protocol wheel button (4-7).
            count: Number of clicks.
        """
        if count == 0:
            return
        display = self._display_manager.display_get()
        for _ in range(count):
            xtest.fake_input(display, X.ButtonPress, detail=button)
            xtest.fake_input(display, X.ButtonRelease, detail=button)
        display.sync()

    def namedKey_resolve(self, name: str) -> int | None:
        """
        Resolve a semantic key name to an X11 keycode.

        Args:
            name: Semantic key name.

        Returns:
            Keycode, or None when unknown or unbound on this keyboard.
        """
        canonical = canonicalKey_get(name)
        if canonical is None:
            return None
        keysym = XK.string_to_keysym(_KEYSYM_BY_CANONICAL[canonical])
        if not keysym:
            return None
        keycode = self._display_manager.display_get().keysym_to_keycode(keysym)
        return keycode or None

    def charKey_resolve(self, char: str) -> int | None:
        """
        Resolve a literal character to the keycode that carries it.

        Args:
            char: One-character string.

        Returns:
            Keycode, or None when no key in the current keymap produces it.
        """
        keycode = self._display_manager.display_get().keysym_to_keycode(charKeysym_get(char))
        return keycode or None

    def key_press(self, key: int) -> None:
        """Press a keycode."""
        display = self._display_manager.display_get()
        xtest.fake_input(display, X.KeyPress, detail=key)
        display.sync()

    def key_release(self, key: int) -> None:
        """Release a keycode."""
        display = self._display_manager.display_get()
        xtest.fake_input(display, X.KeyRelease, detail=key)
        display.sync()

    def text_type(self, text: str) -> None:
        """
        Type text one character at a time.

        Characters on the shifted level of their key are typed with Shift held.
        Characters absent from the keymap are skipped with a warning.

        Args:
            text: Text to type.
        """
        display = self._display_manager.display_get()
        shift_keycode = display.keysym_to_keycode(XK.string_to_keysym("Shift_L"))
        for char in text:
            entry = next(iter(display.keysym_to_keycodes(charKeysym_get(char))), None)
            if entry is None:
                logger.warning(f"No key produces {char!r}, skipping")
                continue
            keycode, index = entry
            shifted = index % 2 == 1 and bool(shift_keycode)
            if shifted:
                xtest.fake_input(display, X.KeyPress, detail=shift_keycode)
            try:
                xtest.fake_input(display, X.KeyPress, detail=keycode)
                xtest.fake_input(display, X.KeyRelease, detail=keycode)
            finally:
                if shifted:
                    xtest.fake_input(display, X.KeyRelease, detail=shift_keycode)
            display.sync()
