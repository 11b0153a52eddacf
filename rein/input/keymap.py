"""Semantic key-name table shared by all injection backends.

Clients send loose, lowercase names ("enter", "esc", "pgdn", "cmd"). They are
folded onto a small set of canonical names here; each backend maps the
canonical names onto its own platform key codes.
"""

from __future__ import annotations

CANONICAL_KEYS: tuple[str, ...] = (
    "enter",
    "tab",
    "escape",
    "backspace",
    "delete",
    "insert",
    "space",
    "up",
    "down",
    "left",
    "right",
    "home",
    "end",
    "page_up",
    "page_down",
    "ctrl",
    "shift",
    "alt",
    "super",
    "caps_lock",
    "print_screen",
    "pause",
    "menu",
    "volume_up",
    "volume_down",
    "volume_mute",
    "media_play_pause",
    "media_next",
    "media_previous",
) + tuple(f"f{number}" for number in range(1, 13))

_ALIASES: dict[str, str] = {
    "return": "enter",
    "esc": "escape",
    "back": "backspace",
    "del": "delete",
    "ins": "insert",
    "arrowup": "up",
    "arrowdown": "down",
    "arrowleft": "left",
    "arrowright": "right",
    "pageup": "page_up",
    "pgup": "page_up",
    "pagedown": "page_down",
    "pgdn": "page_down",
    "control": "ctrl",
    "option": "alt",
    "meta": "super",
    "win": "super",
    "windows": "super",
    "cmd": "super",
    "command": "super",
    "capslock": "caps_lock",
    "printscreen": "print_screen",
    "prtsc": "print_screen",
    "audiovolumeup": "volume_up",
    "audiovolumedown": "volume_down",
    "audiovolumemute": "volume_mute",
    "mute": "volume_mute",
    "playpause": "media_play_pause",
    "nexttrack": "media_next",
    "prevtrack": "media_previous",
}

KEY_TABLE: dict[str, str] = {name: name for name in CANONICAL_KEYS}
KEY_TABLE.update(_ALIASES)


def canonicalKey_get(name: str) -> str | None:
    """
    Fold a semantic key name onto its canonical name.

    Args:
        name: Key name as sent by the client (case-insensitive).

    Returns:
        Canonical key name, or None when the name is not in the table.
    """
    return KEY_TABLE.get(name.lower())
