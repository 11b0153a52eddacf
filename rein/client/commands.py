"""
Console command parsing for the rein client.

Each stdin line maps to one or more protocol messages, for example::

    move 10 -4          -> move
    click left          -> click down, click up
    click right down    -> click down (button stays held)
    combo ctrl+shift+t  -> combo
    port 8080           -> update-config
"""

from __future__ import annotations

import math
import shlex

from rein.common.config import port_validate, sensitivity_validate
from rein.common.types import MouseButton
from rein.protocol.message import InputMessage, MessageBuilder

__all__ = [
    "COMMAND_HELP",
    "command_parse",
]

COMMAND_HELP = """Commands:
  move DX DY                    relative pointer move
  click left|right|middle [down|up]
  scroll DX DY                  wheel scroll (positive DY = down)
  zoom DELTA                    pinch zoom (positive = zoom in)
  key NAME                      tap a named key or character
  text WORDS...                 type literal text
  combo K1+K2[+K3...]           press keys together
  sensitivity VALUE             set pointer sensitivity
  invert on|off                 invert scroll direction
  port N                        move the server to port N and reconnect
  get-ip                        ask the server for its address
  help                          show this help
  quit                          exit"""

_ON_OFF: dict[str, bool] = {"on": True, "true": True, "yes": True, "off": False, "false": False, "no": False}


def number_parse(token: str) -> float:
    """
    Parse a numeric argument.

    Raises:
        ValueError: If the token is not a finite number.
    """
    try:
        value: float = float(token)
    except ValueError:
        raise ValueError(f"Not a number: {token}")
    if not math.isfinite(value):
        raise ValueError(f"Not a finite number: {token}")
    return value


def arity_check(command: str, args: list[str], count: int) -> None:
    """Raise ValueError unless exactly `count` arguments were given."""
    if len(args) != count:
        raise ValueError(f"{command} takes {count} argument(s), got {len(args)}")


def command_parse(line: str) -> list[InputMessage]:
    """
    Translate one console line into protocol messages.

    Args:
        line:
            Raw console line.

    Returns:
        Messages to send, in order. Empty for blank lines.

    Raises:
        ValueError: If the command is unknown or its arguments are invalid.
    """
    stripped: str = line.strip()
    if not stripped:
        return []
    command, _, rest = stripped.partition(" ")
    command = command.lower()
    rest = rest.strip()

    # text keeps its argument verbatim, including repeated spaces
    if command == "text":
        if not rest:
            raise ValueError("text needs something to type")
        return [MessageBuilder.textMessage_create(rest)]

    args: list[str] = shlex.split(rest)

    if command == "move":
        arity_check(command, args, 2)
        return [MessageBuilder.moveMessage_create(number_parse(args[0]), number_parse(args[1]))]

    if command == "click":
        if not 1 <= len(args) <= 2:
            raise ValueError("usage: click left|right|middle [down|up]")
        try:
            button = MouseButton(args[0].lower())
        except ValueError:
            raise ValueError(f"Unknown button: {args[0]}")
        if len(args) == 1:
            return [
                MessageBuilder.clickMessage_create(button, True),
                MessageBuilder.clickMessage_create(button, False),
            ]
        phase: str = args[1].lower()
        if phase not in ("down", "up"):
            raise ValueError(f"Click phase must be down or up, got {args[1]}")
        return [MessageBuilder.clickMessage_create(button, phase == "down")]

    if command == "scroll":
        arity_check(command, args, 2)
        return [MessageBuilder.scrollMessage_create(number_parse(args[0]), number_parse(args[1]))]

    if command == "zoom":
        arity_check(command, args, 1)
        return [MessageBuilder.zoomMessage_create(number_parse(args[0]))]

    if command == "key":
        arity_check(command, args, 1)
        return [MessageBuilder.keyMessage_create(args[0])]

    if command == "combo":
        arity_check(command, args, 1)
        keys: list[str] = args[0].split("+")
        if any(not key for key in keys):
            raise ValueError(f"Empty key in combo: {args[0]}")
        return [MessageBuilder.comboMessage_create(keys)]

    if command == "sensitivity":
        arity_check(command, args, 1)
        value: float = sensitivity_validate(number_parse(args[0]))
        return [MessageBuilder.updateConfigMessage_create(mouse_sensitivity=value)]

    if command == "invert":
        arity_check(command, args, 1)
        flag: bool | None = _ON_OFF.get(args[0].lower())
        if flag is None:
            raise ValueError(f"invert takes on or off, got {args[0]}")
        return [MessageBuilder.updateConfigMessage_create(mouse_invert=flag)]

    if command == "port":
        arity_check(command, args, 1)
        if not args[0].isdigit():
            raise ValueError(f"Invalid port number: {args[0]}")
        return [MessageBuilder.updateConfigMessage_create(port=port_validate(int(args[0])))]

    if command == "get-ip":
        arity_check(command, args, 0)
        return [MessageBuilder.getIpMessage_create()]

    raise ValueError(f"Unknown command: {command} (type 'help')")
