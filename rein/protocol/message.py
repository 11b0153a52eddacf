"""Wire protocol messages for rein communication

Every frame is a flat JSON object tagged by its ``type`` field, for example
``{"type": "move", "dx": 3.5, "dy": -1}``. Decoding never raises: frames that
are not valid JSON objects, carry an unknown type, or miss a required field
are logged and dropped.
"""

import json
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Optional, Tuple, Union

from rein.common.config import ConfigUpdate
from rein.common.types import MouseButton

logger = logging.getLogger(__name__)


class MessageType(Enum):
    """Types of protocol messages"""

    MOVE = "move"
    CLICK = "click"
    SCROLL = "scroll"
    ZOOM = "zoom"
    KEY = "key"
    TEXT = "text"
    COMBO = "combo"
    GET_IP = "get-ip"
    SERVER_IP = "server-ip"
    UPDATE_CONFIG = "update-config"


@dataclass(frozen=True)
class MoveMessage:
    """Relative pointer displacement"""

    dx: float
    dy: float
    msg_type: ClassVar[MessageType] = MessageType.MOVE

    def payload_get(self) -> Dict[str, Any]:
        return {"dx": self.dx, "dy": self.dy}


@dataclass(frozen=True)
class ClickMessage:
    """Button down (press=True) or up (press=False); never a full click"""

    button: MouseButton
    press: bool
    msg_type: ClassVar[MessageType] = MessageType.CLICK

    def payload_get(self) -> Dict[str, Any]:
        return {"button": self.button.value, "press": self.press}


@dataclass(frozen=True)
class ScrollMessage:
    """Relative wheel displacement"""

    dx: float
    dy: float
    msg_type: ClassVar[MessageType] = MessageType.SCROLL

    def payload_get(self) -> Dict[str, Any]:
        return {"dx": self.dx, "dy": self.dy}


@dataclass(frozen=True)
class ZoomMessage:
    """Pinch gesture magnitude; the sign gives the direction"""

    delta: float
    msg_type: ClassVar[MessageType] = MessageType.ZOOM

    def payload_get(self) -> Dict[str, Any]:
        return {"delta": self.delta}


@dataclass(frozen=True)
class KeyMessage:
    """Single semantic key name ("enter") or one literal character"""

    key: str
    msg_type: ClassVar[MessageType] = MessageType.KEY

    def payload_get(self) -> Dict[str, Any]:
        return {"key": self.key}


@dataclass(frozen=True)
class TextMessage:
    """Literal string typed verbatim"""

    text: str
    msg_type: ClassVar[MessageType] = MessageType.TEXT

    def payload_get(self) -> Dict[str, Any]:
        return {"text": self.text}


@dataclass(frozen=True)
class ComboMessage:
    """Chorded key combination; order is press order"""

    keys: Tuple[str, ...]
    msg_type: ClassVar[MessageType] = MessageType.COMBO

    def payload_get(self) -> Dict[str, Any]:
        return {"keys": list(self.keys)}


@dataclass(frozen=True)
class GetIpMessage:
    """Host address discovery query"""

    msg_type: ClassVar[MessageType] = MessageType.GET_IP

    def payload_get(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True)
class ServerIpMessage:
    """Host address discovery response"""

    ip: str
    msg_type: ClassVar[MessageType] = MessageType.SERVER_IP

    def payload_get(self) -> Dict[str, Any]:
        return {"ip": self.ip}


@dataclass(frozen=True)
class UpdateConfigMessage:
    """Client push of new runtime settings"""

    config: ConfigUpdate
    msg_type: ClassVar[MessageType] = MessageType.UPDATE_CONFIG

    def payload_get(self) -> Dict[str, Any]:
        return {"config": self.config.wire_serialize()}


InputMessage = Union[
    MoveMessage,
    ClickMessage,
    ScrollMessage,
    ZoomMessage,
    KeyMessage,
    TextMessage,
    ComboMessage,
    GetIpMessage,
    ServerIpMessage,
    UpdateConfigMessage,
]


class MessageBuilder:
    """Builds protocol messages from gesture data"""

    @staticmethod
    def moveMessage_create(dx: float, dy: float) -> MoveMessage:
        """Create relative pointer move message"""
        return MoveMessage(dx=dx, dy=dy)

    @staticmethod
    def clickMessage_create(button: MouseButton, press: bool) -> ClickMessage:
        """
        Create button press/release message

        Args:
            button: Pointer button
            press: True for button down, False for button up

        Returns:
            Click message
        """
        return ClickMessage(button=button, press=press)

    @staticmethod
    def scrollMessage_create(dx: float = 0.0, dy: float = 0.0) -> ScrollMessage:
        """Create wheel scroll message"""
        return ScrollMessage(dx=dx, dy=dy)

    @staticmethod
    def zoomMessage_create(delta: float) -> ZoomMessage:
        """Create pinch zoom message"""
        return ZoomMessage(delta=delta)

    @staticmethod
    def keyMessage_create(key: str) -> KeyMessage:
        """Create single key message"""
        return KeyMessage(key=key)

    @staticmethod
    def textMessage_create(text: str) -> TextMessage:
        """Create literal text message"""
        return TextMessage(text=text)

    @staticmethod
    def comboMessage_create(keys: list[str]) -> ComboMessage:
        """
        Create chorded key combination message

        Args:
            keys: Key names in press order, e.g. ["ctrl", "c"]

        Returns:
            Combo message
        """
        return ComboMessage(keys=tuple(keys))

    @staticmethod
    def getIpMessage_create() -> GetIpMessage:
        """Create host address discovery query"""
        return GetIpMessage()

    @staticmethod
    def serverIpMessage_create(ip: str) -> ServerIpMessage:
        """Create host address discovery response"""
        return ServerIpMessage(ip=ip)

    @staticmethod
    def updateConfigMessage_create(
        port: Optional[int] = None,
        mouse_invert: Optional[bool] = None,
        mouse_sensitivity: Optional[float] = None,
    ) -> UpdateConfigMessage:
        """
        Create runtime config push

        Args:
            port: New listening port, or None to leave unchanged
            mouse_invert: New inversion flag, or None
            mouse_sensitivity: New sensitivity multiplier, or None

        Returns:
            Update-config message
        """
        return UpdateConfigMessage(
            config=ConfigUpdate(
                port=port,
                mouse_invert=mouse_invert,
                mouse_sensitivity=mouse_sensitivity,
            )
        )


def message_encode(message: InputMessage) -> str:
    """
    Serialize message to a JSON frame

    Args:
        message: Any protocol message

    Returns:
        JSON string with a ``type`` tag and the message fields
    """
    data: Dict[str, Any] = {"type": message.msg_type.value}
    data.update(message.payload_get())
    return json.dumps(data)


def _number_get(payload: Dict[str, Any], key: str, default: Optional[float] = None) -> float:
    """Read a numeric field, rejecting booleans and NaN/Infinity"""
    value = payload.get(key)
    if value is None:
        if default is None:
            raise KeyError(key)
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{key} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ValueError(f"{key} must be finite, got {value!r}")
    return float(value)


def _string_get(payload: Dict[str, Any], key: str) -> str:
    """Read a required non-empty string field"""
    value = payload.get(key)
    if value is None:
        raise KeyError(key)
    if not isinstance(value, str) or not value:
        raise TypeError(f"{key} must be a non-empty string, got {value!r}")
    return value


def _move_parse(payload: Dict[str, Any]) -> MoveMessage:
    return MoveMessage(dx=_number_get(payload, "dx"), dy=_number_get(payload, "dy"))


def _click_parse(payload: Dict[str, Any]) -> ClickMessage:
    button = MouseButton(_string_get(payload, "button"))
    press = payload.get("press", False)
    if not isinstance(press, bool):
        raise TypeError(f"press must be a boolean, got {press!r}")
    return ClickMessage(button=button, press=press)


def _scroll_parse(payload: Dict[str, Any]) -> ScrollMessage:
    return ScrollMessage(
        dx=_number_get(payload, "dx", default=0.0),
        dy=_number_get(payload, "dy", default=0.0),
    )


def _zoom_parse(payload: Dict[str, Any]) -> ZoomMessage:
    return ZoomMessage(delta=_number_get(payload, "delta"))


def _key_parse(payload: Dict[str, Any]) -> KeyMessage:
    return KeyMessage(key=_string_get(payload, "key"))


def _text_parse(payload: Dict[str, Any]) -> TextMessage:
    return TextMessage(text=_string_get(payload, "text"))


def _combo_parse(payload: Dict[str, Any]) -> ComboMessage:
    keys = payload.get("keys")
    if keys is None:
        raise KeyError("keys")
    if not isinstance(keys, list) or not keys:
        raise TypeError(f"keys must be a non-empty list, got {keys!r}")
    for key in keys:
        if not isinstance(key, str) or not key:
            raise TypeError(f"combo keys must be non-empty strings, got {key!r}")
    return ComboMessage(keys=tuple(keys))


def _getIp_parse(payload: Dict[str, Any]) -> GetIpMessage:
    return GetIpMessage()


def _serverIp_parse(payload: Dict[str, Any]) -> ServerIpMessage:
    return ServerIpMessage(ip=_string_get(payload, "ip"))


def _updateConfig_parse(payload: Dict[str, Any]) -> UpdateConfigMessage:
    config = payload.get("config")
    if config is None:
        raise KeyError("config")
    return UpdateConfigMessage(config=ConfigUpdate.wire_parse(config))


_PARSERS: Dict[MessageType, Callable[[Dict[str, Any]], InputMessage]] = {
    MessageType.MOVE: _move_parse,
    MessageType.CLICK: _click_parse,
    MessageType.SCROLL: _scroll_parse,
    MessageType.ZOOM: _zoom_parse,
    MessageType.KEY: _key_parse,
    MessageType.TEXT: _text_parse,
    MessageType.COMBO: _combo_parse,
    MessageType.GET_IP: _getIp_parse,
    MessageType.SERVER_IP: _serverIp_parse,
    MessageType.UPDATE_CONFIG: _updateConfig_parse,
}


def message_decode(data: Union[str, bytes]) -> Optional[InputMessage]:
    """
    Deserialize and validate a JSON frame

    Args:
        data: Raw frame as received from the transport

    Returns:
        Parsed message, or None when the frame is malformed, of an unknown
        type, or missing a required field for its type
    """
    try:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        parsed = json.loads(data)
    except (ValueError, RecursionError) as e:
        # RecursionError: nesting deeper than the parser's stack allows
        logger.warning(f"Dropping undecodable frame: {e}")
        return None

    if not isinstance(parsed, dict):
        logger.warning(f"Dropping frame that is not an object: {type(parsed).__name__}")
        return None

    try:
        msg_type = MessageType(parsed.get("type"))
    except ValueError:
        logger.warning(f"Dropping frame with unknown type: {parsed.get('type')!r}")
        return None

    try:
        return _PARSERS[msg_type](parsed)
    except KeyError as e:
        logger.warning(f"Dropping {msg_type.value} frame missing field {e}")
    except (TypeError, ValueError, OverflowError) as e:
        logger.warning(f"Dropping invalid {msg_type.value} frame: {e}")
    return None
