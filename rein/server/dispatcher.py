"""
Server input dispatch.

This module translates decoded protocol messages into OS input actions. All
actions run one at a time, in arrival order, on a single dedicated worker
thread, so a key chord can never interleave with a pointer move.
"""

from __future__ import annotations

import asyncio
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

import yaml

from rein.common.config import RelayConfig
from rein.common.settings import settings
from rein.input.backend import InputBackend, KeyCode
from rein.protocol.message import (
    ClickMessage,
    ComboMessage,
    InputMessage,
    KeyMessage,
    MessageBuilder,
    MessageType,
    MoveMessage,
    ScrollMessage,
    TextMessage,
    UpdateConfigMessage,
    ZoomMessage,
)
from rein.server.host_address import primaryAddress_get

logger = logging.getLogger(__name__)

__all__ = [
    "InputDispatcher",
    "zoomScroll_compute",
]


def zoomScroll_compute(delta: float, invert_multiplier: int) -> float:
    """
    Compute the vertical scroll emitted for a zoom gesture.

    Args:
        delta:
            Signed zoom magnitude from the client.
        invert_multiplier:
            -1 when inversion is enabled, else 1.

    Returns:
        Scroll amount (positive = down) of magnitude
        `min(|delta| * ZOOM_SCALE_FACTOR, ZOOM_MAX_STEP)`.
    """
    step: float = min(abs(delta) * settings.ZOOM_SCALE_FACTOR, settings.ZOOM_MAX_STEP)
    return -math.copysign(step, delta) * invert_multiplier


class InputDispatcher:
    """Single writer of the OS pointer/keyboard device."""

    def __init__(
        self,
        backend: InputBackend,
        config: RelayConfig,
        executor: Optional[ThreadPoolExecutor] = None,
        config_saved: Optional[Callable[[RelayConfig], None]] = None,
        address_lookup: Callable[[], str] = primaryAddress_get,
    ) -> None:
        """
        Initialize dispatcher.

        Args:
            backend:
                Connected OS input backend.
            config:
                Runtime config store; mutated only by update-config messages.
            executor:
                Single-worker executor running OS calls. Created when omitted.
            config_saved:
                Optional callback persisting the config after an update.
            address_lookup:
                Callable returning the host address for get-ip replies.
        """
        self._backend: InputBackend = backend
        self.config: RelayConfig = config
        self._executor: ThreadPoolExecutor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="rein-input"
        )
        self._config_saved = config_saved
        self._address_lookup = address_lookup
        self._lock: asyncio.Lock = asyncio.Lock()
        self._actions: dict[MessageType, Callable[..., None]] = {
            MessageType.MOVE: self.move_apply,
            MessageType.CLICK: self.click_apply,
            MessageType.SCROLL: self.scroll_apply,
            MessageType.ZOOM: self.zoom_apply,
            MessageType.KEY: self.key_apply,
            MessageType.TEXT: self.text_apply,
            MessageType.COMBO: self.combo_apply,
        }

    async def message_dispatch(self, message: InputMessage) -> InputMessage | None:
        """
        Dispatch one decoded message.

        OS action failures are logged and never propagated.

        Args:
            message:
                Decoded protocol message.

        Returns:
            Reply for the sending client, or `None`.
        """
        if message.msg_type == MessageType.GET_IP:
            address: str = self._address_lookup()
            logger.info("Reporting host address %s", address)
            return MessageBuilder.serverIpMessage_create(address)
        loop = asyncio.get_running_loop()
        if message.msg_type == MessageType.UPDATE_CONFIG:
            if self.configUpdate_handle(message) and self._config_saved is not None:
                async with self._lock:
                    await loop.run_in_executor(self._executor, self.config_save)
            return None
        if message.msg_type == MessageType.SERVER_IP:
            logger.debug("Ignoring server-ip sent to the server")
            return None

        action = self._actions[message.msg_type]
        async with self._lock:
            try:
                await loop.run_in_executor(self._executor, action, message)
            except Exception as exc:
                logger.error("Failed to dispatch %s: %s", message.msg_type.value, exc)
        return None

    def move_apply(self, message: MoveMessage) -> None:
        """Displace the pointer relative to its current OS position."""
        sensitivity: float = self.config.mouse_sensitivity
        position = self._backend.pointerPosition_get()
        self._backend.pointerPosition_set(
            position.offset(message.dx * sensitivity, message.dy * sensitivity)
        )

    def click_apply(self, message: ClickMessage) -> None:
        """Press or release a button; a press without release keeps it held."""
        if message.press:
            self._backend.mouseButton_press(message.button)
        else:
            self._backend.mouseButton_release(message.button)
        logger.debug("Button %s %s", message.button.value, "down" if message.press else "up")

    def scroll_apply(self, message: ScrollMessage) -> None:
        """Scroll both axes; the horizontal axis is pre-inverted."""
        invert_multiplier: int = self.config.invertMultiplier_get()
        if message.dy != 0:
            self._backend.scroll_vertical(message.dy * invert_multiplier)
        if message.dx != 0:
            self._backend.scroll_horizontal(message.dx * -1 * invert_multiplier)

    def zoom_apply(self, message: ZoomMessage) -> None:
        """Emit a clamped vertical scroll with the zoom modifier held."""
        if message.delta == 0:
            return
        amount: float = zoomScroll_compute(message.delta, self.config.invertMultiplier_get())
        modifier: KeyCode | None = self._backend.namedKey_resolve(settings.ZOOM_MODIFIER_KEY)
        if modifier is None:
            logger.warning("Zoom modifier %r is not available, dropping zoom", settings.ZOOM_MODIFIER_KEY)
            return
        try:
            self._backend.key_press(modifier)
            self._backend.scroll_zoom(amount)
        finally:
            self.keyRelease_safe(modifier)

    def key_apply(self, message: KeyMessage) -> None:
        """Tap a table key, type a literal character, or drop the name."""
        key: str = message.key
        logger.debug("Processing key: %s", key)
        keycode: KeyCode | None = self._backend.namedKey_resolve(key.lower())
        if keycode is not None:
            try:
                self._backend.key_press(keycode)
            finally:
                self.keyRelease_safe(keycode)
            return
        if len(key) == 1:
            self._backend.text_type(key)
            return
        logger.warning("Unmapped key: %s", key)

    def text_apply(self, message: TextMessage) -> None:
        """Type text verbatim."""
        self._backend.text_type(message.text)

    def combo_apply(self, message: ComboMessage) -> None:
        """
        Press every key in order, then release every key in the same order.

        The whole combo is dropped when any key cannot be resolved. Releases
        run even when a later press fails so no key is left held.
        """
        keycodes: list[KeyCode] = []
        for name in message.keys:
            keycode: KeyCode | None = self.comboKey_resolve(name)
            if keycode is None:
                logger.warning("Unmapped key %r in combo %s, dropping combo", name, list(message.keys))
                return
            keycodes.append(keycode)

        try:
            for keycode in keycodes:
                self._backend.key_press(keycode)
        finally:
            for keycode in keycodes:
                self.keyRelease_safe(keycode)
        logger.debug("Combo %s", "+".join(message.keys))

    def comboKey_resolve(self, name: str) -> KeyCode | None:
        """
        Resolve one combo member by key table, then as a literal character.

        Args:
            name:
                Key name from the combo.

        Returns:
            Backend key handle or `None`.
        """
        keycode: KeyCode | None = self._backend.namedKey_resolve(name.lower())
        if keycode is None and len(name) == 1:
            keycode = self._backend.charKey_resolve(name)
        return keycode

    def keyRelease_safe(self, keycode: KeyCode) -> None:
        """
        Release a key, logging instead of raising on failure.

        Args:
            keycode:
                Backend key handle.
        """
        try:
            self._backend.key_release(keycode)
        except Exception as exc:
            logger.error("Failed to release key %r: %s", keycode, exc)

    def configUpdate_handle(self, message: UpdateConfigMessage) -> bool:
        """
        Merge a pushed config into the runtime config store.

        A port change does not rebind the listening socket; clients are
        expected to reconnect at the new address after a server restart.

        Returns:
            True when any field changed.
        """
        changed: list[str] = self.config.update_apply(message.config)
        if not changed:
            logger.info("Config update changed nothing")
            return False
        logger.info(
            "Config updated: %s",
            ", ".join(f"{name}={getattr(self.config, name)}" for name in changed),
        )
        if "port" in changed:
            logger.warning(
                "Listening port set to %s; takes effect after a server restart",
                self.config.port,
            )
        return True

    def config_save(self) -> None:
        """Persist the config store; runs on the input worker, off the event loop."""
        try:
            self._config_saved(self.config)
        except (OSError, ValueError, TypeError, yaml.YAMLError) as exc:
            logger.error("Failed to save config: %s", exc)

    def dispatcher_close(self) -> None:
        """Wait for the in-flight action to finish and stop the worker."""
        self._executor.shutdown(wait=True)
