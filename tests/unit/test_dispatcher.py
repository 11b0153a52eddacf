"""Unit tests for server input dispatch semantics."""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Any

import pytest
import yaml

from rein.common.config import RelayConfig
from rein.common.types import MouseButton, Position
from rein.protocol.message import MessageBuilder, ServerIpMessage
from rein.server.dispatcher import InputDispatcher, zoomScroll_compute


def _dispatch_all(dispatcher_args: dict[str, Any], messages: list[Any]) -> list[Any]:
    """Run messages through a fresh dispatcher and return the replies."""

    async def _run() -> list[Any]:
        dispatcher = InputDispatcher(**dispatcher_args)
        try:
            return [await dispatcher.message_dispatch(message) for message in messages]
        finally:
            dispatcher.dispatcher_close()

    return asyncio.run(_run())


class TestZoomScrollCompute:
    """Tests for zoom-to-scroll conversion."""

    def test_positive_delta_scrolls_up(self) -> None:
        """Zooming in scrolls up by half the delta."""
        assert zoomScroll_compute(4.0, 1) == -2.0

    def test_negative_delta_scrolls_down(self) -> None:
        """Zooming out scrolls down."""
        assert zoomScroll_compute(-4.0, 1) == 2.0

    def test_magnitude_is_clamped(self) -> None:
        """Large pinches never exceed the maximum step."""
        assert zoomScroll_compute(100.0, 1) == -5.0
        assert zoomScroll_compute(-100.0, 1) == 5.0

    def test_inversion_flips_sign(self) -> None:
        """Inversion flips the emitted direction."""
        assert zoomScroll_compute(4.0, -1) == 2.0


class TestMoveDispatch:
    """Tests for pointer moves."""

    def test_move_scaled_by_sensitivity(self, fake_backend) -> None:
        """Displacement is multiplied by sensitivity and added to the OS position."""
        config = RelayConfig(mouse_sensitivity=2.0)
        _dispatch_all(
            {"backend": fake_backend, "config": config},
            [MessageBuilder.moveMessage_create(3.0, -1.5)],
        )
        assert fake_backend.inputCalls_get() == [("move_to", 106, 97)]

    def test_move_reads_position_every_time(self, fake_backend) -> None:
        """Each move starts from the current OS position, not a cached one."""

        async def _run() -> None:
            dispatcher = InputDispatcher(backend=fake_backend, config=RelayConfig())
            try:
                await dispatcher.message_dispatch(MessageBuilder.moveMessage_create(1, 1))
                fake_backend.position = Position(500, 500)
                await dispatcher.message_dispatch(MessageBuilder.moveMessage_create(1, 1))
            finally:
                dispatcher.dispatcher_close()

        asyncio.run(_run())
        assert fake_backend.inputCalls_get() == [("move_to", 101, 101), ("move_to", 501, 501)]

    def test_sensitivity_update_applies_to_next_move(self, fake_backend) -> None:
        """A config update is visible to the very next move."""
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [
                MessageBuilder.updateConfigMessage_create(mouse_sensitivity=3.0),
                MessageBuilder.moveMessage_create(2, 0),
            ],
        )
        assert fake_backend.inputCalls_get() == [("move_to", 106, 100)]


class TestClickScrollDispatch:
    """Tests for buttons and scrolling."""

    def test_click_press_and_release_are_separate(self, fake_backend) -> None:
        """Press and release map to separate button transitions."""
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [
                MessageBuilder.clickMessage_create(MouseButton.LEFT, True),
                MessageBuilder.clickMessage_create(MouseButton.LEFT, False),
            ],
        )
        assert fake_backend.inputCalls_get() == [
            ("button_down", MouseButton.LEFT),
            ("button_up", MouseButton.LEFT),
        ]

    def test_press_without_release_stays_held(self, fake_backend) -> None:
        """A lone press emits no release."""
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [MessageBuilder.clickMessage_create(MouseButton.RIGHT, True)],
        )
        assert fake_backend.inputCalls_get() == [("button_down", MouseButton.RIGHT)]

    def test_scroll_horizontal_is_pre_inverted(self, fake_backend) -> None:
        """Vertical keeps its sign, horizontal is negated."""
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [MessageBuilder.scrollMessage_create(dx=3.0, dy=2.0)],
        )
        assert fake_backend.inputCalls_get() == [("scroll_v", 2.0), ("scroll_h", -3.0)]

    def test_scroll_inversion_flips_both_axes(self, fake_backend) -> None:
        """Inversion multiplies both axes by -1."""
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig(mouse_invert=True)},
            [MessageBuilder.scrollMessage_create(dx=3.0, dy=2.0)],
        )
        assert fake_backend.inputCalls_get() == [("scroll_v", -2.0), ("scroll_h", 3.0)]

    def test_zero_axis_is_skipped(self, fake_backend) -> None:
        """An axis with zero delta emits nothing."""
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [MessageBuilder.scrollMessage_create(dy=-1.0)],
        )
        assert fake_backend.inputCalls_get() == [("scroll_v", -1.0)]


class TestZoomDispatch:
    """Tests for modifier-wrapped zoom."""

    def test_zoom_wraps_scroll_in_modifier(self, fake_backend) -> None:
        """Modifier press, clamped scroll, modifier release, in that order."""
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [MessageBuilder.zoomMessage_create(4.0)],
        )
        assert fake_backend.inputCalls_get() == [
            ("key_down", "KEY_CTRL"),
            ("scroll_zoom", -2.0),
            ("key_up", "KEY_CTRL"),
        ]

    def test_zoom_zero_delta_is_noop(self, fake_backend) -> None:
        """A zero zoom emits nothing, not even the modifier."""
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [MessageBuilder.zoomMessage_create(0.0)],
        )
        assert fake_backend.inputCalls_get() == []

    def test_modifier_released_when_scroll_fails(self, fake_backend) -> None:
        """The modifier is released even if the scroll raises."""
        fake_backend.fail_on = {"scroll_zoom"}
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [MessageBuilder.zoomMessage_create(-10.0)],
        )
        assert fake_backend.inputCalls_get() == [
            ("key_down", "KEY_CTRL"),
            ("scroll_zoom", 5.0),
            ("key_up", "KEY_CTRL"),
        ]

    def test_zoom_dropped_without_modifier(self, fake_backend, caplog) -> None:
        """A keyboard without the modifier drops the zoom."""
        del fake_backend.named_keys["ctrl"]
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [MessageBuilder.zoomMessage_create(2.0)],
        )
        assert fake_backend.inputCalls_get() == []
        assert "Zoom modifier" in caplog.text


class TestKeyDispatch:
    """Tests for key, text and combo messages."""

    def test_named_key_is_tapped(self, fake_backend) -> None:
        """Table keys are pressed and released."""
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [MessageBuilder.keyMessage_create("Enter")],
        )
        assert fake_backend.inputCalls_get() == [
            ("key_down", "KEY_ENTER"),
            ("key_up", "KEY_ENTER"),
        ]

    def test_single_character_is_typed(self, fake_backend) -> None:
        """Characters outside the table are typed as literal text."""
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [MessageBuilder.keyMessage_create("Q")],
        )
        assert fake_backend.inputCalls_get() == [("type", "Q")]

    def test_unmapped_key_is_dropped(self, fake_backend, caplog) -> None:
        """Unknown multi-character names emit nothing."""
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [MessageBuilder.keyMessage_create("hyper")],
        )
        assert fake_backend.inputCalls_get() == []
        assert "Unmapped key" in caplog.text

    def test_text_typed_verbatim(self, fake_backend) -> None:
        """Text passes through unchanged."""
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [MessageBuilder.textMessage_create("Hi there!")],
        )
        assert fake_backend.inputCalls_get() == [("type", "Hi there!")]

    def test_combo_presses_then_releases_in_order(self, fake_backend) -> None:
        """All keys go down in order before any key comes up."""
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [MessageBuilder.comboMessage_create(["ctrl", "shift", "t"])],
        )
        assert fake_backend.inputCalls_get() == [
            ("key_down", "KEY_CTRL"),
            ("key_down", "KEY_SHIFT"),
            ("key_down", "CHAR_t"),
            ("key_up", "KEY_CTRL"),
            ("key_up", "KEY_SHIFT"),
            ("key_up", "CHAR_t"),
        ]

    def test_combo_with_unmapped_key_is_dropped(self, fake_backend, caplog) -> None:
        """Nothing is pressed when any combo key is unknown."""
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [MessageBuilder.comboMessage_create(["ctrl", "hyper"])],
        )
        assert fake_backend.inputCalls_get() == []
        assert "dropping combo" in caplog.text

    def test_combo_releases_all_when_press_fails(self, fake_backend) -> None:
        """A failing press still releases every key of the combo."""
        fake_backend.fail_on = {"key_down"}
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [MessageBuilder.comboMessage_create(["alt", "tab"])],
        )
        assert fake_backend.inputCalls_get() == [
            ("key_down", "KEY_ALT"),
            ("key_up", "KEY_ALT"),
            ("key_up", "KEY_TAB"),
        ]


class TestDispatchOrdering:
    """Tests for ordering and non-overlap of OS actions."""

    def test_concurrent_dispatch_keeps_arrival_order(self, fake_backend) -> None:
        """Messages dispatched concurrently still execute in arrival order."""
        messages = [MessageBuilder.textMessage_create(str(index)) for index in range(20)]

        async def _run() -> None:
            dispatcher = InputDispatcher(backend=fake_backend, config=RelayConfig())
            try:
                await asyncio.gather(*(dispatcher.message_dispatch(m) for m in messages))
            finally:
                dispatcher.dispatcher_close()

        asyncio.run(_run())
        assert fake_backend.inputCalls_get() == [("type", str(index)) for index in range(20)]

    def test_actions_never_overlap(self, fake_backend) -> None:
        """A slow action finishes before the next one starts."""
        active = 0
        peak = 0
        guard = threading.Lock()
        original_type = fake_backend.text_type

        def _slow_type(text: str) -> None:
            nonlocal active, peak
            with guard:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            original_type(text)
            with guard:
                active -= 1

        fake_backend.text_type = _slow_type

        async def _run() -> None:
            dispatcher = InputDispatcher(backend=fake_backend, config=RelayConfig())
            try:
                await asyncio.gather(
                    *(dispatcher.message_dispatch(MessageBuilder.textMessage_create("x")) for _ in range(5))
                )
            finally:
                dispatcher.dispatcher_close()

        asyncio.run(_run())
        assert peak == 1

    def test_failure_is_logged_and_next_message_runs(self, fake_backend, caplog) -> None:
        """A failing OS action does not stop later messages."""
        fake_backend.fail_on = {"button_down"}
        replies = _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [
                MessageBuilder.clickMessage_create(MouseButton.LEFT, True),
                MessageBuilder.textMessage_create("ok"),
            ],
        )
        assert replies == [None, None]
        assert fake_backend.inputCalls_get()[-1] == ("type", "ok")
        assert "Failed to dispatch click" in caplog.text


class TestServiceMessages:
    """Tests for get-ip, update-config and stray server-ip."""

    def test_get_ip_replies_with_host_address(self, fake_backend) -> None:
        """get-ip produces a server-ip reply and no OS action."""
        replies = _dispatch_all(
            {
                "backend": fake_backend,
                "config": RelayConfig(),
                "address_lookup": lambda: "192.168.0.7",
            },
            [MessageBuilder.getIpMessage_create()],
        )
        assert replies == [ServerIpMessage(ip="192.168.0.7")]
        assert fake_backend.inputCalls_get() == []

    def test_server_ip_is_ignored(self, fake_backend) -> None:
        """A server-ip sent to the server does nothing."""
        replies = _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig()},
            [MessageBuilder.serverIpMessage_create("1.2.3.4")],
        )
        assert replies == [None]
        assert fake_backend.inputCalls_get() == []

    def test_update_config_mutates_and_saves(self, fake_backend, caplog) -> None:
        """Updates merge into the store and are persisted."""
        config = RelayConfig()
        saved: list[RelayConfig] = []
        _dispatch_all(
            {"backend": fake_backend, "config": config, "config_saved": saved.append},
            [MessageBuilder.updateConfigMessage_create(port=4000, mouse_invert=True)],
        )
        assert config == RelayConfig(port=4000, mouse_invert=True, mouse_sensitivity=1.0)
        assert saved == [config]
        assert "takes effect after a server restart" in caplog.text

    def test_unchanged_update_is_not_saved(self, fake_backend) -> None:
        """Updates that change nothing skip the save."""
        saved: list[RelayConfig] = []
        _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig(), "config_saved": saved.append},
            [MessageBuilder.updateConfigMessage_create(mouse_sensitivity=1.0)],
        )
        assert saved == []

    def test_save_failure_is_logged(self, fake_backend, caplog) -> None:
        """A failing save keeps the in-memory update."""
        config = RelayConfig()

        def _save(_config: RelayConfig) -> None:
            raise OSError("read-only file system")

        _dispatch_all(
            {"backend": fake_backend, "config": config, "config_saved": _save},
            [MessageBuilder.updateConfigMessage_create(mouse_sensitivity=2.0)],
        )
        assert config.mouse_sensitivity == 2.0
        assert "Failed to save config" in caplog.text

    @pytest.mark.parametrize(
        "error", [yaml.YAMLError("bad document"), TypeError("not serializable")]
    )
    def test_save_error_does_not_stop_later_input(self, fake_backend, caplog, error) -> None:
        """A broken config file on disk leaves dispatch running."""

        def _save(_config: RelayConfig) -> None:
            raise error

        replies = _dispatch_all(
            {"backend": fake_backend, "config": RelayConfig(), "config_saved": _save},
            [
                MessageBuilder.updateConfigMessage_create(mouse_sensitivity=2.0),
                MessageBuilder.moveMessage_create(10, 0),
            ],
        )
        assert replies == [None, None]
        assert fake_backend.inputCalls_get() == [("move_to", 120, 100)]
        assert "Failed to save config" in caplog.text

    def test_save_runs_on_input_worker(self, fake_backend) -> None:
        """Config file I/O stays off the event loop thread."""
        threads: list[str] = []
        _dispatch_all(
            {
                "backend": fake_backend,
                "config": RelayConfig(),
                "config_saved": lambda _config: threads.append(threading.current_thread().name),
            },
            [MessageBuilder.updateConfigMessage_create(mouse_invert=True)],
        )
        assert len(threads) == 1
        assert threads[0].startswith("rein-input")


@pytest.mark.parametrize("delta", [0.1, 9.9, 10.0, 1000.0])
def test_zoom_step_never_exceeds_maximum(delta: float) -> None:
    """Zoom step magnitude stays within the configured maximum."""
    assert abs(zoomScroll_compute(delta, 1)) <= 5.0
