"""Pytest configuration and shared fixtures for rein tests

This module provides common fixtures and test utilities used across
unit and integration tests.
"""

import logging
from typing import Any, Generator

import pytest

from rein.common.settings import settings
from rein.common.types import MouseButton, Position


class FakeInputBackend:
    """In-memory input backend recording every OS call in order"""

    def __init__(self, position: Position = Position(100, 100)) -> None:
        self.position: Position = position
        self.calls: list[tuple[Any, ...]] = []
        self.named_keys: dict[str, str] = {
            "ctrl": "KEY_CTRL",
            "shift": "KEY_SHIFT",
            "alt": "KEY_ALT",
            "enter": "KEY_ENTER",
            "tab": "KEY_TAB",
        }
        self.fail_on: set[str] = set()

    def _record(self, *call: Any) -> None:
        self.calls.append(call)
        if call[0] in self.fail_on:
            raise RuntimeError(f"{call[0]} failed")

    def connection_establish(self) -> None:
        self._record("connect")

    def connection_close(self) -> None:
        self._record("close")

    def pointerPosition_get(self) -> Position:
        return self.position

    def pointerPosition_set(self, position: Position) -> None:
        self.position = position
        self._record("move_to", position.x, position.y)

    def mouseButton_press(self, button: MouseButton) -> None:
        self._record("button_down", button)

    def mouseButton_release(self, button: MouseButton) -> None:
        self._record("button_up", button)

    def scroll_vertical(self, amount: float) -> None:
        self._record("scroll_v", amount)

    def scroll_horizontal(self, amount: float) -> None:
        self._record("scroll_h", amount)

    def scroll_zoom(self, amount: float) -> None:
        self._record("scroll_zoom", amount)

    def namedKey_resolve(self, name: str) -> Any:
        return self.named_keys.get(name.lower())

    def charKey_resolve(self, char: str) -> Any:
        return f"CHAR_{char}" if len(char) == 1 else None

    def key_press(self, key: Any) -> None:
        self._record("key_down", key)

    def key_release(self, key: Any) -> None:
        self._record("key_up", key)

    def text_type(self, text: str) -> None:
        self._record("type", text)

    def inputCalls_get(self) -> list[tuple[Any, ...]]:
        """Return recorded calls excluding connection bookkeeping"""
        return [call for call in self.calls if call[0] not in ("connect", "close")]


@pytest.fixture
def fake_backend() -> FakeInputBackend:
    """Recording input backend"""
    return FakeInputBackend()


@pytest.fixture
def reset_settings() -> Generator[None, None, None]:
    """Reset settings singleton between tests

    This fixture ensures each test gets a fresh Settings instance.
    """
    settings._config = None
    yield
    settings._config = None


@pytest.fixture(autouse=True)
def setup_logging(caplog):
    """Setup logging for tests"""
    caplog.set_level(logging.DEBUG)


# Markers for test organization
def pytest_configure(config) -> None:
    """Register custom pytest markers used by this test suite."""
    config.addinivalue_line("markers", "requires_x11: mark test as requiring X11 display")
