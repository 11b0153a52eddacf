"""Backend abstraction layer for OS input injection."""

from rein.input.backend import InputBackend, KeyCode, ScrollAccumulator
from rein.input.factory import SUPPORTED_BACKENDS, inputBackend_create

__all__ = [
    "InputBackend",
    "KeyCode",
    "ScrollAccumulator",
    "SUPPORTED_BACKENDS",
    "inputBackend_create",
]
