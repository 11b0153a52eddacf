"""Backend factory functions."""

from __future__ import annotations

from typing import Optional

from rein.input.backend import InputBackend

SUPPORTED_BACKENDS: tuple[str, ...] = ("x11", "desktop")


def inputBackend_create(backend_name: str, display_name: Optional[str] = None) -> InputBackend:
    """
    Create the server-side OS input backend.

    Backend modules are imported lazily so a host only needs the libraries
    of the backend it actually runs.

    Args:
        backend_name: Backend identifier ("x11" or "desktop")
        display_name: X11 display name (x11 only)

    Returns:
        Unconnected input backend

    Raises:
        ValueError: If the backend name is not supported
    """
    backend = backend_name.lower()

    if backend == "x11":
        from rein.x11.backend import X11InputBackend

        return X11InputBackend(display_name=display_name)

    if backend == "desktop":
        from rein.desktop.backend import DesktopInputBackend

        return DesktopInputBackend()

    raise ValueError(
        f"Unsupported backend '{backend_name}'. Supported: {', '.join(SUPPORTED_BACKENDS)}."
    )
