"""X11 display connection and management"""

import logging
from typing import Optional

from Xlib import display as xdisplay
from Xlib.display import Display

logger = logging.getLogger(__name__)


class DisplayManager:
    """Manages the X11 display connection used for input injection"""

    def __init__(self, display_name: Optional[str] = None) -> None:
        """
        Initialize display manager

        Args:
            display_name: X11 display name (e.g., ':0'), None for $DISPLAY
        """
        self._display: Optional[Display] = None
        self._display_name: Optional[str] = display_name

    def connection_establish(self) -> None:
        """Establish connection to X11 display"""
        self._display = xdisplay.Display(self._display_name)
        logger.info(f"Connected to X11 display {self._display.get_display_name()}")

    def connection_close(self) -> None:
        """Close X11 display connection"""
        if self._display is not None:
            self._display.close()
            self._display = None

    def display_get(self) -> Display:
        """
        Get X11 display object

        Returns:
            X11 Display object

        Raises:
            RuntimeError: If not connected to display
        """
        if self._display is None:
            raise RuntimeError("Not connected to X11 display")
        return self._display

    def xtestExtension_verify(self) -> bool:
        """
        Verify XTest extension is available

        Returns:
            True if XTest is available, False otherwise
        """
        display = self.display_get()
        return display.query_extension("XTEST") is not None

    def __enter__(self) -> "DisplayManager":
        """Context manager entry"""
        self.connection_establish()
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Context manager exit"""
        self.connection_close()
