"""Application settings singleton - single source of truth for configuration

This module provides a singleton Settings class that consolidates:
1. Protocol-level constants (must match between server/client)
2. Gesture tuning constants (zoom scaling, reconnect delay, etc.)
3. Runtime configuration loaded from the config file

Usage:
    from rein.common.settings import settings

    # Initialize once at startup with loaded config
    config = ConfigLoader.config_load()
    settings.initialize(config)

    # Use anywhere in the application
    step = min(abs(delta) * settings.ZOOM_SCALE_FACTOR, settings.ZOOM_MAX_STEP)
"""

from typing import Optional

from rein.common.config import Config


class Settings:
    """Singleton settings manager combining the config file and protocol constants

    The singleton pattern ensures all parts of the application use the same
    configuration values and protocol constants.
    """

    _instance: Optional["Settings"] = None

    def __new__(cls) -> "Settings":
        """Ensure only one Settings instance exists"""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """Initialize settings singleton (only runs once)"""
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._config: Optional[Config] = None

    def initialize(self, config: Config) -> None:
        """
        Initialize with loaded configuration

        Args:
            config: Loaded application config
        """
        self._config = config

    # =========================================================================
    # Protocol Constants
    # =========================================================================

    WEBSOCKET_PATH: str = "/ws"
    """HTTP path of the relay WebSocket endpoint"""

    MAX_MESSAGE_SIZE: int = 64 * 1024
    """Largest accepted WebSocket frame in bytes

    Gesture frames are tiny; anything larger is a misbehaving peer.
    """

    # =========================================================================
    # Client Constants
    # =========================================================================

    RECONNECT_DELAY_SEC: float = 3.0
    """Fixed delay between a close event and the next connect attempt

    No exponential growth and no attempt limit: the client retries forever.
    """

    PORT_SWITCH_DELAY_SEC: float = 1.0
    """Pause between pushing a new port and reconnecting to it"""

    GET_IP_TIMEOUT_SEC: float = 5.0
    """How long a one-shot get-ip query waits for the server-ip reply"""

    # =========================================================================
    # Dispatch Constants
    # =========================================================================

    ZOOM_SCALE_FACTOR: float = 0.5
    """Multiplier applied to a zoom gesture magnitude before clamping"""

    ZOOM_MAX_STEP: float = 5.0
    """Largest scroll step a single zoom message may emit"""

    ZOOM_MODIFIER_KEY: str = "ctrl"
    """Semantic key held down while a zoom is emitted as a vertical scroll"""

    SCROLL_UNITS_PER_CLICK: float = 1.0
    """Scroll delta units that make up one discrete wheel click

    Backends that can only emit whole wheel clicks accumulate fractional
    deltas until a full click is reached.
    """

    SCROLL_MAX_CLICKS_PER_MESSAGE: int = 50
    """Most wheel clicks one scroll or zoom call may emit; excess is discarded"""

    # =========================================================================
    # Runtime Configuration Access
    # =========================================================================

    @property
    def config(self) -> Config:
        """
        Get loaded configuration object

        Raises:
            RuntimeError: If initialize() has not been called
        """
        if self._config is None:
            raise RuntimeError("Settings not initialized. Call settings.initialize(config) first.")
        return self._config


# Global singleton instance
settings = Settings()
"""Global settings singleton instance

Import this anywhere in the application:
    from rein.common.settings import settings
"""
