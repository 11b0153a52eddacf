"""Configuration file loading and the runtime config store"""

import json
import math
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
DEFAULT_BACKEND = "x11"
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Flat wire/file names of the runtime settings
PORT_KEY = "frontendPort"
INVERT_KEY = "mouseInvert"
SENSITIVITY_KEY = "mouseSensitivity"


def port_validate(value: Any) -> int:
    """
    Validate a TCP port value

    Args:
        value: Candidate port

    Returns:
        The port as int

    Raises:
        ValueError: If value is not an int in 1..65535
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{PORT_KEY} must be an integer, got {value!r}")
    if not 1 <= value <= 65535:
        raise ValueError(f"{PORT_KEY} must be in 1..65535, got {value}")
    return value


def sensitivity_validate(value: Any) -> float:
    """
    Validate a mouse sensitivity multiplier

    Args:
        value: Candidate multiplier

    Returns:
        The multiplier as float

    Raises:
        ValueError: If value is not a positive number
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{SENSITIVITY_KEY} must be a number, got {value!r}")
    if not (math.isfinite(value) and value > 0):
        raise ValueError(f"{SENSITIVITY_KEY} must be a finite number > 0, got {value}")
    return float(value)


def invert_validate(value: Any) -> bool:
    """
    Validate a scroll inversion flag

    Raises:
        ValueError: If value is not a bool
    """
    if not isinstance(value, bool):
        raise ValueError(f"{INVERT_KEY} must be a boolean, got {value!r}")
    return value


@dataclass(frozen=True)
class ConfigUpdate:
    """Partial runtime config pushed by a client; None means unchanged"""
    port: Optional[int] = None
    mouse_invert: Optional[bool] = None
    mouse_sensitivity: Optional[float] = None

    @staticmethod
    def wire_parse(data: Dict[str, Any]) -> "ConfigUpdate":
        """
        Parse a wire/file style config mapping

        Unknown keys are ignored.

        Args:
            data: Mapping with optional frontendPort, mouseInvert, mouseSensitivity

        Returns:
            Parsed ConfigUpdate

        Raises:
            ValueError: If a known key holds an invalid value
        """
        if not isinstance(data, dict):
            raise ValueError(f"config must be an object, got {type(data).__name__}")
        port = data.get(PORT_KEY)
        invert = data.get(INVERT_KEY)
        sensitivity = data.get(SENSITIVITY_KEY)
        return ConfigUpdate(
            port=port_validate(port) if port is not None else None,
            mouse_invert=invert_validate(invert) if invert is not None else None,
            mouse_sensitivity=(
                sensitivity_validate(sensitivity) if sensitivity is not None else None
            ),
        )

    def wire_serialize(self) -> Dict[str, Any]:
        """Return only the fields that are set, under their wire names"""
        data: Dict[str, Any] = {}
        if self.port is not None:
            data[PORT_KEY] = self.port
        if self.mouse_invert is not None:
            data[INVERT_KEY] = self.mouse_invert
        if self.mouse_sensitivity is not None:
            data[SENSITIVITY_KEY] = self.mouse_sensitivity
        return data


@dataclass
class RelayConfig:
    """Runtime parameters read by the dispatcher and updated in place"""
    port: int = DEFAULT_PORT
    mouse_invert: bool = False
    mouse_sensitivity: float = 1.0

    def invertMultiplier_get(self) -> int:
        """-1 when scroll/zoom inversion is enabled, else 1"""
        return -1 if self.mouse_invert else 1

    def update_apply(self, update: ConfigUpdate) -> List[str]:
        """
        Merge the set fields of an update into this config

        Args:
            update: Partial config

        Returns:
            Names of the fields whose value changed
        """
        changed: List[str] = []
        for name in ("port", "mouse_invert", "mouse_sensitivity"):
            value = getattr(update, name)
            if value is None or getattr(self, name) == value:
                continue
            setattr(self, name, value)
            changed.append(name)
        return changed


@dataclass
class ServerConfig:
    """Server configuration settings"""
    host: str = DEFAULT_HOST
    backend: str = DEFAULT_BACKEND
    display: Optional[str] = None


@dataclass
class ClientConfig:
    """Client configuration settings"""
    server_address: str = f"localhost:{DEFAULT_PORT}"
    reconnect_delay: float = 3.0


@dataclass
class LoggingConfig:
    """Logging configuration settings"""
    level: str = "INFO"
    file: Optional[str] = None
    format: str = DEFAULT_LOG_FORMAT


@dataclass
class Config:
    """Complete application configuration"""
    relay: RelayConfig = field(default_factory=RelayConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    source_path: Optional[Path] = None


class ConfigLoader:
    """Loads, parses and saves configuration files (JSON or YAML)"""

    DEFAULT_CONFIG_PATHS = [
        "server-config.json",
        "config.yml",
        "~/.config/rein/config.yml",
        "/etc/rein/config.yml",
    ]

    @staticmethod
    def configFile_find() -> Optional[Path]:
        """
        Find configuration file in standard locations

        Returns:
            Path to config file, or None if not found
        """
        for config_path in ConfigLoader.DEFAULT_CONFIG_PATHS:
            path = Path(config_path).expanduser().resolve()
            if path.exists() and path.is_file():
                return path
        return None

    @staticmethod
    def yaml_load(file_path: Path) -> Dict[str, Any]:
        """
        Load a YAML (or JSON) configuration file

        Args:
            file_path: Path to the file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If file does not exist
            yaml.YAMLError: If file is not valid YAML/JSON
            ValueError: If the document is not a mapping
        """
        with open(file_path, "r") as f:
            data = yaml.safe_load(f)

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {file_path} must contain a dictionary")

        return data

    @staticmethod
    def config_parse(data: Dict[str, Any]) -> Config:
        """
        Parse configuration dictionary into Config object

        Every key is optional; absent keys take their defaults.

        Args:
            data: Raw configuration dictionary

        Returns:
            Parsed Config object

        Raises:
            ValueError: If a present value is invalid
        """
        update = ConfigUpdate.wire_parse(data)
        relay = RelayConfig()
        relay.update_apply(update)

        backend = data.get("backend", DEFAULT_BACKEND)
        if not isinstance(backend, str):
            raise ValueError(f"backend must be a string, got {backend!r}")
        server = ServerConfig(
            host=str(data.get("host", DEFAULT_HOST)),
            backend=backend,
            display=data.get("display"),
        )

        delay = data.get("reconnectDelaySeconds", 3.0)
        if isinstance(delay, bool) or not isinstance(delay, (int, float)) or delay < 0:
            raise ValueError(f"reconnectDelaySeconds must be a number >= 0, got {delay!r}")
        client = ClientConfig(
            server_address=str(data.get("serverAddress", f"localhost:{relay.port}")),
            reconnect_delay=float(delay),
        )

        logging_data = data.get("logging") or {}
        if not isinstance(logging_data, dict):
            raise ValueError("logging must be a dictionary")
        logging = LoggingConfig(
            level=logging_data.get("level", "INFO"),
            file=logging_data.get("file"),
            format=logging_data.get("format", DEFAULT_LOG_FORMAT),
        )

        return Config(relay=relay, server=server, client=client, logging=logging)

    @staticmethod
    def config_load(file_path: Optional[Path] = None) -> Config:
        """
        Load configuration from file

        Args:
            file_path: Optional path to config file. If None, searches standard
                locations and falls back to defaults when nothing is found.

        Returns:
            Parsed Config object

        Raises:
            FileNotFoundError: If an explicit file_path does not exist
            ValueError: If config file is invalid
        """
        if file_path is None:
            file_path = ConfigLoader.configFile_find()
            if file_path is None:
                return Config()

        data = ConfigLoader.yaml_load(file_path)
        config = ConfigLoader.config_parse(data)
        config.source_path = Path(file_path)
        return config

    @staticmethod
    def configWithOverrides_load(
        file_path: Optional[Path] = None,
        **overrides: Any
    ) -> Config:
        """
        Load configuration and apply command-line overrides

        Args:
            file_path: Optional path to config file
            **overrides: Key-value pairs to override config values

        Returns:
            Config object with overrides applied

        Example:
            config = ConfigLoader.configWithOverrides_load(
                host="127.0.0.1",
                port=9000
            )
        """
        config = ConfigLoader.config_load(file_path)

        if overrides.get("host") is not None:
            config.server.host = overrides["host"]
        if overrides.get("port") is not None:
            config.relay.port = port_validate(overrides["port"])
        if overrides.get("backend") is not None:
            config.server.backend = overrides["backend"]
        if overrides.get("display") is not None:
            config.server.display = overrides["display"]
        if overrides.get("server_address") is not None:
            config.client.server_address = overrides["server_address"]

        return config

    @staticmethod
    def relayConfig_save(file_path: Path, relay: RelayConfig) -> None:
        """
        Write runtime settings back to a config file

        Other keys already present in the file are preserved. Files ending in
        .json are written as JSON, anything else as YAML.

        Args:
            file_path: Destination file
            relay: Runtime settings to persist
        """
        path = Path(file_path)
        data: Dict[str, Any] = ConfigLoader.yaml_load(path) if path.exists() else {}
        data[PORT_KEY] = relay.port
        data[INVERT_KEY] = relay.mouse_invert
        data[SENSITIVITY_KEY] = relay.mouse_sensitivity

        # Write beside the target and swap in, so a failed dump leaves the old file intact
        fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                if path.suffix == ".json":
                    json.dump(data, f, indent=4)
                    f.write("\n")
                else:
                    yaml.safe_dump(data, f, default_flow_style=False)
            os.replace(temp_name, path)
        except BaseException:
            os.unlink(temp_name)
            raise
