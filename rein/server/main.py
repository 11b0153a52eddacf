"""rein server main entry point"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Callable, Optional

from rein import __version__
from rein.common.config import Config, ConfigLoader, RelayConfig
from rein.common.logging_config import logging_setup
from rein.common.settings import settings
from rein.input.backend import InputBackend
from rein.input.factory import inputBackend_create
from rein.server.dispatcher import InputDispatcher
from rein.server.network import RelayServer

logger = logging.getLogger(__name__)


def configWithSettings_load(args: argparse.Namespace) -> Config:
    """
    Load configuration, apply CLI overrides and initialize settings

    Args:
        args: Parsed CLI args

    Returns:
        Loaded config
    """
    config_path: Optional[Path] = Path(args.config) if args.config else None
    try:
        config = ConfigLoader.configWithOverrides_load(
            file_path=config_path,
            host=args.host,
            port=args.port,
            backend=args.backend,
            display=args.display,
        )
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Create a config file or specify path with --config", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)
    settings.initialize(config)
    return config


def loggingWithConfig_setup(args: argparse.Namespace, config: Config) -> None:
    """
    Setup logging from config and CLI override

    Args:
        args: Parsed CLI args
        config: Loaded config
    """
    log_level: str = getattr(args, "log_level", None) or config.logging.level
    logging_setup(log_level, config.logging.format, config.logging.file)


def configSaver_create(config: Config) -> Optional[Callable[[RelayConfig], None]]:
    """
    Build the callback persisting runtime config updates

    Args:
        config: Loaded config

    Returns:
        Save callback, or None when no config file was loaded
    """
    source_path = config.source_path
    if source_path is None:
        return None

    def relayConfig_persist(relay: RelayConfig) -> None:
        ConfigLoader.relayConfig_save(source_path, relay)
        logger.info(f"Saved config to {source_path}")

    return relayConfig_persist


def server_run(args: argparse.Namespace) -> None:
    """
    Run rein server until interrupted

    Args:
        args: Parsed command line arguments
    """
    config = configWithSettings_load(args)
    loggingWithConfig_setup(args, config)

    logger.info(f"rein server v{__version__}")
    logger.info(f"Config file: {config.source_path or 'none (defaults)'}")
    logger.info(f"Backend: {config.server.backend}")
    logger.info(f"Display: {config.server.display or '$DISPLAY'}")
    logger.info(
        f"Mouse sensitivity: {config.relay.mouse_sensitivity}, "
        f"invert: {config.relay.mouse_invert}"
    )

    try:
        backend: InputBackend = inputBackend_create(config.server.backend, config.server.display)
        backend.connection_establish()
    except Exception as e:
        logger.error(f"Failed to initialize input backend: {e}")
        sys.exit(1)

    dispatcher = InputDispatcher(
        backend=backend,
        config=config.relay,
        config_saved=configSaver_create(config),
    )
    server = RelayServer(
        host=config.server.host,
        port=config.relay.port,
        dispatcher=dispatcher,
    )

    try:
        logger.info("Server running. Press Ctrl+C to stop.")
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        logger.info("Shutting down server")
    finally:
        dispatcher.dispatcher_close()
        backend.connection_close()
        logger.info("Server shutdown complete")
