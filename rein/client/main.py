"""rein console client main entry point"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

from websockets.asyncio.client import connect
from websockets.exceptions import WebSocketException

from rein import __version__
from rein.client.commands import COMMAND_HELP, command_parse
from rein.client.connection import ConnectionManager, serverUrl_build
from rein.common.config import Config, ConfigLoader
from rein.common.logging_config import logging_setup
from rein.common.settings import settings
from rein.common.types import ConnectionState
from rein.protocol.message import (
    InputMessage,
    MessageBuilder,
    MessageType,
    UpdateConfigMessage,
    message_decode,
    message_encode,
)

logger = logging.getLogger(__name__)

QUIT_COMMANDS = ("quit", "exit")


def serverAddress_parse(server: str) -> tuple[str, int]:
    """
    Parse server address into host and port

    Args:
        server: Server address string (host:port)

    Returns:
        Tuple of (host, port)

    Raises:
        ValueError: If address format is invalid
    """
    if ":" not in server:
        raise ValueError("Server address must be in format host:port")

    host, port_str = server.rsplit(":", 1)
    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"Invalid port number: {port_str}")
    if not host:
        raise ValueError("Server address is missing a host")

    return host, port


def configWithSettings_load(args: argparse.Namespace) -> Config:
    """
    Load client config and initialize settings

    Args:
        args: Parsed CLI args

    Returns:
        Loaded config
    """
    config_path: Optional[Path] = Path(args.config) if args.config else None
    try:
        config = ConfigLoader.configWithOverrides_load(
            file_path=config_path, server_address=args.server
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


def serverMessage_handle(message: InputMessage) -> None:
    """
    Handle message received from server

    Args:
        message: Decoded server message
    """
    if message.msg_type == MessageType.SERVER_IP:
        print(f"Server address: {message.ip}")
    else:
        logger.warning(f"Unexpected message type from server: {message.msg_type.value}")


def connectionState_report(state: ConnectionState) -> None:
    """Print connection state transitions for the console user"""
    print(f"[{state.value}]")


async def serverAddress_query(url: str, timeout: float = settings.GET_IP_TIMEOUT_SEC) -> str:
    """
    Ask a server for its LAN address over a short-lived connection

    Args:
        url: Relay URL
        timeout: Seconds to wait for the reply

    Returns:
        Reported address

    Raises:
        TimeoutError: If no server-ip reply arrives in time
    """
    async with asyncio.timeout(timeout):
        async with connect(url, max_size=settings.MAX_MESSAGE_SIZE) as websocket:
            await websocket.send(message_encode(MessageBuilder.getIpMessage_create()))
            async for raw in websocket:
                reply = message_decode(raw)
                if reply is not None and reply.msg_type == MessageType.SERVER_IP:
                    return reply.ip
    raise TimeoutError(f"Server at {url} closed without reporting its address")


async def lines_read(stream: TextIO):
    """Yield console lines without blocking the event loop"""
    loop = asyncio.get_running_loop()
    while True:
        line: str = await loop.run_in_executor(None, stream.readline)
        if not line:
            return
        yield line


async def console_run(
    host: str,
    port: int,
    reconnect_delay: float,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Relay console commands to the server until EOF or quit

    Args:
        host: Server host
        port: Server port
        reconnect_delay: Seconds between reconnect attempts
        stream: Command source (stdin when omitted)
    """
    manager = ConnectionManager(
        url=serverUrl_build(host, port),
        reconnect_delay=reconnect_delay,
        state_changed=connectionState_report,
        message_received=serverMessage_handle,
    )
    manager.start()
    print(COMMAND_HELP)

    try:
        async for line in lines_read(stream or sys.stdin):
            command: str = line.strip().lower()
            if command in QUIT_COMMANDS:
                break
            if command == "help":
                print(COMMAND_HELP)
                continue
            try:
                messages = command_parse(line)
            except ValueError as e:
                print(f"Error: {e}")
                continue

            for message in messages:
                if not await manager.send(message):
                    print(f"Not connected, dropped {message.msg_type.value}")
                    break
                if isinstance(message, UpdateConfigMessage) and message.config.port is not None:
                    port = message.config.port
                    await asyncio.sleep(settings.PORT_SWITCH_DELAY_SEC)
                    manager.retarget(serverUrl_build(host, port))
    finally:
        await manager.teardown()


def client_run(args: argparse.Namespace) -> None:
    """
    Run rein console client

    Args:
        args: Parsed command line arguments
    """
    config = configWithSettings_load(args)
    log_level: str = getattr(args, "log_level", None) or config.logging.level
    logging_setup(log_level, config.logging.format, config.logging.file)

    try:
        host, port = serverAddress_parse(config.client.server_address)
    except ValueError as e:
        logger.error(f"Invalid server address: {e}")
        sys.exit(1)

    if getattr(args, "get_ip", False):
        url = serverUrl_build(host, port)
        try:
            address = asyncio.run(serverAddress_query(url))
        except (OSError, WebSocketException, TimeoutError) as e:
            logger.error(f"Could not query {url}: {e}")
            sys.exit(1)
        print(address)
        return

    logger.info(f"rein client v{__version__}")
    logger.info(f"Server: {host}:{port}")
    asyncio.run(console_run(host, port, config.client.reconnect_delay))
