"""rein unified command-line interface"""

import argparse
import sys
from typing import NoReturn, Optional, Sequence

from rein import __version__
from rein.input.factory import SUPPORTED_BACKENDS


def arguments_parse(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments

    Args:
        argv: Argument list (sys.argv[1:] when None)

    Returns:
        Parsed CLI arguments.
    """
    parser = argparse.ArgumentParser(
        prog="rein",
        description="Relay trackpad and keyboard gestures from a remote device to this desktop",
    )

    parser.add_argument("--version", action="version", version=f"rein {__version__}")

    # Mode selection: --server means client mode (connect to server)
    # No --server means run as server
    parser.add_argument(
        "--server",
        type=str,
        metavar="HOST:PORT",
        default=None,
        help="Connect to server at HOST:PORT (console client mode). If omitted, run as server.",
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config file (default: search standard locations)",
    )

    parser.add_argument(
        "--get-ip",
        action="store_true",
        dest="get_ip",
        help="[Client] Print the server's LAN address and exit",
    )

    # Server-specific options
    parser.add_argument(
        "--host", type=str, default=None, help="[Server] Host address to bind to (overrides config)"
    )

    parser.add_argument(
        "--port", type=int, default=None, help="[Server] Port to listen on (overrides config)"
    )

    parser.add_argument(
        "--backend",
        type=str,
        choices=SUPPORTED_BACKENDS,
        default=None,
        help="[Server] Input backend to use. Defaults to x11.",
    )

    parser.add_argument(
        "--display", type=str, default=None, help="[Server] X11 display name (overrides config)"
    )

    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging (overrides config)"
    )

    parser.add_argument(
        "--info", action="store_true", help="Enable info logging (overrides config)"
    )

    parser.add_argument(
        "--warning", action="store_true", help="Enable warning logging (overrides config)"
    )

    parser.add_argument(
        "--error", action="store_true", help="Enable error logging (overrides config)"
    )

    parser.add_argument(
        "--critical", action="store_true", help="Enable critical logging (overrides config)"
    )

    return parser.parse_args(argv)


def main() -> NoReturn:
    """Main entry point for unified rein command"""
    args = arguments_parse()

    log_level_override: str | None = logLevelOverride_get(args)

    try:
        argsWithLogLevel_apply(args, log_level_override)
        if clientMode_isEnabled(args):
            clientMode_run(args)
        else:
            serverMode_run(args)
        sys.exit(0)

    except KeyboardInterrupt:
        print("\nShutting down...")
        sys.exit(0)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def logLevelOverride_get(args: argparse.Namespace) -> str | None:
    """
    Resolve explicit log level override flags.

    The most restrictive flag wins when several are given.

    Args:
        args: Parsed CLI args.

    Returns:
        Selected log level or None.
    """
    if args.critical:
        return "CRITICAL"
    if args.error:
        return "ERROR"
    if args.warning:
        return "WARNING"
    if args.info:
        return "INFO"
    if args.debug:
        return "DEBUG"
    return None


def argsWithLogLevel_apply(args: argparse.Namespace, log_level: str | None) -> None:
    """
    Apply optional log level override to args.

    Args:
        args: Parsed CLI args.
        log_level: Optional log level string.
    """
    if log_level is not None:
        setattr(args, "log_level", log_level)


def clientMode_isEnabled(args: argparse.Namespace) -> bool:
    """
    Determine whether CLI should run client mode.

    Args:
        args: Parsed CLI args.

    Returns:
        True when client mode should run.
    """
    return bool(args.server or args.get_ip)


def clientMode_run(args: argparse.Namespace) -> None:
    """
    Run client mode entrypoint.

    Args:
        args: Parsed CLI args.
    """
    from rein.client.main import client_run

    client_run(args)


def serverMode_run(args: argparse.Namespace) -> None:
    """
    Run server mode entrypoint.

    Args:
        args: Parsed CLI args.
    """
    from rein.server.main import server_run

    server_run(args)


if __name__ == "__main__":
    main()
