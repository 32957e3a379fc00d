"""
=============================================================================
UDSIPC CLI ENTRY POINT
=============================================================================

    # Run the example server (Ctrl+C to stop)
    python -m udsipc serve

    # Custom socket path, JSON access logs
    python -m udsipc serve --socket /tmp/app.sock --log-format json

    # Run the demo client against it
    python -m udsipc client --socket /tmp/app.sock

Defaults come from IPCConfig.from_env(), so UDS_SOCKET_PATH and friends
work too; command-line flags win over the environment.

=============================================================================
SIGNAL HANDLING
=============================================================================

SIGINT (Ctrl+C) and SIGTERM (kill, systemd stop) call IPCServer.shutdown(),
which only sets the server's cancellation event. The accept loop notices
within accept_timeout, then run() waits for the connected clients to hang
up and returns. The original handlers are restored afterwards.

=============================================================================
"""

import argparse
import logging
import signal
import sys
from typing import Optional

from . import __version__
from .client import IPCClient
from .config import IPCConfig
from .errors import ConnectError, TransportError
from .handlers import ExampleHandler, LoggingHandler, decode_cstring
from .protocol import Command, Status
from .server import IPCServer


logger = logging.getLogger("udsipc.cli")

# Deliberately outside the Command enum
UNKNOWN_COMMAND = 0xFFFF


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="udsipc",
        description="Request/response IPC over a Unix domain socket",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m udsipc serve                          # Example server
  python -m udsipc serve --max-connections 2      # Two clients at most
  python -m udsipc client                         # Demo request sequence
        """,
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"udsipc {__version__}",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--socket", "-s",
        default=None,
        help="Socket path (default: $UDS_SOCKET_PATH or /tmp/uds_sock.1234)",
    )
    common.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", parents=[common], help="Run the example server")
    serve.add_argument(
        "--max-connections", "-m",
        type=int,
        default=None,
        help="Concurrent connection slots (default: 10)",
    )
    serve.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=None,
        help="Access log format (default: text)",
    )
    serve.add_argument(
        "--shutdown-timeout",
        type=float,
        default=None,
        help="Force-close clients still connected this many seconds after "
             "shutdown starts (default: wait for them)",
    )

    client = commands.add_parser("client", parents=[common], help="Run the demo client")
    client.add_argument(
        "--attempts", "-a",
        type=int,
        default=None,
        help="Connect retries, one second apart (default: 5)",
    )

    return parser


def _config_from_args(args: argparse.Namespace) -> IPCConfig:
    config = IPCConfig.from_env()

    if args.socket:
        config.socket_path = args.socket
    if args.log_level:
        config.log_level = args.log_level

    if args.command == "serve":
        if args.max_connections is not None:
            config.max_connections = args.max_connections
        if args.log_format:
            config.log_format = args.log_format
        if args.shutdown_timeout is not None:
            config.shutdown_timeout = args.shutdown_timeout
    elif args.attempts is not None:
        config.connect_attempts = args.attempts

    config.validate()
    return config


# =============================================================================
# SERVER
# =============================================================================

def _install_signal_handlers(server: IPCServer) -> dict:
    """Route SIGINT/SIGTERM to server.shutdown(). Returns the old handlers."""

    def shutdown_handler(signum, frame):
        signal_name = signal.Signals(signum).name
        logger.info(f"Received {signal_name}, initiating shutdown...")
        server.shutdown()

    original = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        original[sig] = signal.signal(sig, shutdown_handler)
    return original


def _restore_signal_handlers(original: dict):
    for sig, handler in original.items():
        signal.signal(sig, handler)


def serve(config: IPCConfig) -> int:
    handler = LoggingHandler(ExampleHandler(), log_format=config.log_format)
    server = IPCServer(handler, config)

    original = _install_signal_handlers(server)
    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        _restore_signal_handlers(original)

    return 0


# =============================================================================
# DEMO CLIENT
# =============================================================================

def _report(name: str, response) -> Optional[int]:
    """Print a failed round trip. Returns an exit code on transport failure."""
    if response is None:
        print(f"client: {name}: no valid response", file=sys.stderr)
        return 3
    if response.status != Status.SUCCESS:
        print(f"client: {name} error({int(response.code)})")
    return None


def run_client(config: IPCConfig) -> int:
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        client = IPCClient(config).connect()
    except ConnectError as e:
        print(f"client: connect error: {e}", file=sys.stderr)
        return 1

    with client:
        try:
            # Version of the server
            response = client.request(Command.GET_VERSION)
            failed = _report("GET_VERSION", response)
            if failed:
                return failed
            if response.status == Status.SUCCESS and response.data_len >= 2:
                print(f"Version: {response.payload[0]}.{response.payload[1]}")

            # Message from the server
            response = client.request(Command.GET_MESSAGE)
            failed = _report("GET_MESSAGE", response)
            if failed:
                return failed
            if response.status == Status.SUCCESS:
                print(f"Message: {decode_cstring(response.payload)}")

            # Message to the server
            response = client.request(
                Command.PUT_MESSAGE, b"This is a message from client\0"
            )
            failed = _report("PUT_MESSAGE", response)
            if failed:
                return failed
            if response.status == Status.SUCCESS:
                print("client: PUT_MESSAGE OK")

            # A command the server does not know
            response = client.request(UNKNOWN_COMMAND)
            if response is None:
                return _report("UNKNOWN", response)
            print(f"client: response status({int(response.code)})")
        except TransportError as e:
            print(f"client: send request error: {e}", file=sys.stderr)
            return 2

    return 0


def main(argv: Optional[list] = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        config = _config_from_args(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.command == "serve":
        return serve(config)
    return run_client(config)


if __name__ == "__main__":
    sys.exit(main())
