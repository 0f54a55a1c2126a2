"""
Main command-line interface for pyvbanmatrix.

This script provides a CLI to inspect and control a VBAN Matrix, or to
serve the HTTP API in front of it.
"""

import argparse
import asyncio
import json
import logging
import sys

from pyvbanmatrix.config import MatrixConfig
from pyvbanmatrix.exceptions import MatrixError
from pyvbanmatrix.listener import LoggingListener
from pyvbanmatrix.mixer import VBANMatrix
from pyvbanmatrix.server import run_server
from pyvbanmatrix.state import snapshot_to_dict


def _print_json(data):
    print(json.dumps(data, indent=2, ensure_ascii=False))


async def show_topology(matrix: VBANMatrix):
    """Discover and print the matrix slots and channels."""
    print("Discovering matrix...")
    topology = await matrix.discover()
    _print_json(topology.to_dict())


async def show_snapshot(matrix: VBANMatrix):
    """Discover, then print gain/mute of every point."""
    print("Discovering matrix...")
    await matrix.discover()
    print("Fetching connections...")
    snapshot = await matrix.fetch_full_snapshot()
    _print_json(snapshot_to_dict(snapshot))


async def show_live_point(matrix: VBANMatrix, src: str, dst: str, in_name: str, out_name: str):
    """Print the live state of one point."""
    await matrix.discover()
    point_state = await matrix.fetch_live_point(src, dst, in_name, out_name)
    _print_json(point_state.to_dict())


async def apply_action(matrix: VBANMatrix, source: str, target: str, action: str, value):
    """Send one action, then wait for the send endpoint to drain."""
    await matrix.discover()
    command = await matrix.apply(source, target, action, value)
    print(f"Sent: {command}")
    await asyncio.sleep(0.2)


def _parse_value(raw):
    if raw is None:
        return None
    if raw.lower() in ("on", "true", "yes"):
        return True
    if raw.lower() in ("off", "false", "no"):
        return False
    try:
        return float(raw)
    except ValueError:
        return raw


def main():
    parser = argparse.ArgumentParser(description="Control a VBAN Matrix")
    parser.add_argument("--host", help="Matrix hostname or IP (default: $VBAN_HOST)")
    parser.add_argument("--port", type=int, help="Matrix VBAN port (default: $VBAN_PORT or 6980)")
    parser.add_argument("--stream", help="Stream name for commands (default: $VBAN_COMMAND_STREAM_NAME or Command1)")
    parser.add_argument("--timeout", type=float, help="Query timeout in seconds (default: 1.5)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("discover", help="Discover slots and channels")
    subparsers.add_parser("snapshot", help="Show gain/mute of every routing point")

    live_parser = subparsers.add_parser("live", help="Show the live state of one point")
    live_parser.add_argument("src", help="Source slot (e.g. WIN1)")
    live_parser.add_argument("dst", help="Destination slot (e.g. VBAN1)")
    live_parser.add_argument("in_name", help="Input name on the source slot")
    live_parser.add_argument("out_name", help="Output name on the destination slot")

    apply_parser = subparsers.add_parser("apply", help="Set gain, mute or reset a point")
    apply_parser.add_argument("source", help="Source channel name")
    apply_parser.add_argument("target", help="Target channel name")
    apply_parser.add_argument("action", choices=["gain", "mute", "reset"])
    apply_parser.add_argument("value", nargs="?", help="dB for gain, on/off for mute")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--http-port", type=int, help="HTTP port (default: $HTTP_PORT or 3000)")

    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)

    if args.command is None:
        parser.print_help()
        return

    try:
        config = MatrixConfig.from_env(
            host=args.host,
            port=args.port,
            stream_name=args.stream,
            timeout=args.timeout,
            http_port=getattr(args, "http_port", None),
        )
    except MatrixError as e:
        print(f"Error: {e}")
        sys.exit(2)

    matrix = VBANMatrix(config.host, config.port, config.stream_name, config.timeout)
    matrix.register_listener(LoggingListener(logging.getLogger("pyvbanmatrix.events")))

    try:
        if args.command == "discover":
            asyncio.run(show_topology(matrix))
        elif args.command == "snapshot":
            asyncio.run(show_snapshot(matrix))
        elif args.command == "live":
            asyncio.run(show_live_point(matrix, args.src, args.dst, args.in_name, args.out_name))
        elif args.command == "apply":
            asyncio.run(apply_action(matrix, args.source, args.target, args.action, _parse_value(args.value)))
        elif args.command == "serve":
            run_server(matrix, config.http_port)
    except MatrixError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
