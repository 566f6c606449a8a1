#!/usr/bin/env python3
"""
Motion Sync Viewer CLI

Command-line interface for inspecting tables, resolving manifests and
running the viewer server.

Usage:
    python viewer_cli.py inspect "data/Pete Alonso/session1/Kinematic_Data (1).xlsx"
    python viewer_cli.py manifest --player "Pete Alonso"
    python viewer_cli.py serve --port 8000
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
    datefmt="%H:%M:%S"
)
logger = logging.getLogger("viewer_cli")


def cmd_inspect(args):
    """Parse a table file and summarize its datasets and channel choices."""
    from collector.table_parser import parse_table
    from core.channels import pretty_label
    from core.dataset_store import DatasetStore
    from core.errors import TableParseError

    path = Path(args.file)
    try:
        parsed = parse_table(path.read_bytes(), path.name, fps=args.fps)
    except TableParseError as e:
        logger.error(f"Couldn't parse {path}: {e.message}")
        return 1

    store = DatasetStore(strict_series=args.strict)
    store.replace_all(parsed.datasets)

    print(f"\n{path.name} ({parsed.kind})")
    print("=" * 60)
    for name in parsed.names:
        marker = "*" if name == store.snapshot.active else " "
        print(f" {marker} {name}: {len(parsed.datasets[name])} rows")

    snap = store.snapshot
    print(f"\nActive dataset: {snap.active}")
    print(f"Channels ({len(snap.channels)}):")
    for channel in snap.channels:
        print(f"  {channel}  [{pretty_label(channel)}]")

    print(f"\nChannel A: {snap.channel_a}  ({len(snap.series_a)} pts, {snap.series_a.duration:.3f}s)")
    print(f"Channel B: {snap.channel_b}  ({len(snap.series_b)} pts, {snap.series_b.duration:.3f}s)")
    return 0


def cmd_manifest(args):
    """Fetch a player's manifest and print the resolved session assets."""
    from collector import collect_session_assets
    from core.errors import ManifestFetchError

    try:
        result = asyncio.run(collect_session_assets(args.player, args.session, args.base_url))
    except (ManifestFetchError, ValueError) as e:
        logger.error(f"Manifest for {args.player!r} unavailable: {e}")
        return 1

    manifest = result["manifest"]
    assets = result["assets"]
    print(f"\nPlayer: {manifest.player or args.player}")
    print(f"Sessions: {', '.join(manifest.sessions) or '(none)'}")
    print(f"Default session: {manifest.default_session}")
    print(f"\nSession: {result['session']}")
    print(f"  Animation: {assets.animation_file}")
    print(f"             {assets.animation_url}")
    print(f"  Table:     {assets.table_file}")
    print(f"             {assets.table_url}")
    return 0


def cmd_serve(args):
    """Run the HTTP viewer surface."""
    import uvicorn
    from web_server import app

    logger.info(f"Serving viewer on {args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def main(argv=None):
    from config import FPS

    parser = argparse.ArgumentParser(
        description="Motion Sync Viewer CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Summarize a kinematic workbook
  python viewer_cli.py inspect "Kinematic_Data (1).xlsx"

  # Resolve a player's default session against a local asset server
  python viewer_cli.py manifest --player "Pete Alonso" --base-url http://localhost:8000/

  # Run the viewer API
  python viewer_cli.py serve --port 8000
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Inspect command
    inspect_parser = subparsers.add_parser("inspect", help="Summarize a table file")
    inspect_parser.add_argument("file", help="Workbook, CSV or JSON file")
    inspect_parser.add_argument("--fps", type=int, default=FPS, help="Frame rate for frame-indexed tables")
    inspect_parser.add_argument(
        "--strict",
        action="store_true",
        help="Sort series points by time before normalizing"
    )
    inspect_parser.set_defaults(func=cmd_inspect)

    # Manifest command
    manifest_parser = subparsers.add_parser("manifest", help="Fetch and resolve a player manifest")
    manifest_parser.add_argument("--player", required=True, help="Player name")
    manifest_parser.add_argument("--session", help="Session (default: manifest default)")
    manifest_parser.add_argument("--base-url", help="Asset server root")
    manifest_parser.set_defaults(func=cmd_manifest)

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the viewer HTTP server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port")
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    # Run command
    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1
    except OSError as e:
        logger.error(f"Command failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
