"""
Command Line Interface for torrent-queue
Inspect and feed a Transmission daemon's download queue.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

import aiofiles

from .client import TransmissionClient
from .config import Settings
from .exceptions import TorrentQueueError
from .logging_config import setup_logging
from .monitor import PollResult, QueueMonitor
from .retry import CircuitBreakerConfig, RetryConfig
from .transmission_proxy import TransmissionProxy

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="torrent-queue - Transmission download queue reconciliation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show the queue as the importer sees it
  torrent-queue list --host 192.168.1.10 --category radarr

  # Add a magnet link
  torrent-queue add --magnet "magnet:?xt=urn:btih:..."

  # Add a .torrent file into a fixed directory
  torrent-queue add --file movie.torrent --directory /downloads/movies

  # Report downloads as they become importable
  torrent-queue watch --interval 30

Environment Variables:
  TRANSMISSION_HOST              - Daemon host (default: localhost)
  TRANSMISSION_PORT              - Daemon RPC port (default: 9091)
  TRANSMISSION_URL_BASE          - RPC url base (default: /transmission/)
  TRANSMISSION_USERNAME          - RPC username
  TRANSMISSION_PASSWORD          - RPC password
  TRANSMISSION_MOVIE_DIRECTORY   - Only track downloads under this directory
  TRANSMISSION_MOVIE_CATEGORY    - Only track downloads in this category folder
  TRANSMISSION_SEED_RATIO_LIMIT  - Global seed ratio limit
  TRANSMISSION_SEED_IDLE_LIMIT   - Global seed idle limit in minutes
  TRANSMISSION_LOG_LEVEL         - Logging level (default: INFO)
        """,
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--host", "-H", help="Transmission host")
    common.add_argument("--port", "-p", type=int, help="Transmission RPC port")
    common.add_argument("--url-base", help="RPC url base")
    common.add_argument("--username", "-u", help="RPC username")
    common.add_argument("--password", help="RPC password")
    common.add_argument("--ssl", action="store_true", default=None, help="Use HTTPS")
    common.add_argument("--directory", "-d", help="Only track downloads under this directory")
    common.add_argument("--category", "-c", help="Only track downloads in this category")
    common.add_argument("--ratio-limit", type=float, help="Global seed ratio limit")
    common.add_argument("--idle-limit", type=int, help="Global seed idle limit (minutes)")
    common.add_argument("--log-level", "-l", help="Log level")
    common.add_argument("--log-format", choices=["text", "json"], help="Log format")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("list", parents=[common], help="Show the reconciled queue")

    add_parser = subparsers.add_parser("add", parents=[common], help="Add a download")
    source = add_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--magnet", "-m", help="Magnet link or torrent URL")
    source.add_argument("--file", "-f", help=".torrent file to upload")

    subparsers.add_parser("status", parents=[common], help="Show output folders")
    subparsers.add_parser("test", parents=[common], help="Test the connection")

    watch_parser = subparsers.add_parser("watch", parents=[common], help="Poll the queue")
    watch_parser.add_argument("--interval", "-i", type=float, help="Seconds between polls")

    return parser


def load_settings(args) -> Settings:
    """Environment settings, with command line flags taking precedence."""
    overrides = {
        "host": args.host,
        "port": args.port,
        "url_base": args.url_base,
        "username": args.username,
        "password": args.password,
        "use_ssl": args.ssl,
        "movie_directory": args.directory,
        "movie_category": args.category,
        "seed_ratio_limit": args.ratio_limit,
        "seed_idle_limit": args.idle_limit,
        "log_level": args.log_level,
        "log_format": args.log_format,
        "poll_interval": getattr(args, "interval", None),
    }
    return Settings(**{key: value for key, value in overrides.items() if value is not None})


def create_client(settings: Settings) -> TransmissionClient:
    proxy = TransmissionProxy(
        host=settings.host,
        port=settings.port,
        url_base=settings.url_base,
        username=settings.username,
        password=settings.password,
        use_ssl=settings.use_ssl,
        timeout=settings.request_timeout,
    )
    return TransmissionClient(proxy, settings)


def main(argv: Optional[list[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    commands = {
        "list": run_list,
        "add": run_add,
        "status": run_status,
        "test": run_test,
        "watch": run_watch,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)

    settings = load_settings(args)
    setup_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        log_format=settings.log_format,
        max_file_size_mb=settings.log_max_size_mb,
        backup_count=settings.log_backup_count,
    )

    try:
        asyncio.run(command(args, settings))
    except TorrentQueueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        pass


def format_size(size: int) -> str:
    return f"{size / 1e6:.1f}MB" if size < 1e9 else f"{size / 1e9:.2f}GB"


async def run_list(args, settings: Settings):
    """Print the reconciled queue."""
    client = create_client(settings)
    try:
        await client.verify_client_version()
        items = await client.get_items()

        if not items:
            print("No downloads found.")
            return

        print(f"\nFound {len(items)} download(s):\n")
        print(f"{'Name':<40} {'Size':>10} {'Status':<12} {'ETA':<16} {'Ratio':>6} {'Import':<6} {'Remove':<6}")
        print("-" * 104)

        for item in items:
            name = item.title[:37] + "..." if len(item.title) > 40 else item.title
            eta = str(item.remaining_time) if item.remaining_time is not None else "-"
            print(
                f"{name:<40} {format_size(item.total_size):>10} {item.status.value:<12} "
                f"{eta:<16} {item.seed_ratio:>6.2f} "
                f"{'yes' if item.can_move_files else 'no':<6} {'yes' if item.can_be_removed else 'no':<6}"
            )
    finally:
        await client.close()


async def run_add(args, settings: Settings):
    """Submit a magnet link, URL or .torrent file."""
    client = create_client(settings)
    try:
        await client.verify_client_version()
        if args.file:
            async with aiofiles.open(args.file, "rb") as f:
                data = await f.read()
            download_id = await client.download(data=data)
        else:
            download_id = await client.download(url=args.magnet)
        print(f"  Added: {download_id}")
    finally:
        await client.close()


async def run_status(args, settings: Settings):
    """Print where the client writes."""
    client = create_client(settings)
    try:
        await client.verify_client_version()
        status = await client.get_status()
        print(f"  Local client: {'yes' if status.is_localhost else 'no'}")
        for folder in status.output_root_folders:
            print(f"  Output folder: {folder}")
    finally:
        await client.close()


async def run_test(args, settings: Settings):
    """Check connectivity and version."""
    client = create_client(settings)
    try:
        success, message = await client.test_connection()
        if success:
            print(f"  {message}")
        else:
            print(f"  Connection failed: {message}")
            sys.exit(1)
    finally:
        await client.close()


async def run_watch(args, settings: Settings):
    """Poll until interrupted, printing newly importable downloads."""
    client = create_client(settings)
    monitor = QueueMonitor(
        client,
        interval=settings.poll_interval,
        retry_config=RetryConfig(
            max_attempts=settings.retry_max_attempts,
            initial_delay=settings.retry_initial_delay,
            max_delay=settings.retry_max_delay,
        ),
        circuit_config=CircuitBreakerConfig(
            failure_threshold=settings.circuit_failure_threshold,
            reset_timeout=settings.circuit_reset_timeout,
        ),
    )

    async def report(result: PollResult):
        for item in result.importable:
            print(f"  Ready for import: {item.title} ({item.download_id}) -> {item.output_path}")
        for item in result.removable:
            if not item.can_move_files:
                print(f"  Seeding goal reached: {item.title} ({item.download_id})")

    try:
        await client.verify_client_version()
        logger.info(f"Watching {settings.host}:{settings.port} every {settings.poll_interval}s")
        await monitor.run(report)
    finally:
        await client.close()


if __name__ == "__main__":
    main()
