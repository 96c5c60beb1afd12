import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from .core import HLSDownloader
from .state import HttpClient
from .types import DownloaderConfig, InvalidURL, OutputDirectoryError
from .ui import TerminalUI
from .utils import ensure_url


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Continuously download new segments from a live HLS (.m3u8) stream.",
    )
    parser.add_argument("url", help="Master or media playlist URL, e.g. https://example.com/live/stream.m3u8")
    parser.add_argument("-o", "--output", default=".", help="Directory in which the per-stream folder is created")
    parser.add_argument("-w", "--workers", type=int, default=8, help="Parallel segment downloads")
    parser.add_argument("-i", "--interval", type=float, default=5.0, help="Seconds between playlist polls")
    parser.add_argument("--retries", type=int, default=3, help="Attempts per segment before giving up")
    parser.add_argument(
        "--retry-delay",
        type=float,
        default=1.0,
        help="Base retry delay in seconds; attempt N waits N * delay",
    )
    parser.add_argument("--timeout", type=int, default=30, help="Request timeout in seconds")
    parser.add_argument("--no-pretty", action="store_true", help="Disable colored terminal output")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> DownloaderConfig:
    return DownloaderConfig(
        max_concurrent_downloads=args.workers,
        poll_interval=args.interval,
        max_retry_attempts=args.retries,
        retry_delay_base=args.retry_delay,
        timeout=args.timeout,
    ).clamped()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        url = ensure_url(args.url)
    except InvalidURL as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    config = build_config(args)
    ui = TerminalUI(pretty=not args.no_pretty)
    downloader = HLSDownloader(
        config=config,
        client=HttpClient(timeout=config.timeout),
        ui=ui,
        output_root=Path(args.output),
    )
    ui.info(
        f"workers={config.max_concurrent_downloads}, interval={config.poll_interval:g}s, "
        f"retries={config.max_retry_attempts}, retry_delay={config.retry_delay_base:g}s"
    )
    try:
        downloader.start(url)
    except OutputDirectoryError as exc:
        ui.error(str(exc))
        return 1
    except KeyboardInterrupt:
        downloader.stop_event.set()
        ui.info(f"Interrupted; {len(downloader.ledger)} segment(s) dispatched this run")
        return 130
    return 0
