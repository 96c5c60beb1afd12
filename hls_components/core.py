import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Optional

import requests

from .playlist import parse_playlist, segment_identity
from .state import HttpClient, SegmentLedger
from .types import (
    DownloaderConfig,
    EmptyMasterPlaylist,
    ExhaustedRetries,
    FetchFailure,
    FilterStats,
    HLSError,
    InvalidFilename,
    InvalidURL,
    OutputDirectoryError,
    PlaylistError,
    SegmentJob,
)
from .ui import TerminalUI
from .utils import build_segment_filename, derive_output_dir_name, ensure_url, fetch_stamp


def download_segment(
    client: HttpClient,
    job: SegmentJob,
    retry_delay_base: float,
    ui: TerminalUI,
    label: str,
) -> str:
    if job.out_path.exists():
        ui.complete_task(label, True, f"{job.out_path.name} already exists, skipped")
        return "skipped"

    last_error: Optional[BaseException] = None
    for attempt in range(job.attempts):
        try:
            size = client.download(job.url, job.out_path)
            ui.complete_task(label, True, f"saved -> {job.out_path.name} ({size} bytes)")
            return "downloaded"
        except (FetchFailure, OSError) as exc:
            last_error = exc
            if attempt >= job.attempts - 1:
                break
            wait = (attempt + 1) * retry_delay_base
            ui.warn(f"{label} attempt {attempt + 1}/{job.attempts} failed ({exc}), retry in {wait:.1f}s")
            time.sleep(wait)
    raise ExhaustedRetries(job.url, job.attempts, last_error)


def build_jobs(urls: list[str], out_dir: Path, attempts: int) -> list[SegmentJob]:
    stamp = fetch_stamp()
    return [
        SegmentJob(
            url=url,
            out_path=out_dir / build_segment_filename(url, stamp, index),
            index=index,
            attempts=attempts,
        )
        for index, url in enumerate(urls)
    ]


def download_batch(
    client: HttpClient,
    urls: list[str],
    out_dir: Path,
    config: DownloaderConfig,
    ui: TerminalUI,
) -> dict[str, int]:
    counts = {"downloaded": 0, "skipped": 0, "failed": 0}
    if not urls:
        return counts

    jobs = build_jobs(urls, out_dir, config.max_retry_attempts)
    total = len(jobs)
    failures: dict[int, Exception] = {}

    with ThreadPoolExecutor(max_workers=config.max_concurrent_downloads) as executor:
        futures = {
            executor.submit(
                download_segment,
                client,
                job,
                config.retry_delay_base,
                ui,
                f"[{job.index + 1:>3}/{total}]",
            ): job
            for job in jobs
        }
        for future in as_completed(futures):
            job = futures[future]
            try:
                status = future.result()
            except ExhaustedRetries as exc:
                ui.error(f"[{job.index + 1:>3}/{total}] {exc}")
                failures[job.index] = exc
                status = "failed"
            except Exception as exc:
                ui.error(f"[{job.index + 1:>3}/{total}] Worker error: {exc}")
                failures[job.index] = exc
                status = "failed"
            counts[status] += 1

    # lowest playlist position wins; sibling files stay on disk
    if failures:
        raise failures[min(failures)]
    return counts


class HLSDownloader:
    def __init__(
        self,
        config: Optional[DownloaderConfig] = None,
        client: Optional[HttpClient] = None,
        ui: Optional[TerminalUI] = None,
        output_root: Path = Path("."),
        stop_event: Optional[threading.Event] = None,
    ):
        self.config = (config or DownloaderConfig()).clamped()
        self.client = client or HttpClient(timeout=self.config.timeout)
        self.ui = ui or TerminalUI()
        self.output_root = Path(output_root)
        self.stop_event = stop_event or threading.Event()
        self.ledger = SegmentLedger()

    def prepare_output_dir(self, playlist_url: str) -> Path:
        try:
            out_dir = self.output_root / derive_output_dir_name(playlist_url)
        except InvalidURL as exc:
            raise OutputDirectoryError(f"Cannot determine output directory: {exc}") from exc
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputDirectoryError(f"Cannot create output directory {out_dir}: {exc}") from exc
        return out_dir

    def start(self, playlist_url: str) -> None:
        try:
            playlist_url = ensure_url(playlist_url)
        except InvalidURL as exc:
            raise OutputDirectoryError(f"Cannot determine output directory: {exc}") from exc
        out_dir = self.prepare_output_dir(playlist_url)
        self.ui.info(f"Polling HLS stream: {playlist_url}")
        self.ui.info(f"Saving segments to: {out_dir}")

        while not self.stop_event.is_set():
            try:
                self.run_cycle(playlist_url, out_dir)
            except (HLSError, requests.RequestException) as exc:
                self.ui.error(f"Cycle failed: {exc}; retrying in {self.config.poll_interval:g}s")
            except Exception as exc:
                self.ui.error(f"Cycle failed unexpectedly: {exc!r}; retrying in {self.config.poll_interval:g}s")
            self.stop_event.wait(self.config.poll_interval)
        self.ui.info(f"Stopped polling {playlist_url}; {len(self.ledger)} segment(s) dispatched")

    def run_cycle(self, playlist_url: str, out_dir: Path) -> dict[str, int]:
        url = playlist_url
        for _ in range(self.config.max_master_redirects + 1):
            playlist = parse_playlist(self.client.get_text(url), url, ui=self.ui)
            if not playlist.is_master:
                break
            if not playlist.entries:
                raise EmptyMasterPlaylist(url)
            url = playlist.entries[0]
            self.ui.info(f"Master playlist found, switching to media playlist: {url}")
        else:
            raise PlaylistError(
                f"Gave up after {self.config.max_master_redirects} master playlist redirect(s) from {playlist_url}"
            )

        new_urls = self.filter_new_segments(playlist.entries, playlist.sequence)
        if not new_urls:
            self.ui.info("No new segments, waiting for next poll")
            return {"downloaded": 0, "skipped": 0, "failed": 0}

        self.ui.info(f"Found {len(new_urls)} new segment(s), downloading")
        counts = download_batch(self.client, new_urls, out_dir, self.config, self.ui)
        self.ui.info(
            f"Batch done: downloaded={counts['downloaded']}, "
            f"skipped={counts['skipped']}, failed={counts['failed']}"
        )
        return counts

    def filter_new_segments(self, urls: list[str], sequence: int) -> list[str]:
        stats = FilterStats(total=len(urls))
        new_urls: list[str] = []
        for index, url in enumerate(urls):
            try:
                identity = segment_identity(url, sequence, index)
            except InvalidURL as exc:
                self.ui.warn(f"Skipping invalid URL [index {index}]: {url} ({exc})")
                stats.invalid_url += 1
                continue
            except InvalidFilename:
                self.ui.warn(f"Skipping segment without file name [index {index}]: {url}")
                stats.invalid_name += 1
                continue

            if not self.ledger.should_download(identity):
                stats.already_downloaded += 1
                continue
            new_urls.append(url)

        stats.new = len(new_urls)
        self.ui.info(f"Segment filter: {stats.summary()}")
        return new_urls
