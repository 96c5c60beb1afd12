from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import re


USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)
INVALID_FS_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1F]+')
UNSAFE_DIR_CHARS = re.compile(r"[^A-Za-z0-9_-]")
CHUNK_SIZE = 1024 * 512

MASTER_TAG = "#EXT-X-STREAM-INF"
SEGMENT_TAG = "#EXTINF"
MEDIA_SEQUENCE_RE = re.compile(r"#EXT-X-MEDIA-SEQUENCE:(\d+)")
TRAILING_DIGITS_RE = re.compile(r"(\d+)$")

SEGMENT_EXT = ".ts"
OUTPUT_DIR_SUFFIX = "_hls_segments"
FETCH_STAMP_FORMAT = "%Y%m%d_%H%M%S"


class HLSError(Exception):
    pass


class PlaylistError(HLSError):
    pass


class UnrecognizedFormat(PlaylistError):
    def __init__(self, url: str):
        super().__init__(f"Unrecognized playlist format (no #EXTINF or #EXT-X-STREAM-INF): {url}")
        self.url = url


class EmptyMasterPlaylist(PlaylistError):
    def __init__(self, url: str):
        super().__init__(f"Master playlist lists no media playlists: {url}")
        self.url = url


class SegmentError(HLSError):
    pass


class InvalidURL(SegmentError):
    pass


class InvalidFilename(SegmentError):
    pass


class FetchFailure(HLSError):
    def __init__(self, url: str, reason: str):
        super().__init__(f"Fetch failed for {url}: {reason}")
        self.url = url
        self.reason = reason


class ExhaustedRetries(HLSError):
    def __init__(self, url: str, attempts: int, last_error: Optional[BaseException] = None):
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"Gave up on {url} after {attempts} attempt(s){detail}")
        self.url = url
        self.attempts = attempts
        self.last_error = last_error


class OutputDirectoryError(HLSError):
    pass


@dataclass
class Playlist:
    entries: list[str] = field(default_factory=list)
    is_master: bool = False
    sequence: int = 0


@dataclass
class SegmentJob:
    url: str
    out_path: Path
    index: int = 0
    attempts: int = 3


@dataclass
class FilterStats:
    total: int = 0
    new: int = 0
    invalid_url: int = 0
    invalid_name: int = 0
    already_downloaded: int = 0

    def summary(self) -> str:
        return (
            f"total={self.total}, new={self.new}, "
            f"invalid_url={self.invalid_url}, invalid_name={self.invalid_name}, "
            f"already_downloaded={self.already_downloaded}"
        )


@dataclass(frozen=True)
class DownloaderConfig:
    max_concurrent_downloads: int = 8
    poll_interval: float = 5.0
    max_retry_attempts: int = 3
    retry_delay_base: float = 1.0
    timeout: int = 30
    max_master_redirects: int = 5

    def clamped(self) -> "DownloaderConfig":
        return DownloaderConfig(
            max_concurrent_downloads=max(1, self.max_concurrent_downloads),
            poll_interval=max(0.0, self.poll_interval),
            max_retry_attempts=max(1, self.max_retry_attempts),
            retry_delay_base=max(0.0, self.retry_delay_base),
            timeout=max(1, self.timeout),
            max_master_redirects=max(0, self.max_master_redirects),
        )
