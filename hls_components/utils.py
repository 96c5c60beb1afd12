import posixpath
import time
from typing import Optional
from urllib.parse import urlsplit

from .types import (
    FETCH_STAMP_FORMAT,
    INVALID_FS_CHARS,
    OUTPUT_DIR_SUFFIX,
    SEGMENT_EXT,
    UNSAFE_DIR_CHARS,
    InvalidURL,
)


def ensure_url(url: str) -> str:
    url = url.strip()
    if not url:
        raise InvalidURL("Empty URL")
    try:
        parsed = urlsplit(url)
        if not parsed.scheme:
            url = "https://" + url
            parsed = urlsplit(url)
    except ValueError as exc:
        raise InvalidURL(f"Invalid URL: {url} ({exc})") from exc
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise InvalidURL(f"Invalid URL: {url}")
    return url


def url_basename(url: str) -> str:
    try:
        path = urlsplit(url).path
    except ValueError as exc:
        raise InvalidURL(f"Invalid URL: {url} ({exc})") from exc
    return posixpath.basename(path)


def derive_output_dir_name(playlist_url: str) -> str:
    try:
        parsed = urlsplit(playlist_url)
        host = parsed.hostname or ""
    except ValueError as exc:
        raise InvalidURL(f"Invalid URL: {playlist_url} ({exc})") from exc

    filename = posixpath.basename(parsed.path)
    if filename in {"", ".", ".."}:
        if not host:
            raise InvalidURL(f"Cannot derive a directory name from {playlist_url}")
        base_name = host.replace(".", "_")
    else:
        base_name = posixpath.splitext(filename)[0] or filename
    return UNSAFE_DIR_CHARS.sub("_", base_name) + OUTPUT_DIR_SUFFIX


def fetch_stamp(now: Optional[float] = None) -> str:
    return time.strftime(FETCH_STAMP_FORMAT, time.localtime(now))


def clean_filename(name: str, fallback: str) -> str:
    name = INVALID_FS_CHARS.sub("_", name or "").strip(" .")
    return name or fallback


def build_segment_filename(url: str, stamp: str, index: int) -> str:
    # stamp + zero-padded index keeps lexical order equal to playlist order
    base = clean_filename(url_basename(url), fallback="segment")
    if not base.endswith(SEGMENT_EXT):
        base += SEGMENT_EXT
    return f"{stamp}_{index:05d}_{base}"
