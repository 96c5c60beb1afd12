import posixpath
from typing import Optional
from urllib.parse import SplitResult, urljoin, urlsplit, urlunsplit

from .types import (
    MASTER_TAG,
    MEDIA_SEQUENCE_RE,
    SEGMENT_TAG,
    TRAILING_DIGITS_RE,
    InvalidFilename,
    InvalidURL,
    Playlist,
    UnrecognizedFormat,
)
from .ui import TerminalUI


def extract_media_sequence(content: str) -> int:
    m = MEDIA_SEQUENCE_RE.search(content)
    if not m:
        return 0
    try:
        return int(m.group(1))
    except ValueError:
        return 0


def resolve_reference(reference: str, base: SplitResult) -> str:
    resolved = urlsplit(urljoin(urlunsplit(base), reference))
    # segments of token-bearing playlists inherit the token
    if not resolved.query and base.query:
        resolved = resolved._replace(query=base.query)
    return urlunsplit(resolved)


def extract_references(content: str, base: SplitResult, ui: Optional[TerminalUI] = None) -> list[str]:
    urls: list[str] = []
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        try:
            urls.append(resolve_reference(line, base))
        except ValueError as exc:
            if ui:
                ui.warn(f"Skipping unresolvable playlist line {line!r}: {exc}")
    return urls


def parse_playlist(content: str, base_url: str, ui: Optional[TerminalUI] = None) -> Playlist:
    content = content.lstrip("\ufeff")
    is_master = MASTER_TAG in content
    is_media = SEGMENT_TAG in content

    if is_master and is_media:
        if ui:
            ui.warn(f"Playlist has both {MASTER_TAG} and {SEGMENT_TAG} tags, treating as media: {base_url}")
        is_master = False
    elif not is_master and not is_media:
        raise UnrecognizedFormat(base_url)

    try:
        base = urlsplit(base_url)
    except ValueError as exc:
        raise InvalidURL(f"Cannot parse playlist URL {base_url}: {exc}") from exc

    return Playlist(
        entries=extract_references(content, base, ui=ui),
        is_master=is_master,
        sequence=extract_media_sequence(content),
    )


def segment_identity(url: str, sequence: int, index: int) -> str:
    # "{sequence}_{index}" is only stable while the segment keeps its position
    try:
        path = urlsplit(url).path
    except ValueError as exc:
        raise InvalidURL(f"Invalid segment URL {url}: {exc}") from exc

    name = posixpath.basename(path)
    if name in {"", ".", "/"}:
        raise InvalidFilename(f"No file name in segment URL {url}")

    stem = posixpath.splitext(name)[0]
    m = TRAILING_DIGITS_RE.search(stem)
    if m:
        try:
            return str(int(m.group(1)))
        except ValueError:
            pass
    return f"{sequence}_{index}"
