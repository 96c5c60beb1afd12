import threading
from pathlib import Path
from typing import Optional

import requests

from .types import CHUNK_SIZE, USER_AGENT, FetchFailure


class SessionFactory:
    def __init__(self):
        self.local = threading.local()

    def get(self) -> requests.Session:
        session = getattr(self.local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": USER_AGENT})
            self.local.session = session
        return session


class HttpClient:
    def __init__(self, timeout: int = 30, sessions: Optional[SessionFactory] = None):
        self.timeout = timeout
        self.sessions = sessions or SessionFactory()

    def get(self, url: str) -> bytes:
        session = self.sessions.get()
        try:
            with session.get(url, timeout=self.timeout) as r:
                r.raise_for_status()
                return r.content
        except requests.RequestException as exc:
            raise FetchFailure(url, str(exc)) from exc

    def get_text(self, url: str) -> str:
        return self.get(url).decode("utf-8", errors="replace")

    def download(self, url: str, out_path: Path) -> int:
        session = self.sessions.get()
        tmp_path = out_path.with_name(out_path.name + ".part")
        written = 0
        try:
            with session.get(url, stream=True, timeout=(15, self.timeout)) as r:
                r.raise_for_status()
                with tmp_path.open("wb") as f:
                    for chunk in r.iter_content(chunk_size=CHUNK_SIZE):
                        if not chunk:
                            continue
                        f.write(chunk)
                        written += len(chunk)
        except requests.RequestException as exc:
            tmp_path.unlink(missing_ok=True)
            raise FetchFailure(url, str(exc)) from exc
        tmp_path.replace(out_path)
        return written


class SegmentLedger:
    # mutated only by the polling loop, so no lock
    def __init__(self):
        self.seen: set[str] = set()

    def should_download(self, identity: str) -> bool:
        if identity in self.seen:
            return False
        self.seen.add(identity)
        return True

    def __contains__(self, identity: str) -> bool:
        return identity in self.seen

    def __len__(self) -> int:
        return len(self.seen)
