import io
import threading
import time
from pathlib import Path

import pytest

from hls_components.types import FetchFailure
from hls_components.ui import TerminalUI


class FakeClient:
    """In-memory stand-in for HttpClient.

    ``pages`` maps playlist URLs to text, ``segments`` maps segment URLs to
    bytes and ``failures`` holds how many times a segment URL fails before
    it succeeds.
    """

    def __init__(self, pages=None, segments=None, failures=None, delay=0.0):
        self.pages = dict(pages or {})
        self.segments = dict(segments or {})
        self.failures = dict(failures or {})
        self.delay = delay
        self.lock = threading.Lock()
        self.in_flight = 0
        self.max_in_flight = 0
        self.get_calls: list[str] = []
        self.download_calls: list[str] = []

    def get_text(self, url: str) -> str:
        self.get_calls.append(url)
        if url not in self.pages:
            raise FetchFailure(url, "404 Client Error: Not Found")
        return self.pages[url]

    def download(self, url: str, out_path: Path) -> int:
        with self.lock:
            self.download_calls.append(url)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            with self.lock:
                remaining = self.failures.get(url, 0)
                if remaining:
                    self.failures[url] = remaining - 1
                    raise FetchFailure(url, "503 Server Error: Service Unavailable")
            data = self.segments.get(url, b"\x47" * 188)
            out_path.write_bytes(data)
            return len(data)
        finally:
            with self.lock:
                self.in_flight -= 1


@pytest.fixture
def log_stream():
    return io.StringIO()


@pytest.fixture
def ui(log_stream):
    return TerminalUI(pretty=False, stream=log_stream)


@pytest.fixture
def fake_client():
    return FakeClient()
