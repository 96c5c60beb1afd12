from unittest.mock import MagicMock

import pytest
import requests

from hls_components.state import HttpClient, SegmentLedger, SessionFactory
from hls_components.types import USER_AGENT, FetchFailure


def test_ledger_marks_on_first_sight():
    ledger = SegmentLedger()

    assert ledger.should_download("42")
    assert not ledger.should_download("42")
    assert ledger.should_download("43")
    assert "42" in ledger
    assert len(ledger) == 2


def test_session_factory_reuses_session_per_thread():
    sessions = SessionFactory()

    first = sessions.get()

    assert first is sessions.get()
    assert first.headers["User-Agent"] == USER_AGENT


def _client_with_response(response):
    session = MagicMock()
    session.get.return_value.__enter__.return_value = response
    sessions = MagicMock()
    sessions.get.return_value = session
    return HttpClient(timeout=5, sessions=sessions), session


def test_get_returns_body():
    response = MagicMock()
    response.content = b"#EXTM3U\n"
    client, session = _client_with_response(response)

    assert client.get_text("https://h/pl.m3u8") == "#EXTM3U\n"
    session.get.assert_called_once_with("https://h/pl.m3u8", timeout=5)


def test_get_wraps_http_errors():
    response = MagicMock()
    response.raise_for_status.side_effect = requests.HTTPError("404 Client Error")
    client, _ = _client_with_response(response)

    with pytest.raises(FetchFailure) as excinfo:
        client.get("https://h/pl.m3u8")
    assert excinfo.value.url == "https://h/pl.m3u8"


def test_get_wraps_transport_errors():
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("refused")
    sessions = MagicMock()
    sessions.get.return_value = session

    with pytest.raises(FetchFailure):
        HttpClient(sessions=sessions).get("https://h/pl.m3u8")


def test_download_writes_through_part_file(tmp_path):
    response = MagicMock()
    response.iter_content.return_value = [b"abc", b"", b"def"]
    client, _ = _client_with_response(response)
    out = tmp_path / "seg.ts"

    assert client.download("https://h/seg.ts", out) == 6
    assert out.read_bytes() == b"abcdef"
    assert not (tmp_path / "seg.ts.part").exists()


def test_failed_download_leaves_no_file(tmp_path):
    response = MagicMock()
    response.iter_content.side_effect = requests.ConnectionError("reset")
    client, _ = _client_with_response(response)
    out = tmp_path / "seg.ts"

    with pytest.raises(FetchFailure):
        client.download("https://h/seg.ts", out)
    assert not out.exists()
    assert not (tmp_path / "seg.ts.part").exists()
