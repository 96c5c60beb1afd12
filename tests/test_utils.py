import re

import pytest

from hls_components.types import InvalidURL
from hls_components.utils import (
    build_segment_filename,
    derive_output_dir_name,
    ensure_url,
    fetch_stamp,
)


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://cdn.example.com/live/show!.m3u8", "show__hls_segments"),
        ("https://cdn.example.com/live/", "cdn_example_com_hls_segments"),
        ("https://cdn.example.com", "cdn_example_com_hls_segments"),
        ("https://cdn.example.com/live/index.m3u8?token=abc", "index_hls_segments"),
        ("https://cdn.example.com/live/my stream.v2.m3u8", "my_stream_v2_hls_segments"),
        ("https://cdn.example.com/live/channel-1_hd", "channel-1_hd_hls_segments"),
    ],
)
def test_derive_output_dir_name(url, expected):
    assert derive_output_dir_name(url) == expected


def test_derive_output_dir_name_without_host_or_file():
    with pytest.raises(InvalidURL):
        derive_output_dir_name("/")


def test_segment_filename_layout():
    name = build_segment_filename("https://h/live/segment00042.ts?tok=1", "20260101_120000", 7)

    assert name == "20260101_120000_00007_segment00042.ts"


def test_segment_filename_forces_ts_extension():
    assert build_segment_filename("https://h/live/chunk.aac", "S", 0) == "S_00000_chunk.aac.ts"
    assert build_segment_filename("https://h/live/chunk", "S", 1) == "S_00001_chunk.ts"


def test_segment_filename_falls_back_when_name_missing():
    assert build_segment_filename("https://h/live/", "S", 2) == "S_00002_segment.ts"


def test_segment_filenames_sort_in_batch_order():
    stamp = "20260101_120000"
    names = [build_segment_filename(f"https://h/{n}.ts", stamp, i) for i, n in enumerate("zyxw" * 3)]

    assert sorted(names) == names


def test_fetch_stamp_format():
    assert re.fullmatch(r"\d{8}_\d{6}", fetch_stamp())


def test_ensure_url():
    assert ensure_url("  cdn.example.com/live/a.m3u8 ") == "https://cdn.example.com/live/a.m3u8"
    assert ensure_url("http://h/a.m3u8") == "http://h/a.m3u8"
    for bad in ["", "ftp://h/a.m3u8", "http://[::1/a.m3u8"]:
        with pytest.raises(InvalidURL):
            ensure_url(bad)
