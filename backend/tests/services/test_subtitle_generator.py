"""
Tests for scriptcast.services.subtitle_generator
"""

import pytest

from scriptcast.models.video import AudioChunk
from scriptcast.services.subtitle_generator import (
    build_cues,
    format_srt_timestamp,
    render_srt,
    write_srt,
)


def chunk(index, text, duration):
    return AudioChunk(index=index, path=f"chunk_{index:03d}.mp3", text=text, duration_seconds=duration)


@pytest.mark.parametrize("seconds,expected", [
    (0, "00:00:00,000"),
    (12.5, "00:00:12,500"),
    (3661.5, "01:01:01,500"),
    (59.9996, "00:01:00,000"),
])
def test_format_srt_timestamp(seconds, expected):
    assert format_srt_timestamp(seconds) == expected


def test_cues_subtract_crossfade_after_first_chunk():
    cues = build_cues([chunk(0, "Hello.", 2.0), chunk(1, "World.", 3.0)], crossfade=0.3)
    assert [(c.start, c.end) for c in cues] == [
        pytest.approx((0.0, 2.0)),
        pytest.approx((1.7, 4.7)),
    ]
    assert [c.index for c in cues] == [1, 2]


def test_cues_start_after_intro():
    cues = build_cues([chunk(0, "Hello.", 2.0)], crossfade=0.3, offset=4.0)
    assert cues[0].start == pytest.approx(4.0)
    assert cues[0].end == pytest.approx(6.0)


def test_unmeasured_chunk_is_rejected():
    with pytest.raises(ValueError):
        build_cues([AudioChunk(index=0, path="a.mp3", text="x")], crossfade=0.3)


def test_render_and_write(tmp_path):
    cues = build_cues([chunk(0, "Hello.", 2.0), chunk(1, "World.", 1.5)], crossfade=0.5)
    expected = (
        "1\n00:00:00,000 --> 00:00:02,000\nHello.\n"
        "\n"
        "2\n00:00:01,500 --> 00:00:03,000\nWorld.\n"
    )
    assert render_srt(cues) == expected

    path = write_srt(cues, tmp_path / "out" / "subtitles.srt")
    assert path.read_text(encoding="utf-8") == expected
