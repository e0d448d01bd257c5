from pathlib import Path

import pytest

from srtforge.core.srt import (
    SubtitleBlock,
    SubtitleFormatError,
    format_timestamp,
    parse_srt,
    parse_timestamp,
    read_srt,
    serialize_srt,
    write_srt,
)

SAMPLE = "\ufeff" + """1
00:00:01,000 --> 00:00:02,500
Hello there

2
00:00:03,000 --> 00:00:04,000
First line
second line

3
00:00:05,000 --> 00:00:06,000
42
"""


def test_format_and_parse_timestamp():
    assert format_timestamp(3_723_004) == "01:02:03,004"
    assert format_timestamp(-5) == "00:00:00,000"
    assert parse_timestamp("01:02:03,004") == 3_723_004
    assert parse_timestamp("1:02:03.004") == 3_723_004
    with pytest.raises(SubtitleFormatError):
        parse_timestamp("1:2:3")


def test_parse_srt_blocks():
    blocks = parse_srt(SAMPLE)
    assert [b.number for b in blocks] == [1, 2, 3]
    assert blocks[0].start_ms == 1000 and blocks[0].end_ms == 2500
    assert blocks[1].text == "First line\nsecond line"
    assert blocks[2].text == "42"


def test_numeric_text_line_followed_by_new_block():
    content = "1\n00:00:01,000 --> 00:00:02,000\nCount\n2\n00:00:03,000 --> 00:00:04,000\nNext\n"
    blocks = parse_srt(content)
    assert [b.text for b in blocks] == ["Count", "Next"]
    assert blocks[1].number == 2


def test_blocks_without_timing_are_dropped():
    content = "stray\n\n1\nno timing here\n\n2\n00:00:01,000 --> 00:00:02,000\nkept\n"
    blocks = parse_srt(content)
    assert len(blocks) == 1
    assert blocks[0].text == "kept"


def test_serialize_and_write(tmp_path: Path):
    blocks = [SubtitleBlock(1, 0, 1500, "a"), SubtitleBlock(2, 2000, 3000, "b")]
    text = serialize_srt(blocks)
    assert text == "1\n00:00:00,000 --> 00:00:01,500\na\n\n2\n00:00:02,000 --> 00:00:03,000\nb\n"
    assert serialize_srt([]) == ""

    out = write_srt(blocks, tmp_path / "nested" / "out.srt")
    assert read_srt(out) == blocks


def test_read_srt_missing_file(tmp_path: Path):
    with pytest.raises(SubtitleFormatError):
        read_srt(tmp_path / "nope.srt")


def test_cue_without_text_does_not_swallow_next_cue():
    content = "1\n00:00:01,000 --> 00:00:02,000\n\n2\n00:00:03,000 --> 00:00:04,000\nHello\n"
    blocks = parse_srt(content)
    assert len(blocks) == 1
    assert (blocks[0].number, blocks[0].start_ms, blocks[0].text) == (2, 3000, "Hello")
