"""Tests for ID3v2 timed-metadata parsing from HLS segment bytes."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from probe_core.errors import Id3ParseError
from probe_core.models import TextEncoding
from probe_core.streams.hls import decode_text_frame, find_id3_tag, parse_id3_tag
from probe_utils.buffers import ByteCursor

from stream_fixtures import id3_tag, id3_text_frame, synchsafe


def test_v23_title_and_artist_frames():
    """A v2.3 tag with TIT2 and TPE1 yields title and artist."""
    data = id3_tag(
        id3_text_frame('TIT2', 'Song', encoding=0),
        id3_text_frame('TPE1', 'Band', encoding=0),
    )
    tag = find_id3_tag(data)
    assert tag is not None
    assert tag.version == 3
    assert tag.title == 'Song'
    assert tag.artist == 'Band'


def test_v24_uses_synchsafe_frame_sizes():
    # 200 bytes of text pushes the frame size past 127, where synchsafe and plain encodings differ
    long_title = 'x' * 200
    data = id3_tag(
        id3_text_frame('TIT2', long_title, version=4),
        id3_text_frame('TPE1', 'Artist', version=4),
        version=4,
    )
    tag = find_id3_tag(data)
    assert tag.version == 4
    assert tag.title == long_title
    assert tag.artist == 'Artist'


@pytest.mark.parametrize(
    'encoding, expected',
    [
        (0, TextEncoding.LATIN1),
        (1, TextEncoding.UTF16),
        (2, TextEncoding.UTF16BE),
        (3, TextEncoding.UTF8),
    ],
)
def test_text_encodings(encoding, expected):
    data = id3_tag(id3_text_frame('TIT2', 'Café Ünïcode', encoding=encoding))
    tag = find_id3_tag(data)
    assert tag.frames[0].encoding is expected
    assert tag.title == 'Café Ünïcode'


def test_tag_found_after_leading_segment_bytes():
    data = b'\x47' * 188 + id3_tag(id3_text_frame('TIT2', 'Late Tag')) + b'\xff' * 64
    assert find_id3_tag(data).title == 'Late Tag'


def test_zero_length_frame_stops_iteration():
    """A frame declaring length 0 ends the loop instead of spinning on it."""
    zero_frame = b'TIT2' + b'\x00\x00\x00\x00' + b'\x00\x00'
    data = id3_tag(zero_frame, id3_text_frame('TPE1', 'Never Read'))
    tag = find_id3_tag(data)
    assert tag is not None
    assert tag.frames == []


def test_padding_ends_frame_list():
    data = id3_tag(id3_text_frame('TIT2', 'Padded'), padding=64)
    tag = find_id3_tag(data)
    assert [frame.id for frame in tag.frames] == ['TIT2']


def test_non_text_frames_are_ignored():
    private = b'PRIV' + (5).to_bytes(4, 'big') + b'\x00\x00' + b'owner'
    data = id3_tag(private, id3_text_frame('TIT2', 'Only Text'))
    tag = find_id3_tag(data)
    assert [frame.id for frame in tag.frames] == ['TIT2']


def test_oversized_frame_is_clamped_to_tag_body():
    frame = b'TIT2' + (10_000).to_bytes(4, 'big') + b'\x00\x00' + b'\x03Cut Short'
    data = id3_tag(frame)
    assert find_id3_tag(data).title == 'Cut Short'


def test_extended_header_is_skipped():
    extended = (6).to_bytes(4, 'big') + b'\x00' * 6
    data = id3_tag(id3_text_frame('TIT2', 'After Extended'), flags=0x40, extended=extended)
    assert find_id3_tag(data).title == 'After Extended'


def test_v24_extended_header_size_includes_itself():
    extended = synchsafe(6) + b'\x01\x00'
    data = id3_tag(
        id3_text_frame('TIT2', 'Four', version=4),
        version=4,
        flags=0x40,
        extended=extended,
    )
    assert find_id3_tag(data).title == 'Four'


def test_unsupported_version_is_skipped():
    data = b'ID3' + bytes([2, 0, 0]) + synchsafe(0)
    assert find_id3_tag(data) is None
    with pytest.raises(Id3ParseError):
        parse_id3_tag(ByteCursor(data))


def test_truncated_header_raises_parse_error():
    with pytest.raises(Id3ParseError):
        parse_id3_tag(ByteCursor(b'ID3\x03\x00'))


def test_no_marker_returns_none():
    assert find_id3_tag(b'\x00' * 1024) is None


def test_utf16_frame_with_single_trailing_nul():
    """An odd trailing NUL after UTF-16 text is dropped, not decoded as a replacement character."""
    payload = b'\x01' + 'Song'.encode('utf-16') + b'\x00'
    frame = decode_text_frame('TIT2', payload)
    assert frame.text == 'Song'


def test_utf16be_padding_stripped_in_code_units():
    # U+0100 ends in a zero byte and must survive stripping
    payload = b'\x02' + '\u0100'.encode('utf-16-be') + b'\x00\x00\x00\x00'
    assert decode_text_frame('TPE1', payload).text == '\u0100'


def test_utf16_frame_inside_tag_with_odd_padding():
    payload = b'\x01' + 'Band'.encode('utf-16') + b'\x00'
    frame = b'TPE1' + len(payload).to_bytes(4, 'big') + b'\x00\x00' + payload
    assert find_id3_tag(id3_tag(frame)).artist == 'Band'
