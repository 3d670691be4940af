"""
Station Probe - Now Playing Metadata Extraction
Copyright (c) 2025 Timothy Kramer (KR8MER)

This file is part of Station Probe.

Station Probe is dual-licensed software:
- GNU Affero General Public License v3 (AGPL-3.0) for open-source use
- Commercial License for proprietary use

IMPORTANT: This software cannot be rebranded or have attribution removed.
"""

from __future__ import annotations

"""
HLS timed-metadata reader.

Live HLS radio often carries the current song as an ID3v2 tag at the start of
each media segment. The reader walks master playlist -> media playlist ->
first segment, fetches only the head of that segment and decodes the
``TIT2``/``TPE1`` text frames.

Only the first available segment is inspected, so for a live stream the
result reflects what was playing a segment or two ago.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urljoin

import aiohttp

from probe_utils.buffers import BufferUnderrunError, ByteCursor

from ..errors import Id3ParseError, ProbeNetworkError
from ..fetch import fetch_text, open_stream, read_limited
from ..models import Id3Frame, Id3Tag, MetadataSource, NowPlayingResult, TextEncoding
from ..settings import ProbeSettings
from .playlist import is_hls_reference

logger = logging.getLogger(__name__)

ID3_MARKER = b'ID3'
ID3_HEADER_SIZE = 10
ID3_FRAME_HEADER_SIZE = 10
SUPPORTED_ID3_VERSIONS = (3, 4)
ID3_FLAG_EXTENDED_HEADER = 0x40
WANTED_FRAMES = ('TIT2', 'TPE1')

_FRAME_ID = re.compile(rb'^[A-Z0-9]{4}$')


# --- ID3v2 ---------------------------------------------------------------

def _strip_padding(body: bytes, encoding: TextEncoding) -> bytes:
    """Drop trailing NUL padding in whole code units; UTF-16 loses a dangling odd byte first."""
    if encoding in (TextEncoding.UTF16, TextEncoding.UTF16BE):
        if len(body) % 2:
            body = body[:-1]
        while body.endswith(b'\x00\x00'):
            body = body[:-2]
        return body
    return body.rstrip(b'\x00')


def decode_text_frame(frame_id: str, payload: bytes) -> Optional[Id3Frame]:
    """Decode a ``T***`` frame body: one encoding byte, then text."""
    if not payload:
        return None

    encoding = TextEncoding.from_marker(payload[0])
    if encoding is None:
        logger.debug("Frame %s uses unknown text encoding %s", frame_id, payload[0])
        return None

    body = _strip_padding(payload[1:], encoding)
    text = body.decode(encoding.codec, errors='replace')
    return Id3Frame(id=frame_id, encoding=encoding, text=text.strip())


def _skip_extended_header(cursor: ByteCursor, version: int) -> None:
    if version == 4:
        # v2.4: synchsafe size includes the size field itself
        size = cursor.read_synchsafe()
        cursor.skip(max(size - 4, 0))
    else:
        size = cursor.read_u32be()
        cursor.skip(size)


def parse_id3_tag(cursor: ByteCursor) -> Id3Tag:
    """
    Parse the tag whose header starts at the cursor position.

    Iteration stops at padding, at the tag end, or at the first frame whose
    declared length is zero or negative; every accepted frame moves the cursor
    forward by at least eleven bytes, so the loop is bounded by the tag size.
    """
    try:
        if cursor.read(3) != ID3_MARKER:
            raise Id3ParseError("missing ID3 marker")
        version = cursor.read_u8()
        cursor.read_u8()  # revision
        flags = cursor.read_u8()
        if version not in SUPPORTED_ID3_VERSIONS:
            raise Id3ParseError(f"unsupported ID3v2.{version} tag")

        tag_size = cursor.read_synchsafe()
        body = cursor.window(tag_size)
        if flags & ID3_FLAG_EXTENDED_HEADER:
            _skip_extended_header(body, version)

        tag = Id3Tag(version=version)
        while body.remaining >= ID3_FRAME_HEADER_SIZE:
            raw_id = body.read(4)
            if not _FRAME_ID.match(raw_id):
                break  # padding or garbage
            frame_size = body.read_synchsafe() if version == 4 else body.read_u32be()
            body.skip(2)  # frame flags
            if frame_size <= 0:
                logger.debug("ID3 frame %r declares length %s; stopping", raw_id, frame_size)
                break

            payload = body.read(min(frame_size, body.remaining))
            frame_id = raw_id.decode('ascii')
            if frame_id.startswith('T'):
                frame = decode_text_frame(frame_id, payload)
                if frame is not None:
                    tag.frames.append(frame)
        return tag
    except BufferUnderrunError as exc:
        raise Id3ParseError(f"truncated ID3 tag: {exc}") from exc


def find_id3_tag(data: bytes) -> Optional[Id3Tag]:
    """Scan ``data`` for the first ID3v2.3/2.4 tag and parse it."""
    cursor = ByteCursor(data)
    position = cursor.find(ID3_MARKER, 0)
    while position != -1:
        if position + ID3_HEADER_SIZE <= len(data) and data[position + 3] in SUPPORTED_ID3_VERSIONS:
            cursor.seek(position)
            try:
                return parse_id3_tag(cursor)
            except Id3ParseError as exc:
                logger.debug("Discarding ID3 candidate at %s: %s", position, exc)
        position = cursor.find(ID3_MARKER, position + 1)
    return None


# --- HLS playlists -------------------------------------------------------

@dataclass
class HlsReference:
    media_playlist_url: Optional[str] = None
    segment_url: Optional[str] = None


def _playlist_entries(text: str) -> List[str]:
    return [line.strip() for line in text.splitlines() if line.strip() and not line.strip().startswith('#')]


def parse_hls_playlist(text: str, base_url: str) -> Optional[HlsReference]:
    """Pick the first variant playlist of a master playlist, or the first segment of a media playlist."""
    entries = _playlist_entries(text)

    for entry in entries:
        if is_hls_reference(entry):
            return HlsReference(media_playlist_url=urljoin(base_url, entry))

    if entries:
        return HlsReference(segment_url=urljoin(base_url, entries[0]))
    return None


async def read_segment_head(
    session: aiohttp.ClientSession,
    segment_url: str,
    settings: ProbeSettings,
) -> bytes:
    """Fetch at most ``hls_segment_read_limit`` bytes from the start of a segment."""
    limit = settings.hls_segment_read_limit
    response = await open_stream(
        session,
        segment_url,
        settings,
        extra_headers={'Range': f"bytes=0-{limit - 1}"},
    )
    try:
        if response.status >= 400:
            raise ProbeNetworkError(
                f"Failed to fetch segment: HTTP {response.status}",
                url=segment_url,
                status=response.status,
            )
        return await read_limited(response, limit)
    finally:
        response.close()


async def probe_hls_segment(
    session: aiohttp.ClientSession,
    segment_url: str,
    settings: ProbeSettings,
) -> NowPlayingResult:
    try:
        head = await read_segment_head(session, segment_url, settings)
    except ProbeNetworkError as exc:
        return NowPlayingResult(
            url=segment_url,
            source=MetadataSource.UNKNOWN,
            method='probe:HLS-ID3',
            notes=str(exc),
        )

    tag = find_id3_tag(head)
    if tag is None:
        return NowPlayingResult(
            url=segment_url,
            source=MetadataSource.HLS_ID3,
            method='probe:HLS-ID3',
            notes='No ID3 timed metadata found in first segment',
        )

    logger.info("ID3v2.%s tag in %s: %r / %r", tag.version, segment_url, tag.artist, tag.title)
    return NowPlayingResult(
        url=segment_url,
        source=MetadataSource.HLS_ID3,
        method='probe:HLS-ID3',
        artist=tag.artist,
        title=tag.title,
        raw={frame.id: frame.text for frame in tag.frames},
    )


async def probe_hls(
    session: aiohttp.ClientSession,
    url: str,
    settings: ProbeSettings,
) -> Optional[NowPlayingResult]:
    """Walk an HLS playlist to its first segment and read any embedded ID3 tag."""
    document = await fetch_text(session, url, settings)
    reference = parse_hls_playlist(document.text, document.url)
    if reference is None:
        return None

    if reference.media_playlist_url:
        media = await fetch_text(session, reference.media_playlist_url, settings)
        media_reference = parse_hls_playlist(media.text, media.url)
        if media_reference is None or not media_reference.segment_url:
            return NowPlayingResult(
                url=url,
                source=MetadataSource.PLAYLIST,
                method='probe:HLS-ID3',
                notes='HLS playlist found but no segment discovered',
            )
        return await probe_hls_segment(session, media_reference.segment_url, settings)

    return await probe_hls_segment(session, reference.segment_url, settings)
