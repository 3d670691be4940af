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
Reader for the Shoutcast/Icecast inline ("ICY") metadata protocol.

With ``Icy-MetaData: 1`` in the request, an ICY server interleaves its audio
with metadata: ``icy-metaint`` audio bytes, one length byte ``n``, then
``n * 16`` bytes of Latin-1 text such as ``StreamTitle='Artist - Title';``
padded with NULs. The pattern repeats for as long as the connection stays up,
so the reader pulls only until the first useful block and then closes the
socket.
"""

import asyncio
import logging
import re
from typing import Dict, Mapping, Optional, Tuple

import aiohttp

from probe_utils.text import split_stream_title, strip_wrapping_quotes

from ..errors import IcyProtocolError
from ..fetch import open_stream
from ..models import MetadataSource, NowPlayingResult
from ..settings import ProbeSettings
from .headers import parse_station_headers

logger = logging.getLogger(__name__)

ICY_BLOCK_UNIT = 16
AUDIO_SKIP_CHUNK = 16_384

_ICY_FIELD = re.compile(
    r"(?P<key>[A-Za-z][A-Za-z0-9_]*)='(?P<value>.*?)';(?=\s*[A-Za-z][A-Za-z0-9_]*=|[\s\x00]*$)",
    re.DOTALL,
)
_TITLE_ATTRIBUTE = re.compile(r'(?P<key>[A-Za-z_]+)="(?P<value>[^"]*)"')
_ATTRIBUTE_PREFIX = re.compile(r'^(?P<artist>.+?)\s+-\s*(?:text|song|title)="')


def parse_metaint(value: Optional[str]) -> int:
    """``icy-metaint`` as an int; 0 when missing or malformed."""
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 0


def decode_icy_block(block: bytes) -> str:
    """ICY metadata is Latin-1 by convention; NUL padding is dropped."""
    return block.rstrip(b'\x00').decode('latin-1').strip()


def parse_icy_metadata(text: str) -> Dict[str, str]:
    """Split ``Key='value';Key2='value2';`` into a mapping."""
    fields: Dict[str, str] = {}
    for match in _ICY_FIELD.finditer(text):
        fields[match.group('key')] = match.group('value').strip()

    if fields:
        return fields

    # Servers that omit the terminating semicolon or the quotes
    for part in text.split(';'):
        part = part.strip().strip('\x00')
        if not part or '=' not in part:
            continue
        key, value = part.split('=', 1)
        key = key.strip()
        if key:
            fields[key] = strip_wrapping_quotes(value.strip())
    return fields


def parse_stream_title(value: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Turn a ``StreamTitle`` value into ``(artist, title)``.

    Plain values are split on the first ``" - "``. Values carrying attribute
    markup (``Artist - text="Title" song_spot="M" ...``) take the title from the
    ``text``/``song``/``title`` attribute and the artist from an ``artist``
    attribute or the prefix before ``" - "``.
    """
    if not value:
        return None, None

    attributes = {
        match.group('key').lower(): match.group('value').strip()
        for match in _TITLE_ATTRIBUTE.finditer(value)
    }
    attribute_title = attributes.get('text') or attributes.get('song') or attributes.get('title')
    if attribute_title:
        artist = attributes.get('artist')
        if not artist:
            prefix = _ATTRIBUTE_PREFIX.match(value)
            if prefix:
                artist = prefix.group('artist').strip() or None
        return artist, attribute_title

    return split_stream_title(value)


class IcyMetadataStream:
    """
    Explicit cursor over an ICY response body.

    ``offset`` counts body bytes consumed so far. The cursor owns the
    response: ``close()`` releases the socket and every later read fails.
    """

    def __init__(self, response, metaint: int):
        if metaint <= 0:
            raise ValueError(f"metaint must be positive, got {metaint}")
        self._response = response
        self._content = response.content
        self.metaint = metaint
        self.offset = 0
        self.blocks_read = 0
        self.closed = False

    async def __aenter__(self) -> 'IcyMetadataStream':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._response.close()

    async def _read_exactly(self, size: int) -> bytes:
        if self.closed:
            raise IcyProtocolError("ICY stream already closed")
        try:
            data = await self._content.readexactly(size)
        except asyncio.IncompleteReadError as exc:
            raise IcyProtocolError(
                f"stream ended after {self.offset + len(exc.partial)} bytes "
                f"while waiting for {size} more"
            ) from exc
        self.offset += size
        return data

    async def skip_audio(self) -> None:
        remaining = self.metaint
        while remaining:
            step = min(remaining, AUDIO_SKIP_CHUNK)
            await self._read_exactly(step)
            remaining -= step

    async def read_block(self) -> str:
        """Skip one audio interval and return the metadata block that follows ('' if empty)."""
        await self.skip_audio()
        length = (await self._read_exactly(1))[0] * ICY_BLOCK_UNIT
        self.blocks_read += 1
        if length == 0:
            return ''
        return decode_icy_block(await self._read_exactly(length))

    async def first_metadata(self, max_blocks: int) -> Optional[Dict[str, str]]:
        """Return the fields of the first non-empty block within ``max_blocks`` blocks."""
        for _ in range(max_blocks):
            text = await self.read_block()
            if not text:
                continue
            fields = parse_icy_metadata(text)
            if fields:
                return fields
            logger.debug("Skipping unparseable ICY block at offset %s: %r", self.offset, text[:80])
        return None


async def probe_icy(
    session: aiohttp.ClientSession,
    url: str,
    settings: ProbeSettings,
    *,
    hint_headers: Optional[Mapping[str, str]] = None,
    source: MetadataSource = MetadataSource.ICY,
    method: str = 'probe:ICY',
) -> Optional[NowPlayingResult]:
    """
    Read the first ICY metadata block from ``url``.

    Returns ``None`` when the server does not speak the protocol (no usable
    ``icy-metaint``). A timeout or an early end of stream still returns the
    station details already known from the headers.
    """
    response = await open_stream(session, url, settings, icy=True)
    try:
        if response.status >= 400:
            logger.debug("ICY request to %s returned HTTP %s", url, response.status)
            return None

        metaint_header = response.headers.get('icy-metaint')
        metaint = parse_metaint(metaint_header)
        if metaint <= 0:
            logger.debug("%s does not advertise ICY metadata (icy-metaint=%s)", url, metaint_header)
            return None
        if metaint > settings.max_icy_metaint:
            logger.warning("%s advertises implausible icy-metaint=%s; skipping", url, metaint)
            return None

        info = parse_station_headers(response.headers)
        if hint_headers is not None:
            hint = parse_station_headers(hint_headers)
            info.station = info.station or hint.station
            info.genre = info.genre or hint.genre
            info.bitrate = info.bitrate or hint.bitrate
            info.description = info.description or hint.description

        result = NowPlayingResult(
            url=str(response.url),
            source=source,
            method=method,
            station=info.station,
            genre=info.genre,
            bitrate=info.bitrate,
            description=info.description,
            raw=dict(info.raw),
        )

        async with IcyMetadataStream(response, metaint) as stream:
            try:
                fields = await asyncio.wait_for(
                    stream.first_metadata(settings.max_icy_blocks),
                    timeout=settings.icy_read_timeout,
                )
            except asyncio.TimeoutError:
                logger.info("Timed out waiting for ICY metadata from %s", url)
                result.add_note('Timeout waiting for ICY metadata')
                return result
            except IcyProtocolError as exc:
                logger.debug("ICY stream from %s ended early: %s", url, exc)
                result.add_note('Stream ended before receiving metadata')
                return result

        if not fields:
            result.add_note('ICY metadata present but no current song info')
            return result

        result.raw.update(fields)
        stream_title = fields.get('StreamTitle')
        if stream_title:
            result.artist, result.title = parse_stream_title(stream_title)
        else:
            result.add_note('ICY metadata present but no current song info')

        logger.info("ICY metadata from %s: %r", url, stream_title)
        return result
    finally:
        response.close()
