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

"""Station details advertised in HTTP response headers (ICY, Icecast and legacy audiocast)."""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

import aiohttp

from probe_utils.text import split_stream_title

from ..errors import ProbeNetworkError
from ..fetch import request_headers
from ..models import MetadataSource, NowPlayingResult
from ..settings import ProbeSettings

logger = logging.getLogger(__name__)

# First header present wins.
STATION_HEADERS = ('icy-name', 'ice-name', 'x-audiocast-name')
GENRE_HEADERS = ('icy-genre', 'ice-genre', 'x-audiocast-genre')
DESCRIPTION_HEADERS = ('icy-description', 'ice-description', 'x-audiocast-description')
BITRATE_HEADERS = ('icy-br', 'ice-bitrate', 'x-audiocast-bitrate')
TITLE_HEADERS = ('icy-title', 'ice-title', 'x-audiocast-title')

METADATA_HEADER_PREFIXES = ('icy-', 'ice-', 'x-audiocast-')

# Server defaults that carry no information
PLACEHOLDER_VALUES = {'', '-', 'no name', 'unspecified name', 'unspecified description', 'this is my server description'}

_AUDIO_INFO_BITRATE = re.compile(r'(?:^|;)\s*(?:ice-)?bitrate=(?P<bitrate>\d+)', re.IGNORECASE)


@dataclass
class StationHeaders:
    station: Optional[str] = None
    genre: Optional[str] = None
    description: Optional[str] = None
    bitrate: Optional[str] = None
    current_title: Optional[str] = None
    raw: Dict[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not any((self.station, self.genre, self.description, self.bitrate, self.current_title))


def _first_header(headers: Mapping[str, str], names) -> Optional[str]:
    for name in names:
        value = headers.get(name)
        if value is None:
            continue
        value = value.strip()
        if value.lower() in PLACEHOLDER_VALUES:
            continue
        return value
    return None


def parse_station_headers(headers: Mapping[str, str]) -> StationHeaders:
    """Collect station name, genre, description, bitrate and current title from headers."""
    info = StationHeaders(
        station=_first_header(headers, STATION_HEADERS),
        genre=_first_header(headers, GENRE_HEADERS),
        description=_first_header(headers, DESCRIPTION_HEADERS),
        bitrate=_first_header(headers, BITRATE_HEADERS),
        current_title=_first_header(headers, TITLE_HEADERS),
    )

    if info.bitrate is None:
        audio_info = headers.get('ice-audio-info')
        match = _AUDIO_INFO_BITRATE.search(audio_info or '')
        if match:
            info.bitrate = match.group('bitrate')

    for name, value in headers.items():
        if name.lower().startswith(METADATA_HEADER_PREFIXES):
            info.raw[name.lower()] = value

    return info


def has_icy_headers(headers: Mapping[str, str]) -> bool:
    return any(name.lower().startswith('icy-') for name in headers.keys())


async def probe_headers(
    session: aiohttp.ClientSession,
    url: str,
    settings: ProbeSettings,
) -> Optional[NowPlayingResult]:
    """
    HEAD the stream asking for ICY metadata and read what the headers say.

    Returns ``None`` when the server advertises nothing useful.
    """
    try:
        async with session.head(
            url,
            headers=request_headers(settings, icy=True),
            timeout=aiohttp.ClientTimeout(total=settings.header_probe_timeout),
            allow_redirects=True,
        ) as response:
            if response.status >= 400:
                raise ProbeNetworkError(
                    f"HEAD {url} returned HTTP {response.status}",
                    url=url,
                    status=response.status,
                )
            info = parse_station_headers(response.headers)
    except aiohttp.ClientError as exc:
        raise ProbeNetworkError(f"HEAD {url} failed: {exc}", url=url) from exc

    if info.is_empty:
        logger.debug("No station headers advertised by %s", url)
        return None

    artist, title = split_stream_title(info.current_title)
    return NowPlayingResult(
        url=url,
        source=MetadataSource.HEADERS,
        method='headers',
        station=info.station,
        artist=artist,
        title=title,
        genre=info.genre,
        bitrate=info.bitrate,
        description=info.description,
        raw=dict(info.raw),
    )
