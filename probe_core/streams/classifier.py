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
Transport classification for a single stream URL.

``probe_stream`` resolves playlist links, looks at the response headers of the
media URL and hands off to the HLS/ID3 reader or the ICY reader. It is the
first strategy of the extraction cascade but can be used on its own.
"""

import asyncio
import logging
import re
from typing import Mapping, Optional

import aiohttp

from ..errors import ProbeNetworkError, ProbeParseError
from ..fetch import ensure_session, open_stream, validate_stream_url
from ..models import MetadataSource, NowPlayingResult
from ..settings import ProbeSettings
from .headers import has_icy_headers
from .hls import probe_hls
from .icy import probe_icy
from .playlist import is_likely_playlist_url, resolve_playlist

logger = logging.getLogger(__name__)

_HLS_CONTENT_TYPE = re.compile(r'application/(vnd\.apple\.mpegurl|x-mpegurl)', re.IGNORECASE)
_HLS_URL = re.compile(r'\.m3u8($|\?)', re.IGNORECASE)
_ICY_SERVER = re.compile(r'icecast|shoutcast', re.IGNORECASE)
_PLAYLIST_CONTENT_TYPES = ('audio/x-mpegurl', 'audio/mpegurl', 'audio/x-scpls', 'audio/scpls')
_METADATA_URL_HINTS = ('shoutcast', 'icecast', 'stream', 'live')
_AUDIO_EXTENSIONS = ('.mp3', '.aac', '.ogg')

PROBE_FAILURES = (ProbeNetworkError, ProbeParseError, aiohttp.ClientError, asyncio.TimeoutError)


def _mime(content_type: Optional[str]) -> str:
    return (content_type or '').split(';', 1)[0].strip().lower()


def looks_like_hls(content_type: Optional[str], url: Optional[str] = None) -> bool:
    return bool(
        (content_type and _HLS_CONTENT_TYPE.search(content_type))
        or (url and _HLS_URL.search(url))
    )


def looks_like_icy(headers: Mapping[str, str]) -> bool:
    """``icy-metaint``, any other ``icy-*`` header, or an Icecast/Shoutcast ``Server`` header."""
    if headers.get('icy-metaint') is not None or has_icy_headers(headers):
        return True
    return bool(_ICY_SERVER.search(headers.get('Server') or ''))


def is_audio_content_type(content_type: Optional[str]) -> bool:
    mime = _mime(content_type)
    return mime.startswith('audio/') and mime not in _PLAYLIST_CONTENT_TYPES


def stream_likely_has_metadata(url: str, content_type: Optional[str] = None) -> bool:
    """Cheap guess, without any network traffic, whether a URL is worth probing for metadata."""
    lowered = url.lower()
    if any(hint in lowered for hint in _METADATA_URL_HINTS):
        return True
    if _mime(content_type) in ('audio/mpeg', 'audio/aac', 'audio/aacp', 'audio/ogg'):
        return True
    return lowered.endswith(_AUDIO_EXTENSIONS)


async def _resolve_quietly(session: aiohttp.ClientSession, url: str, settings: ProbeSettings) -> Optional[str]:
    try:
        return await resolve_playlist(session, url, settings)
    except PROBE_FAILURES as exc:
        logger.debug("Playlist resolution for %s failed: %s", url, exc)
        return None


async def _open_for_classification(session: aiohttp.ClientSession, url: str, settings: ProbeSettings):
    response = await open_stream(session, url, settings, icy=True)
    if response.status < 400:
        return response

    # Some servers refuse the Icy-MetaData header outright
    logger.info("%s answered HTTP %s to an ICY request; retrying without the header", url, response.status)
    response.close()
    return await open_stream(session, url, settings, icy=False)


async def _probe(
    session: aiohttp.ClientSession,
    url: str,
    settings: ProbeSettings,
    depth: int,
) -> NowPlayingResult:
    target = url
    if is_likely_playlist_url(target):
        target = await _resolve_quietly(session, target, settings) or target

    response = await _open_for_classification(session, target, settings)
    try:
        if response.status >= 400:
            raise ProbeNetworkError(
                f"GET {target} returned HTTP {response.status}",
                url=target,
                status=response.status,
            )
        headers = response.headers
        content_type = headers.get('Content-Type', '')
        final_url = str(response.url)
    finally:
        # Only headers are needed here; the readers open their own requests
        response.close()

    logger.debug("Classifying %s (content-type=%r)", final_url, content_type)

    if looks_like_hls(content_type, final_url):
        try:
            hls = await probe_hls(session, final_url, settings)
        except PROBE_FAILURES as exc:
            logger.debug("HLS probe of %s failed: %s", final_url, exc)
            hls = None
        if hls is not None:
            return hls

    if looks_like_icy(headers) or is_audio_content_type(content_type):
        try:
            icy = await probe_icy(session, final_url, settings, hint_headers=headers)
        except PROBE_FAILURES as exc:
            logger.debug("ICY probe of %s failed: %s", final_url, exc)
            icy = None
        if icy is not None:
            return icy

    if depth < 1 and is_likely_playlist_url(final_url):
        resolved = await _resolve_quietly(session, final_url, settings)
        if resolved and resolved != final_url:
            nested = await _probe(session, resolved, settings, depth + 1)
            nested.add_note(f"Resolved from {final_url}")
            return nested

    return NowPlayingResult(
        url=final_url,
        source=MetadataSource.UNKNOWN,
        method='probe:UNKNOWN',
        notes=f"Unrecognized stream type (content-type: {content_type or 'n/a'})",
    )


async def probe_stream(
    url: str,
    *,
    session: Optional[aiohttp.ClientSession] = None,
    settings: Optional[ProbeSettings] = None,
) -> NowPlayingResult:
    """
    Classify ``url`` and read now-playing data with the matching reader.

    Raises ``InvalidStreamURLError`` for a malformed URL and
    ``ProbeNetworkError`` when the media URL cannot be fetched at all.
    """
    url = validate_stream_url(url)
    settings = settings or ProbeSettings()
    async with ensure_session(session) as active:
        return await _probe(active, url, settings, depth=0)
