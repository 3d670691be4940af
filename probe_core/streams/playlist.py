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
Playlist resolution for ``.m3u``, ``.m3u8`` and ``.pls`` station links.

Station directories usually hand out a playlist rather than the stream
itself. The resolver follows those text files to the first playable media
URL, capping the number of hops so referential cycles cannot loop forever.
HLS playlists are recognised and left alone for the HLS reader.
"""

import logging
import re
from typing import Optional
from urllib.parse import urljoin, urlparse

import aiohttp

from ..errors import PlaylistParseError
from ..fetch import fetch_text
from ..settings import ProbeSettings

logger = logging.getLogger(__name__)

PLAYLIST_EXTENSIONS = ('.m3u8', '.m3u', '.pls')

_PLS_ENTRY = re.compile(r'^\s*File(?P<index>\d+)\s*=\s*(?P<url>.+?)\s*$', re.IGNORECASE | re.MULTILINE)
_HLS_TAG = re.compile(r'^#EXT-X-', re.MULTILINE)


def is_likely_playlist_url(url: str) -> bool:
    """True when the URL path ends in a playlist extension."""
    path = urlparse(url).path.lower()
    return path.endswith(PLAYLIST_EXTENSIONS)


def is_hls_reference(url: str) -> bool:
    return urlparse(url).path.lower().endswith('.m3u8')


def is_hls_playlist_body(text: str) -> bool:
    """HLS playlists are M3U files carrying ``#EXT-X-`` tags."""
    return text.lstrip('\ufeff \t\r\n').startswith('#EXTM3U') and bool(_HLS_TAG.search(text))


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme.lower() in ('http', 'https') and bool(parsed.netloc)


def parse_pls(text: str, base_url: str) -> Optional[str]:
    """Return the lowest-numbered ``FileN=`` entry of a PLS playlist."""
    entries = sorted(
        ((int(match.group('index')), match.group('url')) for match in _PLS_ENTRY.finditer(text)),
        key=lambda entry: entry[0],
    )
    for _, entry in entries:
        candidate = urljoin(base_url, entry.strip())
        if _is_http_url(candidate):
            return candidate
    return None


def parse_m3u(text: str, base_url: str) -> Optional[str]:
    """
    Return the first non-comment ``http(s)://`` line of an M3U playlist.

    When no absolute URL is present, a relative ``.m3u8`` reference (a variant
    playlist) is resolved against ``base_url`` instead.
    """
    lines = [line.strip() for line in text.splitlines()]
    entries = [line for line in lines if line and not line.startswith('#')]

    for entry in entries:
        if _is_http_url(entry):
            return entry

    for entry in entries:
        if is_hls_reference(entry):
            return urljoin(base_url, entry)

    return None


def parse_playlist(text: str, base_url: str, content_type: str = '') -> Optional[str]:
    """Pick the media URL a playlist body points at, or ``None``."""
    if 'pls' in content_type.lower() or re.search(r'^\s*\[playlist\]', text, re.IGNORECASE | re.MULTILINE):
        entry = parse_pls(text, base_url)
        if entry:
            return entry
    return parse_m3u(text, base_url)


async def resolve_playlist(
    session: aiohttp.ClientSession,
    url: str,
    settings: ProbeSettings,
) -> str:
    """
    Follow playlist files from ``url`` to a media URL.

    Returns the first URL that is not itself a playlist, or the URL of an HLS
    playlist (which the HLS reader walks on its own). Raises
    ``PlaylistParseError`` if a playlist references nothing usable.
    """
    current = url
    visited = {url}

    for hop in range(settings.max_playlist_hops):
        document = await fetch_text(session, current, settings)

        if is_hls_playlist_body(document.text):
            logger.debug("%s is an HLS playlist; handing off unresolved", document.url)
            return document.url

        candidate = parse_playlist(document.text, document.url, document.content_type)
        if not candidate:
            raise PlaylistParseError(f"Playlist {document.url} did not contain a playable stream URL")

        logger.info("Resolved playlist %s (hop %s) to %s", document.url, hop + 1, candidate)

        if candidate in visited:
            logger.warning("Playlist cycle detected at %s; stopping resolution", candidate)
            return candidate
        if not is_likely_playlist_url(candidate):
            return candidate

        visited.add(candidate)
        current = candidate

    logger.warning(
        "Playlist resolution for %s stopped after %s hops at %s",
        url,
        settings.max_playlist_hops,
        current,
    )
    return current
