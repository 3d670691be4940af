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

"""Helpers for turning free-form "now playing" strings into artist/title pairs."""

import re
from typing import Optional, Tuple

ArtistTitle = Tuple[Optional[str], Optional[str]]

_BY_PATTERN = re.compile(r'^(?P<title>.+?)\s+by\s+(?P<artist>.+)$', re.IGNORECASE)
_COLON_PATTERN = re.compile(r'^(?P<artist>[^:]+?)\s*:\s+(?P<title>.+)$')


def strip_wrapping_quotes(value: str) -> str:
    """Remove a single layer of matching quotes from the ends of a string."""
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


def split_stream_title(value: Optional[str]) -> ArtistTitle:
    """
    Split a protocol-level title on the first literal ``" - "``.

    The left side is the artist and the right side the title. Without a
    separator (or with an empty side) the whole value is the title and no
    artist is reported.
    """
    if not value:
        return None, None

    cleaned = strip_wrapping_quotes(value.strip()).strip()
    if not cleaned:
        return None, None

    if ' - ' in cleaned:
        artist, title = cleaned.split(' - ', 1)
        artist = artist.strip()
        title = title.strip()
        if artist and title:
            return artist, title

    return None, cleaned


def split_artist_title(raw: Optional[str]) -> ArtistTitle:
    """
    Best-effort split of a combined string for enrichment lookups.

    Formats are tried in priority order: ``Artist - Title``, ``Title by Artist``,
    ``Artist: Title``. Anything else is returned as a title with no artist.
    """
    if not raw:
        return None, None

    text = ' '.join(raw.split())
    if not text:
        return None, None

    artist, title = split_stream_title(text)
    if artist:
        return artist, title

    match = _BY_PATTERN.match(text)
    if match:
        return match.group('artist').strip(), match.group('title').strip()

    match = _COLON_PATTERN.match(text)
    if match:
        return match.group('artist').strip(), match.group('title').strip()

    return None, text
