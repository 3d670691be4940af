"""
Station Probe - Now Playing Metadata Extraction
Copyright (c) 2025 Timothy Kramer (KR8MER)

This file is part of Station Probe.

Station Probe is dual-licensed software:
- GNU Affero General Public License v3 (AGPL-3.0) for open-source use
- Commercial License for proprietary use

IMPORTANT: This software cannot be rebranded or have attribution removed.
"""

"""Stream readers: playlists, ICY, HLS/ID3, status endpoints, headers and the cascade that ties them together."""

from .cascade import DEFAULT_STRATEGIES, ExtractionStrategy, ProbeContext, extract_now_playing, run_strategies
from .classifier import looks_like_hls, looks_like_icy, probe_stream, stream_likely_has_metadata
from .headers import parse_station_headers, probe_headers
from .hls import find_id3_tag, parse_hls_playlist, probe_hls
from .icy import IcyMetadataStream, parse_icy_metadata, parse_stream_title, probe_icy
from .playlist import is_likely_playlist_url, parse_playlist, resolve_playlist
from .status_json import parse_status_json, probe_status_json

__all__ = [
    'DEFAULT_STRATEGIES',
    'ExtractionStrategy',
    'ProbeContext',
    'extract_now_playing',
    'run_strategies',
    'looks_like_hls',
    'looks_like_icy',
    'probe_stream',
    'stream_likely_has_metadata',
    'parse_station_headers',
    'probe_headers',
    'find_id3_tag',
    'parse_hls_playlist',
    'probe_hls',
    'IcyMetadataStream',
    'parse_icy_metadata',
    'parse_stream_title',
    'probe_icy',
    'is_likely_playlist_url',
    'parse_playlist',
    'resolve_playlist',
    'parse_status_json',
    'probe_status_json',
]
