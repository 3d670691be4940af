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
Icecast / Shoutcast status endpoints.

Many servers publish a JSON status document next to their mounts. Icecast
2.4+ serves ``/status-json.xsl`` (``icestats.source`` is a list, or a single
object when only one mount is live); Shoutcast DNAS serves a flat document
with ``songtitle``/``servertitle``. Each endpoint gets its own short timeout
and failures simply move on to the next one.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse

import aiohttp

from probe_utils.text import split_stream_title

from ..errors import ProbeNetworkError, StatusPayloadError
from ..fetch import fetch_text
from ..models import MetadataSource, NowPlayingResult
from ..settings import ProbeSettings

logger = logging.getLogger(__name__)

STATUS_ENDPOINTS = (
    '/status-json.xsl',
    '/stats?json=1',
    '/stats',
    '/json.xsl',
)

STATUS_BODY_LIMIT = 512_000


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _int(value: Any) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _pick_icecast_source(sources, mountpoint: str) -> Optional[Mapping[str, Any]]:
    candidates = [source for source in sources if isinstance(source, Mapping)]
    if not candidates:
        return None
    if mountpoint and mountpoint != '/':
        for source in candidates:
            listen_url = str(source.get('listenurl') or '')
            if urlparse(listen_url).path == mountpoint or listen_url.endswith(mountpoint):
                return source
    return candidates[0]


def _apply_title(result: NowPlayingResult, title: Optional[str], artist: Optional[str] = None) -> None:
    if not title:
        return
    if artist:
        result.artist, result.title = artist, title
    else:
        result.artist, result.title = split_stream_title(title)
    result.raw['title'] = title


def parse_status_json(data: Any, mountpoint: str, url: str = '') -> Optional[NowPlayingResult]:
    """Map an Icecast or Shoutcast status document onto a result, or ``None``."""
    if not isinstance(data, Mapping):
        return None

    icestats = data.get('icestats')
    if isinstance(icestats, Mapping) and icestats.get('source'):
        sources = icestats['source']
        if isinstance(sources, Mapping):
            sources = [sources]
        source = _pick_icecast_source(sources, mountpoint) if isinstance(sources, list) else None
        if source is None:
            return None

        result = NowPlayingResult(
            url=url,
            source=MetadataSource.JSON,
            station=_text(source.get('server_name')),
            genre=_text(source.get('genre')),
            bitrate=_text(source.get('bitrate')),
            listeners=_int(source.get('listeners')),
            description=_text(source.get('server_description')),
        )
        _apply_title(result, _text(source.get('title')), _text(source.get('artist')))
        if source.get('listenurl'):
            result.raw['listenurl'] = source['listenurl']
        return result

    if data.get('songtitle') or data.get('servertitle'):
        result = NowPlayingResult(
            url=url,
            source=MetadataSource.JSON,
            station=_text(data.get('servertitle')),
            genre=_text(data.get('servergenre')),
            bitrate=_text(data.get('bitrate')),
            listeners=_int(data.get('currentlisteners')),
        )
        _apply_title(result, _text(data.get('songtitle')))
        return result

    return None


def status_endpoint_urls(stream_url: str):
    parsed = urlparse(stream_url)
    base = f"{parsed.scheme}://{parsed.netloc}"
    return [f"{base}{path}" for path in STATUS_ENDPOINTS]


async def fetch_status_document(
    session: aiohttp.ClientSession,
    endpoint: str,
    settings: ProbeSettings,
) -> Dict[str, Any]:
    document = await fetch_text(
        session,
        endpoint,
        settings,
        timeout=settings.status_json_timeout,
        headers={'Accept': 'application/json'},
        limit=STATUS_BODY_LIMIT,
    )
    try:
        # Icecast serves this as text/javascript or text/xsl, so the content type is ignored
        data = json.loads(document.text)
    except ValueError as exc:
        raise StatusPayloadError(f"{endpoint} did not return JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise StatusPayloadError(f"{endpoint} returned JSON {type(data).__name__}, expected object")
    return data


async def probe_status_json(
    session: aiohttp.ClientSession,
    url: str,
    settings: ProbeSettings,
) -> Optional[NowPlayingResult]:
    """Try each conventional status endpoint on the stream's origin in turn."""
    mountpoint = urlparse(url).path

    for endpoint in status_endpoint_urls(url):
        try:
            data = await fetch_status_document(session, endpoint, settings)
        except (ProbeNetworkError, StatusPayloadError, aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.debug("Status endpoint %s unusable: %s", endpoint, exc)
            continue

        result = parse_status_json(data, mountpoint, url)
        if result is not None:
            result.method = f"json:{endpoint}"
            return result
        logger.debug("Status endpoint %s returned no recognised station data", endpoint)

    return None
