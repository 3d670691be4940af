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
HTTP plumbing shared by the stream readers.

All requests go through ``aiohttp``. Streaming responses are never consumed
implicitly: callers read what they need and close the response themselves.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Mapping, Optional
from urllib.parse import urlparse

import aiohttp

from .errors import InvalidStreamURLError, ProbeNetworkError
from .settings import ProbeSettings

logger = logging.getLogger(__name__)

ICY_METADATA_HEADER = 'Icy-MetaData'


def validate_stream_url(url: str) -> str:
    """Return the stripped URL or raise ``InvalidStreamURLError``."""
    if not isinstance(url, str) or not url.strip():
        raise InvalidStreamURLError("stream URL must be a non-empty string")

    candidate = url.strip()
    parsed = urlparse(candidate)
    if parsed.scheme.lower() not in ('http', 'https'):
        raise InvalidStreamURLError(f"Unsupported stream URL scheme '{parsed.scheme}'")
    if not parsed.netloc or not parsed.hostname:
        raise InvalidStreamURLError("Invalid stream URL: missing hostname")
    try:
        parsed.port
    except ValueError as exc:
        raise InvalidStreamURLError(f"Invalid stream URL port: {exc}") from exc

    return candidate


def request_headers(settings: ProbeSettings, *, icy: bool = False, extra: Optional[Mapping[str, str]] = None) -> dict:
    headers = {'User-Agent': settings.user_agent}
    if icy:
        headers[ICY_METADATA_HEADER] = '1'
    if extra:
        headers.update(extra)
    return headers


def streaming_timeout(settings: ProbeSettings) -> aiohttp.ClientTimeout:
    """Bound connection setup and each socket read, but not the whole body."""
    return aiohttp.ClientTimeout(
        total=None,
        sock_connect=settings.connect_timeout,
        sock_read=settings.connect_timeout,
    )


@asynccontextmanager
async def ensure_session(session: Optional[aiohttp.ClientSession]) -> AsyncIterator[aiohttp.ClientSession]:
    """Yield ``session`` or a private one that is closed on exit."""
    if session is not None:
        yield session
        return

    owned = aiohttp.ClientSession()
    try:
        yield owned
    finally:
        await owned.close()


@dataclass
class TextDocument:
    """A small text body fetched over HTTP."""
    url: str
    status: int
    content_type: str
    headers: Mapping[str, str]
    text: str


async def read_limited(response: aiohttp.ClientResponse, limit: int) -> bytes:
    """Read at most ``limit`` body bytes, stopping early at end of stream."""
    chunks = []
    total = 0
    while total < limit:
        chunk = await response.content.read(min(65_536, limit - total))
        if not chunk:
            break
        chunks.append(chunk)
        total += len(chunk)
    return b''.join(chunks)


async def fetch_text(
    session: aiohttp.ClientSession,
    url: str,
    settings: ProbeSettings,
    *,
    timeout: Optional[float] = None,
    headers: Optional[Mapping[str, str]] = None,
    limit: Optional[int] = None,
) -> TextDocument:
    """GET a text document, following redirects, within a total timeout."""
    total = settings.connect_timeout if timeout is None else timeout
    cap = settings.playlist_read_limit if limit is None else limit

    try:
        async with session.get(
            url,
            headers=request_headers(settings, extra=headers),
            timeout=aiohttp.ClientTimeout(total=total),
            allow_redirects=True,
        ) as response:
            if response.status >= 400:
                raise ProbeNetworkError(
                    f"GET {url} returned HTTP {response.status}",
                    url=url,
                    status=response.status,
                )
            body = await read_limited(response, cap)
            charset = response.charset or 'utf-8'
            try:
                text = body.decode(charset, errors='replace')
            except LookupError:
                logger.debug("Unknown charset %r from %s; decoding as UTF-8", charset, url)
                text = body.decode('utf-8', errors='replace')
            return TextDocument(
                url=str(response.url),
                status=response.status,
                content_type=response.headers.get('Content-Type', ''),
                headers=response.headers,
                text=text,
            )
    except aiohttp.ClientError as exc:
        raise ProbeNetworkError(f"GET {url} failed: {exc}", url=url) from exc


async def open_stream(
    session: aiohttp.ClientSession,
    url: str,
    settings: ProbeSettings,
    *,
    icy: bool = False,
    extra_headers: Optional[Mapping[str, str]] = None,
) -> aiohttp.ClientResponse:
    """
    Start a GET and return as soon as headers arrive.

    The caller owns the returned response and must ``close()`` it.
    """
    try:
        return await asyncio.wait_for(
            session.get(
                url,
                headers=request_headers(settings, icy=icy, extra=extra_headers),
                timeout=streaming_timeout(settings),
                allow_redirects=True,
            ),
            timeout=settings.connect_timeout,
        )
    except aiohttp.ClientError as exc:
        raise ProbeNetworkError(f"GET {url} failed: {exc}", url=url) from exc
