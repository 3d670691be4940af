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
Ordered extraction cascade.

Strategies run strictly one after another; the first one that names a station
or a current title wins and the rest never run. A strategy that fails is
logged at its own boundary and the cascade moves on. When every strategy comes
up empty the caller gets ``NowPlayingResult.no_metadata`` rather than an
exception.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

import aiohttp

from ..errors import StreamProbeError
from ..fetch import ensure_session, validate_stream_url
from ..models import MetadataSource, NowPlayingResult
from ..settings import ProbeSettings
from .classifier import PROBE_FAILURES, probe_stream
from .headers import probe_headers
from .icy import probe_icy
from .status_json import probe_status_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeContext:
    url: str
    session: aiohttp.ClientSession
    settings: ProbeSettings


ProbeFunction = Callable[[ProbeContext], Awaitable[Optional[NowPlayingResult]]]


@dataclass(frozen=True)
class ExtractionStrategy:
    name: str
    run: ProbeFunction


async def direct_probe(context: ProbeContext) -> Optional[NowPlayingResult]:
    return await probe_stream(context.url, session=context.session, settings=context.settings)


async def status_json_probe(context: ProbeContext) -> Optional[NowPlayingResult]:
    return await probe_status_json(context.session, context.url, context.settings)


async def header_probe(context: ProbeContext) -> Optional[NowPlayingResult]:
    return await probe_headers(context.session, context.url, context.settings)


async def stream_reread_probe(context: ProbeContext) -> Optional[NowPlayingResult]:
    return await probe_icy(
        context.session,
        context.url,
        context.settings,
        source=MetadataSource.STREAM,
        method='stream-data',
    )


DEFAULT_STRATEGIES = (
    ExtractionStrategy('direct-probe', direct_probe),
    ExtractionStrategy('status-json', status_json_probe),
    ExtractionStrategy('headers', header_probe),
    ExtractionStrategy('stream-data', stream_reread_probe),
)


async def run_strategies(
    context: ProbeContext,
    strategies: Sequence[ExtractionStrategy] = DEFAULT_STRATEGIES,
) -> Optional[NowPlayingResult]:
    """Fold ``strategies`` left to right and return the first result with a station or title."""
    for strategy in strategies:
        try:
            result = await strategy.run(context)
        except PROBE_FAILURES as exc:
            logger.warning("%s: strategy %s failed: %s", context.url, strategy.name, exc)
            continue
        except StreamProbeError as exc:
            logger.warning("%s: strategy %s rejected input: %s", context.url, strategy.name, exc)
            continue
        except Exception:
            logger.exception("%s: strategy %s raised unexpectedly", context.url, strategy.name)
            continue

        if result is not None and result.has_now_playing:
            if not result.method:
                result.method = strategy.name
            logger.info(
                "%s: metadata via %s (source=%s)",
                context.url,
                strategy.name,
                result.source.value,
            )
            return result

        logger.debug("%s: strategy %s found nothing", context.url, strategy.name)

    return None


async def extract_now_playing(
    url: str,
    *,
    session: Optional[aiohttp.ClientSession] = None,
    settings: Optional[ProbeSettings] = None,
    enricher=None,
    strategies: Optional[Sequence[ExtractionStrategy]] = None,
) -> NowPlayingResult:
    """
    Run the extraction cascade for ``url``.

    Only a malformed URL raises (``InvalidStreamURLError``). If ``enricher`` is
    given and a title was found, the result carries its ``EnrichedMetadata``.
    """
    url = validate_stream_url(url)
    settings = settings or ProbeSettings()

    async with ensure_session(session) as active:
        context = ProbeContext(url=url, session=active, settings=settings)
        result = await run_strategies(context, DEFAULT_STRATEGIES if strategies is None else strategies)

    if result is None:
        logger.warning("No metadata available for %s", url)
        return NowPlayingResult.no_metadata(url)

    if enricher is not None and result.title:
        result.enriched = await enricher.enrich(result.artist, result.title)

    return result
