#!/usr/bin/env python3
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

"""Probe one or more stream URLs and print what they are playing."""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional, Sequence

import aiohttp
from dotenv import load_dotenv

from probe_core import (
    InvalidStreamURLError,
    MetadataEnricher,
    MusicBrainzSearchService,
    NowPlayingResult,
    ProbeSettings,
    extract_now_playing,
)
from probe_core.fetch import validate_stream_url

logger = logging.getLogger('probe_stream')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract now-playing metadata from Icecast/Shoutcast, HLS and playlist URLs.",
    )
    parser.add_argument('urls', nargs='+', metavar='URL', help='stream or playlist URL')
    parser.add_argument('--enrich', action='store_true', help='look results up on MusicBrainz')
    parser.add_argument('--json', action='store_true', help='print results as a JSON array')
    parser.add_argument('-v', '--verbose', action='store_true', help='enable debug logging')
    return parser


def format_result(result: NowPlayingResult) -> str:
    lines = [result.url]
    lines.append(f"  Source:  {result.source.value} ({result.method or 'n/a'})")
    if result.station:
        lines.append(f"  Station: {result.station}")
    if result.artist:
        lines.append(f"  Artist:  {result.artist}")
    if result.title:
        lines.append(f"  Title:   {result.title}")
    if result.genre:
        lines.append(f"  Genre:   {result.genre}")
    if result.bitrate:
        lines.append(f"  Bitrate: {result.bitrate}")
    if result.notes:
        lines.append(f"  Notes:   {result.notes}")
    if result.enriched is not None:
        enriched = result.enriched
        lines.append(
            f"  Match:   {enriched.artist or '?'} - {enriched.title or '?'} "
            f"({enriched.confidence.value}, {enriched.source.value})"
        )
        if enriched.album:
            lines.append(f"  Album:   {enriched.album}")
    return "\n".join(lines)


async def probe_all(urls: Sequence[str], settings: ProbeSettings, enrich: bool) -> List[NowPlayingResult]:
    """Probe every URL concurrently over one session; enrichment stays sequential."""
    service = MusicBrainzSearchService(settings) if enrich else None
    try:
        async with aiohttp.ClientSession() as session:
            results = await asyncio.gather(
                *(extract_now_playing(url, session=session, settings=settings) for url in urls)
            )

        if service is not None:
            enricher = MetadataEnricher(service, settings=settings)
            for result in results:
                if result.title:
                    result.enriched = await enricher.enrich(result.artist, result.title)
        return list(results)
    finally:
        if service is not None:
            service.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )

    try:
        urls = [validate_stream_url(url) for url in args.urls]
    except InvalidStreamURLError as exc:
        logger.error("Invalid URL: %s", exc)
        return 2

    settings = ProbeSettings.from_env()
    results = asyncio.run(probe_all(urls, settings, args.enrich))

    if args.json:
        print(json.dumps([result.to_dict() for result in results], indent=2, ensure_ascii=False))
    else:
        print("\n\n".join(format_result(result) for result in results))
    return 0


if __name__ == '__main__':
    sys.exit(main())
