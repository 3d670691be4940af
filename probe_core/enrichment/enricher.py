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
Confidence-scored enrichment of raw artist/title guesses.

The enricher never raises: a failing search service degrades to the raw pair
at ``low`` confidence.
"""

import asyncio
import logging
import time
from typing import Iterable, List, Optional, Protocol

from probe_utils.text import split_artist_title

from ..models import Confidence, EnrichedMetadata, EnrichmentSource, RecordingCandidate
from ..settings import ProbeSettings

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE_SCORE = 90
MEDIUM_CONFIDENCE_SCORE = 70


class RecordingSearchService(Protocol):
    def search_recordings(self, title: str, artist: Optional[str] = None, limit: int = 10) -> List[RecordingCandidate]: ...


def confidence_for_score(score: float) -> Confidence:
    if score >= HIGH_CONFIDENCE_SCORE:
        return Confidence.HIGH
    if score >= MEDIUM_CONFIDENCE_SCORE:
        return Confidence.MEDIUM
    return Confidence.LOW


def _raw(artist: Optional[str], title: Optional[str], confidence: Confidence) -> EnrichedMetadata:
    return EnrichedMetadata(
        artist=artist,
        title=title,
        confidence=confidence,
        source=EnrichmentSource.RAW,
    )


class MetadataEnricher:
    """Look up raw now-playing strings in a canonical recording search service."""

    def __init__(
        self,
        service: RecordingSearchService,
        min_interval: Optional[float] = None,
        settings: Optional[ProbeSettings] = None,
    ):
        self.service = service
        settings = settings or ProbeSettings()
        self.min_interval = settings.enrichment_min_interval if min_interval is None else min_interval
        self._last_call: Optional[float] = None
        self._lock: Optional[asyncio.Lock] = None

    def _call_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def _pace(self) -> None:
        """Sleep until ``min_interval`` has passed since the previous service call."""
        if self._last_call is not None and self.min_interval > 0:
            wait = self.min_interval - (time.monotonic() - self._last_call)
            if wait > 0:
                await asyncio.sleep(wait)
        self._last_call = time.monotonic()

    async def enrich_text(self, raw: Optional[str]) -> EnrichedMetadata:
        """Split a combined string (``Artist - Title``, ``Title by Artist``, ``Artist: Title``) and enrich it."""
        artist, title = split_artist_title(raw)
        return await self._lookup(artist, title)

    async def enrich(self, artist: Optional[str], title: Optional[str]) -> EnrichedMetadata:
        """Enrich a pair; a missing artist means ``title`` is treated as a combined string."""
        artist = (artist or '').strip() or None
        title = (title or '').strip() or None
        if artist is None:
            return await self.enrich_text(title)
        return await self._lookup(artist, title)

    async def enrich_batch(self, items: Iterable[str]) -> List[EnrichedMetadata]:
        """Enrich combined strings one at a time, honouring the minimum interval between calls."""
        results = []
        for item in items:
            results.append(await self.enrich_text(item))
        return results

    async def _lookup(self, artist: Optional[str], title: Optional[str]) -> EnrichedMetadata:
        if not title:
            return _raw(artist, title, Confidence.NONE)

        # Concurrent callers share one pacing window
        async with self._call_lock():
            await self._pace()
            try:
                candidates = await asyncio.to_thread(self.service.search_recordings, title, artist)
            except Exception as exc:
                logger.warning("Enrichment lookup for %r / %r failed: %s", artist, title, exc)
                return _raw(artist, title, Confidence.LOW)

        if not candidates:
            logger.info("No canonical match for %r / %r", artist, title)
            return _raw(artist, title, Confidence.NONE)

        best = candidates[0]
        confidence = confidence_for_score(best.score)
        logger.info(
            "Canonical match %r / %r (score %s, confidence %s)",
            best.artist,
            best.title,
            best.score,
            confidence.value,
        )

        if confidence is Confidence.LOW:
            return _raw(artist, title, Confidence.LOW)

        return EnrichedMetadata(
            artist=best.artist,
            title=best.title,
            confidence=confidence,
            source=EnrichmentSource.CANONICAL,
            album=best.album,
            release_date=best.release_date,
            duration=best.duration,
            external_id=best.id,
        )
