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
MusicBrainz recording search.

MusicBrainz asks clients to identify themselves with a descriptive
User-Agent and to stay under one request per second; pacing is left to the
enricher, which serialises calls.
"""

import logging
from typing import List, Optional

import requests

from ..errors import EnrichmentError
from ..models import RecordingCandidate
from ..settings import ProbeSettings

logger = logging.getLogger(__name__)


def _escape(value: str) -> str:
    return value.replace('\\', '\\\\').replace('"', '\\"')


def build_recording_query(title: str, artist: Optional[str] = None) -> str:
    parts = []
    if title and title.strip():
        parts.append(f'recording:"{_escape(title.strip())}"')
    if artist and artist.strip():
        parts.append(f'artist:"{_escape(artist.strip())}"')
    if not parts:
        raise ValueError("At least one search parameter (title or artist) must be provided")
    return " AND ".join(parts)


def _score(value) -> int:
    try:
        return max(0, min(100, int(value)))
    except (TypeError, ValueError):
        return 0


def recording_from_json(item: dict) -> Optional[RecordingCandidate]:
    """Map one ``recordings[]`` entry of the search response onto a candidate."""
    recording_id = item.get('id')
    title = item.get('title')
    if not recording_id or not title:
        return None

    credits = item.get('artist-credit') or []
    artist = 'Unknown'
    if credits and isinstance(credits[0], dict):
        artist = credits[0].get('name') or (credits[0].get('artist') or {}).get('name') or artist

    releases = item.get('releases') or []
    release = releases[0] if releases and isinstance(releases[0], dict) else {}

    length = item.get('length')
    try:
        duration = int(length) if length is not None else None
    except (TypeError, ValueError):
        duration = None

    return RecordingCandidate(
        id=str(recording_id),
        title=str(title),
        artist=str(artist),
        score=_score(item.get('score')),
        album=release.get('title'),
        release_date=release.get('date') or item.get('first-release-date'),
        duration=duration,
    )


class MusicBrainzSearchService:
    """Canonical recording search backed by the MusicBrainz web service."""

    def __init__(self, settings: Optional[ProbeSettings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or ProbeSettings()
        self._session = session or requests.Session()
        self._session.headers.update({
            'User-Agent': self.settings.musicbrainz_user_agent,
            'Accept': 'application/json',
        })

    def search_recordings(self, title: str, artist: Optional[str] = None, limit: int = 10) -> List[RecordingCandidate]:
        """Ranked recordings for ``title`` (and ``artist``), best score first."""
        params = {
            'query': build_recording_query(title, artist),
            'fmt': 'json',
            'limit': limit,
        }
        url = f"{self.settings.musicbrainz_url.rstrip('/')}/recording"
        logger.debug("MusicBrainz recording search: %s", params['query'])

        try:
            response = self._session.get(url, params=params, timeout=self.settings.musicbrainz_timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as exc:
            raise EnrichmentError(f"MusicBrainz API error: {exc}") from exc
        except ValueError as exc:
            raise EnrichmentError(f"MusicBrainz returned invalid JSON: {exc}") from exc

        candidates = []
        for item in data.get('recordings') or []:
            if not isinstance(item, dict):
                continue
            candidate = recording_from_json(item)
            if candidate is not None:
                candidates.append(candidate)

        candidates.sort(key=lambda candidate: candidate.score, reverse=True)
        return candidates

    def close(self) -> None:
        self._session.close()
