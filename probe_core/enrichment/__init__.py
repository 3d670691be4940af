"""
Station Probe - Now Playing Metadata Extraction
Copyright (c) 2025 Timothy Kramer (KR8MER)

This file is part of Station Probe.

Station Probe is dual-licensed software:
- GNU Affero General Public License v3 (AGPL-3.0) for open-source use
- Commercial License for proprietary use

IMPORTANT: This software cannot be rebranded or have attribution removed.
"""

"""Canonical metadata enrichment."""

from .enricher import MetadataEnricher, RecordingSearchService, confidence_for_score
from .musicbrainz import MusicBrainzSearchService

__all__ = [
    'MetadataEnricher',
    'MusicBrainzSearchService',
    'RecordingSearchService',
    'confidence_for_score',
]
