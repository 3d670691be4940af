"""
Station Probe - Now Playing Metadata Extraction
Copyright (c) 2025 Timothy Kramer (KR8MER)

This file is part of Station Probe.

Station Probe is dual-licensed software:
- GNU Affero General Public License v3 (AGPL-3.0) for open-source use
- Commercial License for proprietary use

IMPORTANT: This software cannot be rebranded or have attribution removed.
"""

"""
Station Probe core

Works out what an internet radio stream is playing straight from the wire:
playlist resolution, the ICY inline-metadata protocol, HLS timed ID3 tags,
Icecast/Shoutcast status endpoints and response headers, plus optional
enrichment against a canonical recording search service.
"""

from .enrichment import MetadataEnricher, MusicBrainzSearchService, confidence_for_score
from .errors import (
    EnrichmentError,
    IcyProtocolError,
    Id3ParseError,
    InvalidStreamURLError,
    PlaylistParseError,
    ProbeNetworkError,
    ProbeParseError,
    StatusPayloadError,
    StreamProbeError,
)
from .models import (
    NO_METADATA_NOTE,
    Confidence,
    EnrichedMetadata,
    EnrichmentSource,
    Id3Frame,
    Id3Tag,
    MetadataSource,
    NowPlayingResult,
    RecordingCandidate,
    TextEncoding,
)
from .settings import ProbeSettings
from .streams import extract_now_playing, probe_stream

__all__ = [
    'MetadataEnricher',
    'MusicBrainzSearchService',
    'confidence_for_score',
    'EnrichmentError',
    'IcyProtocolError',
    'Id3ParseError',
    'InvalidStreamURLError',
    'PlaylistParseError',
    'ProbeNetworkError',
    'ProbeParseError',
    'StatusPayloadError',
    'StreamProbeError',
    'NO_METADATA_NOTE',
    'Confidence',
    'EnrichedMetadata',
    'EnrichmentSource',
    'Id3Frame',
    'Id3Tag',
    'MetadataSource',
    'NowPlayingResult',
    'RecordingCandidate',
    'TextEncoding',
    'ProbeSettings',
    'extract_now_playing',
    'probe_stream',
]
