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
Result types for stream probing and metadata enrichment.

Every probe builds fresh instances; nothing here is cached or shared between
calls. A caller that has not probed yet simply holds no result, while a probe
that found nothing returns ``NowPlayingResult.no_metadata(url)``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

NO_METADATA_NOTE = "No metadata available"


class MetadataSource(Enum):
    """Where a now-playing result came from."""
    ICY = "ICY"
    HLS_ID3 = "HLS-ID3"
    PLAYLIST = "PLAYLIST"
    JSON = "JSON"
    HEADERS = "HEADERS"
    STREAM = "STREAM"
    UNKNOWN = "UNKNOWN"


class Confidence(Enum):
    """Coarse match quality derived from a search service score."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


class EnrichmentSource(Enum):
    CANONICAL = "canonical"
    RAW = "raw"


class TextEncoding(Enum):
    """ID3v2 text encodings, keyed by their on-disk marker byte."""
    LATIN1 = "latin1"
    UTF16 = "utf16"
    UTF16BE = "utf16be"
    UTF8 = "utf8"

    @classmethod
    def from_marker(cls, marker: int) -> Optional['TextEncoding']:
        return _ENCODING_MARKERS.get(marker)

    @property
    def codec(self) -> str:
        return _ENCODING_CODECS[self]


_ENCODING_MARKERS = {
    0: TextEncoding.LATIN1,
    1: TextEncoding.UTF16,
    2: TextEncoding.UTF16BE,
    3: TextEncoding.UTF8,
}

_ENCODING_CODECS = {
    TextEncoding.LATIN1: 'latin-1',
    TextEncoding.UTF16: 'utf-16',
    TextEncoding.UTF16BE: 'utf-16-be',
    TextEncoding.UTF8: 'utf-8',
}


@dataclass(frozen=True)
class Id3Frame:
    """A decoded ID3v2 text frame."""
    id: str
    encoding: TextEncoding
    text: str


@dataclass
class Id3Tag:
    """The parts of an ID3v2 tag the probe cares about."""
    version: int
    frames: List[Id3Frame] = field(default_factory=list)

    def text(self, frame_id: str) -> Optional[str]:
        for frame in self.frames:
            if frame.id == frame_id and frame.text:
                return frame.text
        return None

    @property
    def title(self) -> Optional[str]:
        return self.text('TIT2')

    @property
    def artist(self) -> Optional[str]:
        return self.text('TPE1')


@dataclass(frozen=True)
class RecordingCandidate:
    """One ranked hit from a canonical recording search."""
    id: str
    title: str
    artist: str
    score: int
    album: Optional[str] = None
    release_date: Optional[str] = None
    duration: Optional[int] = None  # milliseconds


@dataclass
class EnrichedMetadata:
    """Normalized artist/title with a confidence tier."""
    artist: Optional[str]
    title: Optional[str]
    confidence: Confidence
    source: EnrichmentSource
    album: Optional[str] = None
    release_date: Optional[str] = None
    duration: Optional[int] = None  # milliseconds
    external_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            'artist': self.artist,
            'title': self.title,
            'confidence': self.confidence.value,
            'source': self.source.value,
        }
        for key, value in (
            ('album', self.album),
            ('releaseDate', self.release_date),
            ('duration', self.duration),
            ('externalId', self.external_id),
        ):
            if value is not None:
                payload[key] = value
        return payload


@dataclass
class NowPlayingResult:
    """What a stream is playing, as far as the wire protocol told us."""
    url: str
    source: MetadataSource
    station: Optional[str] = None
    artist: Optional[str] = None
    title: Optional[str] = None
    genre: Optional[str] = None
    bitrate: Optional[str] = None
    listeners: Optional[int] = None
    description: Optional[str] = None
    method: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)
    notes: Optional[str] = None
    enriched: Optional[EnrichedMetadata] = None
    available: bool = True

    @classmethod
    def no_metadata(cls, url: str, notes: Optional[str] = None) -> 'NowPlayingResult':
        """Terminal value for "probed every way we know and found nothing"."""
        return cls(
            url=url,
            source=MetadataSource.UNKNOWN,
            method='none',
            notes=notes or NO_METADATA_NOTE,
            available=False,
        )

    @property
    def has_now_playing(self) -> bool:
        """True when the result names a station or a current title."""
        return bool(self.title or self.station)

    def add_note(self, note: str) -> None:
        self.notes = f"{self.notes} | {note}" if self.notes else note

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            'url': self.url,
            'source': self.source.value,
            'available': self.available,
        }
        for key in ('station', 'artist', 'title', 'genre', 'bitrate', 'listeners',
                    'description', 'method', 'notes'):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.raw:
            payload['raw'] = dict(self.raw)
        if self.enriched is not None:
            payload['enriched'] = self.enriched.to_dict()
        return payload
