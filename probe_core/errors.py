"""
Station Probe - Now Playing Metadata Extraction
Copyright (c) 2025 Timothy Kramer (KR8MER)

This file is part of Station Probe.

Station Probe is dual-licensed software:
- GNU Affero General Public License v3 (AGPL-3.0) for open-source use
- Commercial License for proprietary use

IMPORTANT: This software cannot be rebranded or have attribution removed.
"""

"""Exception taxonomy for stream probing and metadata enrichment."""

from typing import Optional


class StreamProbeError(Exception):
    """Base class for every error raised by the probe."""


class InvalidStreamURLError(StreamProbeError, ValueError):
    """The caller supplied a URL that cannot be probed."""


class ProbeNetworkError(StreamProbeError):
    """A host was unreachable, a connection dropped or a server answered with an error status."""

    def __init__(self, message: str, *, url: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status = status


class ProbeParseError(StreamProbeError):
    """A server answered, but the payload could not be understood."""


class PlaylistParseError(ProbeParseError):
    """A playlist body did not reference a usable media URL."""


class IcyProtocolError(ProbeParseError):
    """The ICY byte stream ended early or carried a malformed metadata block."""


class Id3ParseError(ProbeParseError):
    """An ID3v2 tag was truncated or structurally invalid."""


class StatusPayloadError(ProbeParseError):
    """A status endpoint returned something other than a recognised JSON document."""


class EnrichmentError(StreamProbeError):
    """The canonical metadata search service failed."""
