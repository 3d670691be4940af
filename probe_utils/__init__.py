"""
Station Probe - Now Playing Metadata Extraction
Copyright (c) 2025 Timothy Kramer (KR8MER)

This file is part of Station Probe.

Station Probe is dual-licensed software:
- GNU Affero General Public License v3 (AGPL-3.0) for open-source use
- Commercial License for proprietary use

IMPORTANT: This software cannot be rebranded or have attribution removed.
"""

"""Pure helper functions shared by the stream readers and the enricher."""

from .buffers import BufferUnderrunError, ByteCursor, synchsafe_to_int
from .text import split_artist_title, split_stream_title, strip_wrapping_quotes

__all__ = [
    'BufferUnderrunError',
    'ByteCursor',
    'synchsafe_to_int',
    'split_artist_title',
    'split_stream_title',
    'strip_wrapping_quotes',
]
