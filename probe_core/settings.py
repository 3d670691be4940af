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
Runtime settings for stream probing.

Defaults suit public internet radio. Every value can be overridden through
``STATION_PROBE_*`` environment variables (a ``.env`` file is honoured by the
command line entry point).
"""

import logging
import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = 'STATION_PROBE_'

DEFAULT_USER_AGENT = 'StationProbe/1.0'
MUSICBRAINZ_API_URL = 'https://musicbrainz.org/ws/2'
MUSICBRAINZ_USER_AGENT = 'StationProbe/1.0 ( https://musicbrainz.org/doc/MusicBrainz_API/Rate_Limiting )'


@dataclass(frozen=True)
class ProbeSettings:
    """Timeouts, read caps and service endpoints used by every probe."""

    connect_timeout: float = 12.0
    icy_read_timeout: float = 10.0
    status_json_timeout: float = 5.0
    header_probe_timeout: float = 5.0
    hls_segment_read_limit: int = 512_000
    playlist_read_limit: int = 2_000_000
    max_playlist_hops: int = 5
    max_icy_blocks: int = 3
    max_icy_metaint: int = 1_048_576
    user_agent: str = DEFAULT_USER_AGENT
    musicbrainz_url: str = MUSICBRAINZ_API_URL
    musicbrainz_user_agent: str = MUSICBRAINZ_USER_AGENT
    musicbrainz_timeout: float = 6.0
    enrichment_min_interval: float = 1.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'ProbeSettings':
        """Build settings from ``STATION_PROBE_<FIELD>`` variables, keeping defaults for bad values."""
        env = os.environ if environ is None else environ
        overrides = {}

        for setting in fields(cls):
            raw_value = env.get(f"{ENV_PREFIX}{setting.name.upper()}")
            if raw_value is None or raw_value.strip() == '':
                continue

            default = setting.default
            try:
                if isinstance(default, bool):
                    value = raw_value.strip().lower() in ('1', 'true', 'yes', 'on')
                elif isinstance(default, int):
                    value = int(raw_value)
                elif isinstance(default, float):
                    value = float(raw_value)
                else:
                    value = raw_value.strip()
            except ValueError:
                logger.warning(
                    "Ignoring invalid %s%s=%r; using default %r",
                    ENV_PREFIX,
                    setting.name.upper(),
                    raw_value,
                    default,
                )
                continue

            if isinstance(value, (int, float)) and not isinstance(value, bool) and value <= 0:
                logger.warning(
                    "Ignoring non-positive %s%s=%r; using default %r",
                    ENV_PREFIX,
                    setting.name.upper(),
                    raw_value,
                    default,
                )
                continue

            overrides[setting.name] = value

        return cls(**overrides)
