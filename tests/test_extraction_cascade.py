"""
Station Probe - Now Playing Metadata Extraction
Copyright (c) 2025 Timothy Kramer (KR8MER)

This file is part of Station Probe.

Station Probe is dual-licensed software:
- GNU Affero General Public License v3 (AGPL-3.0) for open-source use
- Commercial License for proprietary use

IMPORTANT: This software cannot be rebranded or have attribution removed.
"""

"""Tests for the ordered now-playing extraction cascade."""

import asyncio
import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from probe_core.errors import InvalidStreamURLError, ProbeNetworkError
from probe_core.models import (
    NO_METADATA_NOTE,
    Confidence,
    EnrichedMetadata,
    EnrichmentSource,
    MetadataSource,
    NowPlayingResult,
)
from probe_core.streams.cascade import (
    DEFAULT_STRATEGIES,
    ExtractionStrategy,
    ProbeContext,
    extract_now_playing,
    stream_reread_probe,
)

from stream_fixtures import icy_app, icy_body, text_app

URL = 'http://radio.example:8000/live'


def _recording(name, outcome, calls):
    """Strategy that records its invocation and returns or raises ``outcome``."""

    async def run(context):
        calls.append(name)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    return ExtractionStrategy(name, run)


def _extract(url=URL, **kwargs):
    return asyncio.run(extract_now_playing(url, **kwargs))


def test_default_strategy_order():
    assert [strategy.name for strategy in DEFAULT_STRATEGIES] == [
        'direct-probe',
        'status-json',
        'headers',
        'stream-data',
    ]


def test_first_successful_strategy_short_circuits():
    calls = []
    found = NowPlayingResult(url=URL, source=MetadataSource.JSON, station='Example', title='Song')
    strategies = [
        _recording('direct-probe', None, calls),
        _recording('status-json', found, calls),
        _recording('headers', NowPlayingResult(url=URL, source=MetadataSource.HEADERS, station='Other'), calls),
        _recording('stream-data', None, calls),
    ]

    result = _extract(strategies=strategies)

    assert result is found
    assert calls == ['direct-probe', 'status-json']
    assert result.method == 'status-json'


def test_result_without_station_or_title_does_not_stop_cascade():
    calls = []
    empty = NowPlayingResult(url=URL, source=MetadataSource.UNKNOWN, notes='Unrecognized stream type')
    found = NowPlayingResult(url=URL, source=MetadataSource.HEADERS, station='Header FM', method='headers')
    strategies = [
        _recording('direct-probe', empty, calls),
        _recording('headers', found, calls),
    ]

    result = _extract(strategies=strategies)

    assert result.station == 'Header FM'
    assert calls == ['direct-probe', 'headers']


def test_failures_are_isolated_per_strategy():
    calls = []
    found = NowPlayingResult(url=URL, source=MetadataSource.STREAM, title='Survivor')
    strategies = [
        _recording('direct-probe', ProbeNetworkError('connection refused', url=URL), calls),
        _recording('status-json', asyncio.TimeoutError(), calls),
        _recording('headers', RuntimeError('bug in a reader'), calls),
        _recording('stream-data', found, calls),
    ]

    result = _extract(strategies=strategies)

    assert result is found
    assert calls == ['direct-probe', 'status-json', 'headers', 'stream-data']


def test_exhausted_cascade_returns_no_metadata():
    calls = []
    strategies = [_recording(name, None, calls) for name in ('a', 'b', 'c', 'd')]

    result = _extract(strategies=strategies)

    assert calls == ['a', 'b', 'c', 'd']
    assert result.available is False
    assert result.source is MetadataSource.UNKNOWN
    assert result.method == 'none'
    assert result.notes == NO_METADATA_NOTE
    assert result.url == URL


@pytest.mark.parametrize('bad_url', ['', 'not a url', 'rtsp://camera.local/stream', 'http://'])
def test_invalid_url_raises(bad_url):
    calls = []
    with pytest.raises(InvalidStreamURLError):
        _extract(bad_url, strategies=[_recording('a', None, calls)])
    assert calls == []


def test_enricher_attached_when_title_found():
    class _FakeEnricher:
        def __init__(self):
            self.calls = []

        async def enrich(self, artist, title):
            self.calls.append((artist, title))
            return EnrichedMetadata(
                artist='Canonical Artist',
                title='Canonical Title',
                confidence=Confidence.HIGH,
                source=EnrichmentSource.CANONICAL,
            )

    enricher = _FakeEnricher()
    found = NowPlayingResult(url=URL, source=MetadataSource.ICY, artist='raw artist', title='raw title')

    result = _extract(strategies=[_recording('a', found, [])], enricher=enricher)

    assert enricher.calls == [('raw artist', 'raw title')]
    assert result.enriched.confidence is Confidence.HIGH
    assert result.artist == 'raw artist'


def test_enricher_skipped_without_title():
    class _ExplodingEnricher:
        async def enrich(self, artist, title):
            raise AssertionError('should not be called')

    found = NowPlayingResult(url=URL, source=MetadataSource.HEADERS, station='Station Only')
    result = _extract(strategies=[_recording('a', found, [])], enricher=_ExplodingEnricher())
    assert result.enriched is None


def test_default_cascade_against_icy_server(serve, fast_settings):
    """Two extractions of an unchanged stream produce identical results."""
    app = icy_app(
        1024,
        icy_body(1024, ["StreamTitle='Snow Tha Product - Anyone';"]),
        headers={'icy-name': 'Repeat FM'},
    )

    async def scenario(server, session):
        url = str(server.make_url('/live'))
        first = await extract_now_playing(url, session=session, settings=fast_settings)
        second = await extract_now_playing(url, session=session, settings=fast_settings)
        return first, second

    first, second = serve(app, scenario)

    assert first.source is MetadataSource.ICY
    assert (first.artist, first.title) == ('Snow Tha Product', 'Anyone')
    assert first.to_dict() == second.to_dict()


def test_default_cascade_falls_back_to_status_json(serve, fast_settings):
    status = {
        'icestats': {
            'source': {
                'listenurl': 'http://localhost/radio',
                'server_name': 'Status FM',
                'title': 'Band - From Status',
            }
        }
    }
    app = text_app({
        '/radio': (200, 'text/html', '<html>player page</html>'),
        '/status-json.xsl': (200, 'text/javascript', json.dumps(status)),
    })

    result = serve(app, lambda server, session: extract_now_playing(
        str(server.make_url('/radio')), session=session, settings=fast_settings))

    assert result.source is MetadataSource.JSON
    assert result.station == 'Status FM'
    assert (result.artist, result.title) == ('Band', 'From Status')
    assert result.method.endswith('/status-json.xsl')


def test_default_cascade_unreachable_host_returns_no_metadata(fast_settings):
    async def scenario():
        return await extract_now_playing('http://127.0.0.1:9/live', settings=fast_settings)

    result = asyncio.run(scenario())
    assert result.available is False
    assert result.notes == NO_METADATA_NOTE


def test_stream_reread_strategy_reads_icy_block(serve, fast_settings):
    app = icy_app(
        512,
        icy_body(512, ['', "StreamTitle='Snow Tha Product - Anyone';"]),
        headers={'icy-name': 'Reread FM'},
    )

    async def scenario(server, session):
        context = ProbeContext(url=str(server.make_url('/live')), session=session, settings=fast_settings)
        return await stream_reread_probe(context)

    result = serve(app, scenario)

    assert result.source is MetadataSource.STREAM
    assert result.method == 'stream-data'
    assert (result.artist, result.title) == ('Snow Tha Product', 'Anyone')
    assert result.station == 'Reread FM'


def test_cascade_reaches_stream_reread_after_empty_strategies(serve, fast_settings):
    """With the first three strategies coming up empty, the raw stream re-read supplies the title."""
    app = icy_app(256, icy_body(256, ["StreamTitle='Band - Song';"]))
    calls = []
    strategies = [_recording(name, None, calls) for name in ('direct-probe', 'status-json', 'headers')]
    strategies.append(DEFAULT_STRATEGIES[3])

    result = serve(app, lambda server, session: extract_now_playing(
        str(server.make_url('/live')), session=session, settings=fast_settings, strategies=strategies))

    assert calls == ['direct-probe', 'status-json', 'headers']
    assert result.source is MetadataSource.STREAM
    assert result.method == 'stream-data'
    assert (result.artist, result.title) == ('Band', 'Song')
