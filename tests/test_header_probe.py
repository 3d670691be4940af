"""Tests for station details advertised in ICY/Icecast response headers."""

import sys
from pathlib import Path

from aiohttp import web

sys.path.insert(0, str(Path(__file__).parent.parent))

from probe_core.models import MetadataSource
from probe_core.streams.headers import has_icy_headers, parse_station_headers, probe_headers


def _head_app(headers, seen=None):
    async def handler(request):
        if seen is not None:
            seen.append((request.method, request.headers.get('Icy-MetaData')))
        return web.Response(headers=headers, content_type='audio/mpeg')

    app = web.Application()
    app.router.add_route('HEAD', '/{tail:.*}', handler)
    return app


def test_parse_icy_headers():
    info = parse_station_headers({
        'icy-name': 'Test FM',
        'icy-genre': 'Jazz',
        'icy-br': '128',
        'icy-description': 'Smooth',
        'Content-Type': 'audio/mpeg',
    })
    assert info.station == 'Test FM'
    assert info.genre == 'Jazz'
    assert info.bitrate == '128'
    assert info.description == 'Smooth'
    assert 'content-type' not in info.raw
    assert info.raw['icy-name'] == 'Test FM'


def test_icecast_and_audiocast_synonyms():
    info = parse_station_headers({
        'ice-name': 'Ice Station',
        'x-audiocast-genre': 'Talk',
        'ice-audio-info': 'ice-samplerate=44100;ice-bitrate=96;ice-channels=2',
    })
    assert info.station == 'Ice Station'
    assert info.genre == 'Talk'
    assert info.bitrate == '96'


def test_placeholder_names_are_ignored():
    info = parse_station_headers({'icy-name': 'no name', 'icy-genre': '-'})
    assert info.is_empty


def test_has_icy_headers():
    assert has_icy_headers({'ICY-Name': 'x'})
    assert not has_icy_headers({'Server': 'nginx'})


def test_probe_headers_reports_station_and_title(serve, fast_settings):
    seen = []
    app = _head_app({'icy-name': 'Header FM', 'icy-title': 'Band - Song', 'icy-br': '64'}, seen)

    result = serve(app, lambda server, session: probe_headers(session, str(server.make_url('/live')), fast_settings))

    assert seen == [('HEAD', '1')]
    assert result.source is MetadataSource.HEADERS
    assert result.method == 'headers'
    assert result.station == 'Header FM'
    assert (result.artist, result.title) == ('Band', 'Song')
    assert result.bitrate == '64'


def test_probe_headers_without_station_details(serve, fast_settings):
    app = _head_app({'X-Other': 'nothing'})
    result = serve(app, lambda server, session: probe_headers(session, str(server.make_url('/')), fast_settings))
    assert result is None
