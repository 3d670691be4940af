"""
Station Probe - Now Playing Metadata Extraction
Copyright (c) 2025 Timothy Kramer (KR8MER)

This file is part of Station Probe.

Station Probe is dual-licensed software:
- GNU Affero General Public License v3 (AGPL-3.0) for open-source use
- Commercial License for proprietary use

IMPORTANT: This software cannot be rebranded or have attribution removed.
"""

"""Pytest configuration and shared fixtures for Station Probe tests.

Network behaviour is exercised against real local HTTP servers built with
``aiohttp.test_utils.TestServer``; coroutines are driven with ``asyncio.run``
so no async pytest plugin is needed.
"""
import asyncio
import sys
from pathlib import Path
from typing import Awaitable, Callable

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

# Add project root to Python path for imports
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from probe_core.settings import ProbeSettings  # noqa: E402


Scenario = Callable[[TestServer, aiohttp.ClientSession], Awaitable]


# ============================================================================
# Function-level fixtures
# ============================================================================


@pytest.fixture
def fast_settings() -> ProbeSettings:
    """Settings with short timeouts so failing servers do not slow the suite down."""
    return ProbeSettings(
        connect_timeout=3.0,
        icy_read_timeout=1.0,
        status_json_timeout=2.0,
        header_probe_timeout=2.0,
    )


@pytest.fixture
def serve():
    """Run ``scenario(server, session)`` against a local server hosting ``app``.

    Usage::

        result = serve(app, lambda server, session: probe_stream(str(server.make_url('/x')), session=session))
    """

    def _serve(app: web.Application, scenario: Scenario):
        async def _run():
            server = TestServer(app)
            await server.start_server()
            try:
                async with aiohttp.ClientSession() as session:
                    return await scenario(server, session)
            finally:
                await server.close()

        return asyncio.run(_run())

    return _serve
