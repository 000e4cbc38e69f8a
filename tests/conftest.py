"""
Shared fixtures: local HyQuery and Nitrado endpoints plus test configuration.
"""

import asyncio

import pytest
import pytest_asyncio
from aiohttp import web

from hytale_query.cache import ResultCache
from hytale_query.config import Config


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResultCache(max_entries=64, timer=clock)


@pytest.fixture
def test_config():
    """Config with caching on and short timeouts."""
    cfg = Config()
    cfg.DEFAULT_PORT = 5523
    cfg.HYQUERY_DEFAULT_PORT = 5520
    cfg.TIMEOUT_SECONDS = 1
    cfg.VERIFY_SSL = False
    cfg.CACHE_DURATION = 30
    cfg.CACHE_MAX_ENTRIES = 64
    cfg.MAX_BATCH_SERVERS = 50
    cfg.ALLOWED_IPS = ['127.0.0.1', '::1']
    cfg.TRUST_PROXY_HEADERS = True
    return cfg


# =============================================================================
# HyQuery responder
# =============================================================================

class HyQueryResponder(asyncio.DatagramProtocol):
    """
    UDP endpoint that records requests and answers with a preset reply.

    reply may be bytes, None (stay silent) or a callable taking the request.
    """

    def __init__(self):
        self.requests = []
        self.reply = None
        self.transport = None
        self.port = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        self.requests.append(data)
        reply = self.reply(data) if callable(self.reply) else self.reply
        if reply is not None:
            self.transport.sendto(reply, addr)


@pytest_asyncio.fixture
async def hyquery_server():
    loop = asyncio.get_running_loop()
    transport, responder = await loop.create_datagram_endpoint(
        HyQueryResponder, local_addr=('127.0.0.1', 0)
    )
    responder.port = transport.get_extra_info('sockname')[1]
    yield responder
    transport.close()


# =============================================================================
# Nitrado responder
# =============================================================================

class NitradoResponder:
    """aiohttp app serving /Nitrado/Query with a preset status and body."""

    def __init__(self):
        self.requests = []
        self.status = 200
        self.body = {}
        self.port = None
        self.app = web.Application()
        self.app.router.add_get('/Nitrado/Query', self.handle_query)

    async def handle_query(self, request: web.Request) -> web.Response:
        self.requests.append(dict(request.headers))
        if isinstance(self.body, str):
            return web.Response(text=self.body, status=self.status, content_type='application/json')
        return web.json_response(self.body, status=self.status)


@pytest_asyncio.fixture
async def nitrado_server():
    responder = NitradoResponder()
    runner = web.AppRunner(responder.app)
    await runner.setup()
    site = web.TCPSite(runner, '127.0.0.1', 0)
    await site.start()
    responder.port = runner.addresses[0][1]
    yield responder
    await runner.cleanup()
