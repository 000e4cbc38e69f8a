"""
Tests for the HTTP API.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from hytale_query.errors import ErrorKind
from hytale_query.models import OfflineResult, OnlineResult, PlayersInfo, QueryMethod
from hytale_query.orchestrator import QueryOrchestrator
from hytale_query.protocol.fields import FieldName
from hytale_query.servers.api_server import PUBLIC_ENDPOINTS, PollingAPIServer


def nitrado_result(host, port, timeout, verify_ssl, fields):
    if host == 'down.example':
        return OfflineResult(host=host, port=port, method=QueryMethod.NITRADO,
                             error='Connection failed: Unable to connect to Hytale server',
                             error_kind=ErrorKind.TRANSPORT)
    result = OnlineResult(host=host, port=port, method=QueryMethod.NITRADO, latency_ms=8.2)
    result.sections[FieldName.PLAYERS] = PlayersInfo(online=1, max=10)
    return result


@pytest.fixture
def nitrado():
    client = MagicMock()
    client.query = AsyncMock(side_effect=nitrado_result)
    return client


@pytest.fixture
def api_server(test_config, cache, nitrado):
    orchestrator = QueryOrchestrator(test_config, cache, hyquery_client=MagicMock(), nitrado_client=nitrado)
    return PollingAPIServer(test_config, orchestrator)


@pytest_asyncio.fixture
async def http(api_server):
    client = TestClient(TestServer(api_server.app))
    await client.start_server()
    yield client
    await client.close()


class TestAccessControl:
    """IP allow-list."""

    @pytest.mark.asyncio
    async def test_localhost_allowed(self, http):
        resp = await http.get('/health')
        assert resp.status == 200
        assert (await resp.json())['status'] == 'healthy'

    @pytest.mark.asyncio
    async def test_forwarded_ip_denied(self, http):
        resp = await http.get('/api/meta', headers={'X-Forwarded-For': '203.0.113.9, 127.0.0.1'})

        assert resp.status == 403
        body = await resp.json()
        assert body['error'] == 'Access denied'
        assert body['your_ip'] == '203.0.113.9'

    @pytest.mark.asyncio
    async def test_cidr_allowed(self, http, test_config):
        test_config.ALLOWED_IPS = ['203.0.113.0/24']

        resp = await http.get('/health', headers={'X-Real-IP': '203.0.113.50'})

        assert resp.status == 200

    @pytest.mark.asyncio
    async def test_proxy_headers_ignored_when_untrusted(self, http, test_config):
        test_config.TRUST_PROXY_HEADERS = False

        resp = await http.get('/health', headers={'X-Forwarded-For': '203.0.113.9'})

        assert resp.status == 200


class TestRouting:
    """Unknown paths and verbs."""

    @pytest.mark.asyncio
    async def test_not_found(self, http):
        resp = await http.get('/api/unknown')

        assert resp.status == 404
        body = await resp.json()
        assert body['error'] == 'Endpoint not found'
        assert body['available_endpoints'] == PUBLIC_ENDPOINTS

    @pytest.mark.asyncio
    async def test_method_not_allowed(self, http):
        resp = await http.delete('/api/ping')

        assert resp.status == 405
        assert 'GET' in (await resp.json())['allowed_methods']

    @pytest.mark.asyncio
    async def test_root(self, http):
        body = await (await http.get('/')).json()
        assert body['message'].startswith('Welcome to')


class TestPingGet:
    """Single server queries."""

    @pytest.mark.asyncio
    async def test_missing_host(self, http):
        resp = await http.get('/api/ping')

        assert resp.status == 400
        body = await resp.json()
        assert body['error'] == 'Missing required parameter: host'
        assert 'usage' in body

    @pytest.mark.asyncio
    async def test_invalid_port(self, http, nitrado):
        resp = await http.get('/api/ping', params={'host': 'play.example.com', 'port': '70000'})

        assert resp.status == 400
        assert (await resp.json())['error'] == 'Invalid port number. Must be between 1 and 65535'
        nitrado.query.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_method(self, http):
        resp = await http.get('/api/ping', params={'host': 'h', 'method': 'gopher'})
        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_online(self, http, nitrado):
        resp = await http.get('/api/ping', params={'host': 'play.example.com', 'fields': 'players'})

        assert resp.status == 200
        body = await resp.json()
        assert body == {
            'online': True,
            'host': 'play.example.com',
            'port': 5523,
            'latency_ms': 8.2,
            'method': 'nitrado',
            'players': {'online': 1, 'max': 10, 'list': []},
        }
        assert nitrado.query.await_args.args[4] == (FieldName.PLAYERS,)

    @pytest.mark.asyncio
    async def test_offline_is_200(self, http):
        resp = await http.get('/api/ping', params={'host': 'down.example'})

        assert resp.status == 200
        body = await resp.json()
        assert body['online'] is False
        assert body['error'] == 'Connection failed: Unable to connect to Hytale server'


class TestPingPost:
    """Batch queries."""

    @pytest.mark.asyncio
    async def test_batch(self, http):
        resp = await http.post('/api/ping', json={
            'servers': [{'host': 'a.example'}, {'host': 'down.example'}, {'port': 1}],
            'fields': 'players',
        })

        assert resp.status == 200
        results = (await resp.json())['results']
        assert [r['online'] for r in results] == [True, False, False]
        assert results[2] == {'online': False, 'error': 'Missing host parameter'}

    @pytest.mark.asyncio
    async def test_invalid_json(self, http):
        resp = await http.post('/api/ping', data='{not json', headers={'Content-Type': 'application/json'})

        assert resp.status == 400
        assert (await resp.json())['error'] == 'Invalid JSON'

    @pytest.mark.asyncio
    @pytest.mark.parametrize('body', [b'\xff\xfe{', b'{"servers": ["\xff"]}', b''])
    async def test_undecodable_body(self, http, body):
        resp = await http.post('/api/ping', data=body, headers={'Content-Type': 'application/json'})

        assert resp.status == 400
        assert resp.content_type == 'application/json'
        payload = await resp.json()
        assert payload['error'] == 'Invalid JSON'
        assert payload['details']

    @pytest.mark.asyncio
    async def test_missing_servers(self, http):
        resp = await http.post('/api/ping', json={'hosts': []})

        assert resp.status == 400
        assert 'usage' in await resp.json()

    @pytest.mark.asyncio
    async def test_too_many_servers(self, http):
        servers = [{'host': f'h{i}.example'} for i in range(51)]

        resp = await http.post('/api/ping', json={'servers': servers})

        assert resp.status == 400
        assert (await resp.json())['error'] == 'Too many servers. Maximum is 50 per request'


class TestMeta:
    """Metadata endpoint."""

    @pytest.mark.asyncio
    async def test_meta(self, http):
        body = await (await http.get('/api/meta')).json()

        assert body['endpoints'] == PUBLIC_ENDPOINTS
        assert body['config']['default_port'] == 5523
        assert body['config']['cache_duration'] == 30

    @pytest.mark.asyncio
    async def test_meta_without_cache(self, http, test_config):
        test_config.CACHE_DURATION = 0

        body = await (await http.get('/api/meta')).json()

        assert 'cache_duration' not in body['config']
