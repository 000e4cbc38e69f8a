"""
Hytale Server Polling API

HTTP front end for the query orchestrator. Access is restricted to an IP
allow-list; every response is JSON.

Protocol: HTTP
Port: 8080 (default)
Endpoints:
    - GET  /: Welcome document
    - GET  /api/ping: Query one server
    - POST /api/ping: Query up to MAX_BATCH_SERVERS servers
    - GET  /api/meta: API configuration
    - GET  /health: Health check
"""

import asyncio
import json
import logging
from datetime import datetime, timezone

from aiohttp import web

from hytale_query.errors import InvalidInputError
from hytale_query.models import QueryMethod
from hytale_query.orchestrator import QueryOrchestrator
from hytale_query.utils.ip_access import get_client_ip, is_ip_allowed


logger = logging.getLogger(__name__)

PUBLIC_ENDPOINTS = ['/api/ping', '/api/meta']

PING_USAGE = '/api/ping?host=your-server.com&port=5523&fields=server,players&method=nitrado'
BATCH_USAGE = {
    'servers': [
        {'host': 'your-server.com', 'port': 5523},
        {'host': 'another-server.com'},
    ]
}


def _json(data, status: int = 200) -> web.Response:
    return web.json_response(data, status=status, dumps=lambda obj: json.dumps(obj, indent=4))


class PollingAPIServer:
    """
    HTTP API server.

    Attributes:
        config: Server configuration object
        orchestrator: Query orchestrator shared by all requests
        app: aiohttp web application
    """

    def __init__(self, config, orchestrator: QueryOrchestrator = None):
        self.config = config
        self.orchestrator = orchestrator or QueryOrchestrator(config)
        self.app = web.Application(middlewares=[self.access_middleware, self.not_found_middleware])
        self.runner = None
        self._setup_routes()

        logger.info(f"[API] Initialized - allowed IPs: {', '.join(self.config.ALLOWED_IPS)}")

    def _setup_routes(self):
        """Setup HTTP routes."""
        self.app.router.add_get('/', self.handle_root)
        self.app.router.add_get('/api/ping', self.handle_ping_get)
        self.app.router.add_post('/api/ping', self.handle_ping_post)
        self.app.router.add_get('/api/meta', self.handle_meta)
        self.app.router.add_get('/health', self.handle_health)

    # -------------------------------------------------------------------------
    # Middlewares
    # -------------------------------------------------------------------------

    @web.middleware
    async def access_middleware(self, request: web.Request, handler):
        """Reject clients whose IP is not on the allow-list."""
        client_ip = get_client_ip(request.headers, request.remote, self.config.TRUST_PROXY_HEADERS)

        if not is_ip_allowed(client_ip, self.config.ALLOWED_IPS):
            logger.warning(f"[API] Access denied for {client_ip} ({request.method} {request.path})")
            return _json({
                'error': 'Access denied',
                'message': 'Your IP address is not whitelisted',
                'your_ip': client_ip
            }, status=403)

        return await handler(request)

    @web.middleware
    async def not_found_middleware(self, request: web.Request, handler):
        """Turn routing errors into JSON bodies."""
        try:
            return await handler(request)
        except web.HTTPNotFound:
            return _json({
                'error': 'Endpoint not found',
                'path': request.path,
                'available_endpoints': PUBLIC_ENDPOINTS
            }, status=404)
        except web.HTTPMethodNotAllowed as e:
            return _json({
                'error': 'Method not allowed',
                'allowed_methods': sorted(e.allowed_methods)
            }, status=405)

    # -------------------------------------------------------------------------
    # Request Handlers
    # -------------------------------------------------------------------------

    async def handle_root(self, request: web.Request) -> web.Response:
        """Welcome document with endpoint documentation."""
        return _json({
            'message': f'Welcome to {self.config.API_NAME}',
            'version': self.config.API_VERSION,
            'documentation': {
                'endpoints': [
                    {
                        'path': '/api/ping',
                        'methods': ['GET', 'POST'],
                        'description': 'Query Hytale server status via Nitrado Query API or HyQuery',
                        'examples': [
                            'GET /api/ping?host=your-server.com&port=5523',
                            'GET /api/ping?host=your-server.com&method=hyquery&fields=players',
                            'POST /api/ping with JSON body'
                        ]
                    },
                    {
                        'path': '/api/meta',
                        'methods': ['GET'],
                        'description': 'Get API configuration and metadata'
                    }
                ]
            }
        })

    async def handle_ping_get(self, request: web.Request) -> web.Response:
        """
        Query a single server.

        Query params:
        - host: Server host (required)
        - port: Server port (default depends on method)
        - method: nitrado (default) or hyquery
        - fields: Comma separated sections (server, universe, players, plugins)
        """
        host = request.query.get('host', '').strip()
        if not host:
            return _json({
                'error': 'Missing required parameter: host',
                'usage': PING_USAGE
            }, status=400)

        try:
            query_request = self.orchestrator.build_request(
                host=host,
                port=request.query.get('port'),
                method=request.query.get('method', QueryMethod.NITRADO.value),
                fields=request.query.get('fields'),
            )
        except InvalidInputError as e:
            return _json({'error': str(e)}, status=400)

        logger.info(
            f"[API] Ping {query_request.method.value} {query_request.host}:"
            f"{query_request.port or 'default'} from {request.remote}"
        )

        try:
            result = await self.orchestrator.run_query(query_request)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[API] Error handling ping: {e}", exc_info=True)
            return _json({'error': str(e)}, status=500)

        return _json(result.to_dict())

    async def handle_ping_post(self, request: web.Request) -> web.Response:
        """
        Query several servers in one request.

        POST body:
        {
            "servers": [{"host": "...", "port": 5523, "method": "...", "fields": "..."}],
            "fields": "server,players",
            "method": "nitrado"
        }
        """
        try:
            data = json.loads(await request.read())
        except json.JSONDecodeError as e:
            return _json({'error': 'Invalid JSON', 'details': e.msg}, status=400)
        except UnicodeDecodeError as e:
            return _json({'error': 'Invalid JSON', 'details': e.reason}, status=400)

        if not isinstance(data, dict) or not isinstance(data.get('servers'), list):
            return _json({
                'error': 'Missing or invalid "servers" array',
                'usage': BATCH_USAGE
            }, status=400)

        try:
            results = await self.orchestrator.run_batch(
                data['servers'],
                fields=data.get('fields'),
                method=data.get('method', QueryMethod.NITRADO.value),
            )
        except InvalidInputError as e:
            return _json({'error': str(e)}, status=400)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[API] Error handling batch ping: {e}", exc_info=True)
            return _json({'error': str(e)}, status=500)

        return _json({'results': [result.to_dict() for result in results]})

    async def handle_meta(self, request: web.Request) -> web.Response:
        """API information and effective configuration."""
        meta_config = {
            'allowed_ips': self.config.ALLOWED_IPS,
            'default_port': self.config.DEFAULT_PORT,
            'timeout_seconds': self.config.TIMEOUT_SECONDS,
            'verify_ssl': self.config.VERIFY_SSL
        }
        if self.config.CACHE_DURATION > 0:
            meta_config['cache_duration'] = self.config.CACHE_DURATION

        return _json({
            'name': self.config.API_NAME,
            'version': self.config.API_VERSION,
            'language': self.config.LANGUAGE,
            'endpoints': PUBLIC_ENDPOINTS,
            'config': meta_config
        })

    async def handle_health(self, request: web.Request) -> web.Response:
        """Health check endpoint"""
        return _json({
            'status': 'healthy',
            'service': self.config.API_NAME,
            'timestamp': datetime.now(timezone.utc).isoformat()
        })

    # -------------------------------------------------------------------------
    # Server Lifecycle
    # -------------------------------------------------------------------------

    async def start(self):
        """Start the API server and begin listening for connections."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        site = web.TCPSite(
            self.runner,
            self.config.API_HOST,
            self.config.API_PORT
        )
        await site.start()

        logger.info(f"[API] Server started on {self.config.API_HOST}:{self.config.API_PORT}")

    async def stop(self):
        """Stop the API server and cleanup resources."""
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            logger.info("[API] Server stopped")
