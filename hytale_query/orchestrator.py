"""
Query orchestration

Single entry point for running server queries: resolves the default port for
the chosen method, consults the result cache, dispatches to the HyQuery or
Nitrado client and caches online results. Also runs batches of queries.

Nothing raised by a client escapes run_query(); callers always get a
QueryResult back. Only request validation raises InvalidInputError.
"""

import asyncio
import logging
from typing import Iterable, List, Optional

from hytale_query.cache import ResultCache, make_cache_key
from hytale_query.clients.hyquery_client import HyQueryClient
from hytale_query.clients.nitrado_client import NitradoQueryClient
from hytale_query.config import config as default_config
from hytale_query.errors import ErrorKind, InvalidInputError
from hytale_query.models import OfflineResult, OnlineResult, QueryMethod, QueryRequest, QueryResult, parse_port
from hytale_query.protocol.fields import parse_fields


logger = logging.getLogger(__name__)


class QueryOrchestrator:
    """
    Runs queries against either protocol with caching.

    Attributes:
        config: Configuration object (defaults, cache duration, batch cap)
        cache: Shared result cache
        hyquery: HyQuery UDP client
        nitrado: Nitrado Query HTTP client
    """

    def __init__(self, config=None, cache: Optional[ResultCache] = None,
                 hyquery_client: Optional[HyQueryClient] = None,
                 nitrado_client: Optional[NitradoQueryClient] = None):
        self.config = config or default_config
        self.cache = cache if cache is not None else ResultCache(max_entries=self.config.CACHE_MAX_ENTRIES)
        self.hyquery = hyquery_client or HyQueryClient()
        self.nitrado = nitrado_client or NitradoQueryClient(user_agent=self.config.USER_AGENT)

    def default_port(self, method: QueryMethod) -> int:
        if method == QueryMethod.HYQUERY:
            return self.config.HYQUERY_DEFAULT_PORT
        return self.config.DEFAULT_PORT

    def build_request(self, host, port=None, method=QueryMethod.NITRADO, fields=None,
                      timeout_seconds=None, verify_ssl=None) -> QueryRequest:
        """
        Validate caller input into a QueryRequest, filling configured defaults.

        Raises:
            InvalidInputError: Missing host, invalid port, method or timeout
        """
        return QueryRequest.create(
            host=host,
            port=port,
            method=method,
            fields=fields,
            timeout_seconds=self.config.TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds,
            verify_ssl=self.config.VERIFY_SSL if verify_ssl is None else verify_ssl,
        )

    async def query(self, host, port=None, method=QueryMethod.NITRADO, fields=None,
                    timeout_seconds=None, verify_ssl=None, cache_enabled: Optional[bool] = None,
                    cache_duration: Optional[float] = None) -> QueryResult:
        """
        Validate raw parameters and run one query.

        Raises:
            InvalidInputError: Before any network activity, on bad input
        """
        request = self.build_request(host, port, method, fields, timeout_seconds, verify_ssl)
        return await self.run_query(request, cache_enabled, cache_duration)

    # =========================================================================
    # Single Query
    # =========================================================================

    async def run_query(self, request: QueryRequest, cache_enabled: Optional[bool] = None,
                        cache_duration: Optional[float] = None) -> QueryResult:
        """
        Run one validated query.

        Args:
            request: Query to run
            cache_enabled: Use the cache (default: cache_duration > 0)
            cache_duration: Seconds to keep an online result (default: config)

        Returns:
            OnlineResult (possibly from cache) or OfflineResult
        """
        if cache_duration is None:
            cache_duration = self.config.CACHE_DURATION
        if cache_enabled is None:
            cache_enabled = cache_duration > 0
        cache_enabled = cache_enabled and cache_duration > 0

        port = request.port if request.port is not None else self.default_port(request.method)

        cache_key = None
        if cache_enabled:
            cache_key = make_cache_key(request.method, request.host, port, request.fields)
            cached = self._cache_get(cache_key)
            if cached is not None:
                logger.debug(f"[Query] Cache hit for {request.method.value} {request.host}:{port}")
                return cached

        result = await self._dispatch(request, port)

        if cache_enabled and isinstance(result, OnlineResult):
            self._cache_put(cache_key, result, cache_duration)

        return result

    async def _dispatch(self, request: QueryRequest, port: int) -> QueryResult:
        try:
            if request.method == QueryMethod.HYQUERY:
                return await self.hyquery.query(
                    request.host, port, request.timeout_seconds, request.fields
                )
            return await self.nitrado.query(
                request.host, port, request.timeout_seconds, request.verify_ssl, request.fields
            )

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                f"[Query] Unexpected error querying {request.host}:{port}: {e}", exc_info=True
            )
            return OfflineResult(
                host=request.host,
                port=port,
                method=request.method,
                error=f"Internal error: {e}",
                error_kind=ErrorKind.INTERNAL,
            )

    def _cache_get(self, key: str) -> Optional[OnlineResult]:
        try:
            return self.cache.get(key)
        except Exception as e:
            logger.warning(f"[Query] Cache read failed, treating as miss: {e}")
            return None

    def _cache_put(self, key: str, result: OnlineResult, duration: float):
        try:
            self.cache.put(key, result, duration)
        except Exception as e:
            logger.warning(f"[Query] Cache write failed, result not cached: {e}")

    # =========================================================================
    # Batch Queries
    # =========================================================================

    async def run_batch(self, servers: Iterable[dict], fields=None, method=QueryMethod.NITRADO,
                        timeout_seconds=None, verify_ssl=None,
                        cache_enabled: Optional[bool] = None,
                        cache_duration: Optional[float] = None) -> List[QueryResult]:
        """
        Run several queries concurrently, preserving input order.

        Each item is a dict with "host" and optional "port", "method" and
        "fields" overriding the batch-wide values. Items that fail validation
        become OfflineResult records instead of aborting the batch.

        Args:
            servers: List of server dicts
            fields: Batch-wide fields
            method: Batch-wide method

        Returns:
            One QueryResult per item, in input order

        Raises:
            InvalidInputError: servers is not a list, is too long, or the
                batch-wide method is invalid
        """
        if not isinstance(servers, (list, tuple)):
            raise InvalidInputError('Missing or invalid "servers" array')

        max_servers = self.config.MAX_BATCH_SERVERS
        if len(servers) > max_servers:
            raise InvalidInputError(f"Too many servers. Maximum is {max_servers} per request")

        global_method = QueryMethod.parse(method if method is not None else QueryMethod.NITRADO)
        global_fields = parse_fields(fields)

        async def run_item(item) -> QueryResult:
            request_or_error = self._build_batch_request(
                item, global_method, global_fields, timeout_seconds, verify_ssl
            )
            if isinstance(request_or_error, OfflineResult):
                return request_or_error
            return await self.run_query(request_or_error, cache_enabled, cache_duration)

        logger.info(f"[Query] Running batch of {len(servers)} servers")
        return list(await asyncio.gather(*(run_item(item) for item in servers)))

    def _build_batch_request(self, item, global_method: QueryMethod, global_fields,
                             timeout_seconds, verify_ssl):
        """Build a request for one batch item, or an OfflineResult describing why not."""
        if not isinstance(item, dict) or not isinstance(item.get('host'), str) or not item['host'].strip():
            return OfflineResult(error='Missing host parameter', error_kind=ErrorKind.INVALID_INPUT)

        host = item['host'].strip()

        try:
            method = QueryMethod.parse(item['method']) if item.get('method') is not None else global_method
        except InvalidInputError:
            return OfflineResult(host=host, error='Invalid method', error_kind=ErrorKind.INVALID_INPUT)

        try:
            port = parse_port(item['port']) if item.get('port') is not None else None
        except InvalidInputError:
            return OfflineResult(host=host, error='Invalid port number', error_kind=ErrorKind.INVALID_INPUT)

        fields = parse_fields(item['fields']) if item.get('fields') is not None else global_fields

        try:
            return self.build_request(host, port, method, fields, timeout_seconds, verify_ssl)
        except InvalidInputError as e:
            return OfflineResult(host=host, port=port, method=method, error=str(e),
                                 error_kind=ErrorKind.INVALID_INPUT)
