"""
Nitrado Query Client

Queries a Hytale server through the Nitrado Query web endpoint and
normalizes the JSON document into the shared result format.

Protocol: HTTPS (falls back to HTTP when no scheme was given)
Port: 5523 (default)
Endpoint: GET /Nitrado/Query

Response sections (all optional, each may be withheld by server permissions):
    - Server:   Name, Version, Revision, Patchline, ProtocolVersion, ProtocolHash, MaxPlayers
    - Universe: CurrentPlayers, DefaultWorld
    - Players:  list of {name|username, uuid, ping}
    - Plugins:  mapping of plugin name -> {Version, Loaded, Enabled, State}
"""

import asyncio
import json
import logging
import re
import time
from typing import Iterable, List

import aiohttp

from hytale_query.errors import ProtocolViolationError, QueryError, TransportError
from hytale_query.models import (
    NO_PERMISSIONS,
    OfflineResult,
    OnlineResult,
    PlayerEntry,
    PlayersInfo,
    PluginEntry,
    PluginsInfo,
    QueryMethod,
    QueryResult,
    ServerInfo,
    UniverseInfo,
)
from hytale_query.protocol.fields import FieldName, expand_fields


DEFAULT_PORT = 5523
QUERY_PATH = '/Nitrado/Query'
DEFAULT_USER_AGENT = 'Hytale-Server-Polling-API/1.0'

SCHEME_PATTERN = re.compile(r'^https?://', re.IGNORECASE)

logger = logging.getLogger(__name__)


class NitradoQueryClient:
    """
    Nitrado Query HTTP client.

    Attributes:
        user_agent: User-Agent header sent with every request
    """

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT):
        self.user_agent = user_agent

    @staticmethod
    def build_urls(host: str, port: int) -> List[str]:
        """
        Build the URLs to try, in order.

        A host with an explicit scheme is tried once as given. A bare host is
        tried over HTTPS first and then once over plain HTTP.

        Example:
            >>> NitradoQueryClient.build_urls('play.example.com', 5523)
            ['https://play.example.com:5523/Nitrado/Query', 'http://play.example.com:5523/Nitrado/Query']
        """
        if SCHEME_PATTERN.match(host):
            return [f"{host}:{port}{QUERY_PATH}"]
        return [
            f"https://{host}:{port}{QUERY_PATH}",
            f"http://{host}:{port}{QUERY_PATH}",
        ]

    async def query(self, host: str, port: int = DEFAULT_PORT, timeout_seconds: float = 3,
                    verify_ssl: bool = True, fields: Iterable[FieldName] = ()) -> QueryResult:
        """
        Query a server and return its status.

        Args:
            host: Server hostname or IP, optionally prefixed with http:// or https://
            port: Nitrado web server port
            timeout_seconds: Timeout for each HTTP attempt
            verify_ssl: Verify TLS certificate and hostname
            fields: Requested sections, empty for all

        Returns:
            OnlineResult or OfflineResult, never raises for query failures
        """
        fields = tuple(fields)
        start_time = time.perf_counter()

        try:
            body = await self._fetch(host, port, timeout_seconds, verify_ssl)

            latency = round((time.perf_counter() - start_time) * 1000, 1)

            data = self._parse_body(body)
            result = self._format_response(host, port, data, latency, expand_fields(fields))

            logger.info(f"[Nitrado] {host}:{port} online ({latency} ms)")
            return result

        except QueryError as e:
            logger.info(f"[Nitrado] {host}:{port} offline: {e}")
            return OfflineResult(
                host=host,
                port=port,
                method=QueryMethod.NITRADO,
                error=str(e),
                error_kind=e.kind,
            )

    async def _fetch(self, host: str, port: int, timeout_seconds: float, verify_ssl: bool) -> bytes:
        """
        Run the HTTPS/HTTP attempts and return the body of the first success.

        Raises:
            QueryError: From the final attempt when every attempt failed
        """
        urls = self.build_urls(host, port)

        for attempt, url in enumerate(urls, start=1):
            try:
                return await self._make_request(url, timeout_seconds, verify_ssl)
            except QueryError as e:
                if attempt == len(urls):
                    raise
                logger.debug(f"[Nitrado] {url} failed ({e}), falling back to {urls[attempt]}")

    async def _make_request(self, url: str, timeout_seconds: float, verify_ssl: bool) -> bytes:
        """
        Perform one GET against the query endpoint.

        Raises:
            TransportError: Connection, TLS or timeout failure, or non-200 status
        """
        headers = {
            'Accept': 'application/json',
            'User-Agent': self.user_agent,
        }
        timeout = aiohttp.ClientTimeout(total=timeout_seconds)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url, headers=headers, ssl=verify_ssl) as resp:
                    if resp.status != 200:
                        raise TransportError(f"HTTP {resp.status} error from Hytale server")
                    return await resp.read()

        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
            logger.debug(f"[Nitrado] Request to {url} failed: {e!r}")
            raise TransportError('Connection failed: Unable to connect to Hytale server') from e

    @staticmethod
    def _parse_body(body: bytes) -> dict:
        """
        Decode the JSON document.

        Raises:
            ProtocolViolationError: Not JSON, or not a non-empty JSON object
        """
        try:
            data = json.loads(body.decode('utf-8', errors='ignore'))
        except json.JSONDecodeError as e:
            raise ProtocolViolationError(f"Invalid JSON response from server: {e.msg}") from e

        if not isinstance(data, dict) or not data:
            raise ProtocolViolationError(
                'Invalid JSON response from server: expected a non-empty JSON object'
            )

        return data

    # =========================================================================
    # Formatting
    # =========================================================================

    @classmethod
    def _format_response(cls, host: str, port: int, data: dict, latency: float,
                         emitted: Iterable[FieldName]) -> OnlineResult:
        """
        Project the Nitrado document onto the requested sections.

        A section whose source object is missing or null becomes
        NO_PERMISSIONS. Players only needs Universe or Players to exist,
        since its counts come from Universe and Server.
        """
        server = data.get('Server')
        universe = data.get('Universe')
        players = data.get('Players')
        plugins = data.get('Plugins')

        # Present but not an object: treat as present with no usable keys
        server_fields = server if isinstance(server, dict) else {}
        universe_fields = universe if isinstance(universe, dict) else {}

        result = OnlineResult(host=host, port=port, method=QueryMethod.NITRADO, latency_ms=latency)

        for name in emitted:
            if name == FieldName.SERVER:
                if server is None:
                    result.sections[name] = NO_PERMISSIONS
                else:
                    result.sections[name] = ServerInfo(
                        name=_value(server_fields, 'Name', 'Unknown'),
                        version=_value(server_fields, 'Version', 'Unknown'),
                        revision=_value(server_fields, 'Revision'),
                        patchline=_value(server_fields, 'Patchline'),
                        protocol_version=_value(server_fields, 'ProtocolVersion'),
                        protocol_hash=_value(server_fields, 'ProtocolHash'),
                        max_players=_value(server_fields, 'MaxPlayers', 0),
                        has_build_info=True,
                    )

            elif name == FieldName.UNIVERSE:
                if universe is None:
                    result.sections[name] = NO_PERMISSIONS
                else:
                    result.sections[name] = UniverseInfo(
                        current_players=_value(universe_fields, 'CurrentPlayers', 0),
                        default_world=_value(universe_fields, 'DefaultWorld', 'unknown'),
                    )

            elif name == FieldName.PLAYERS:
                if universe is None and players is None:
                    result.sections[name] = NO_PERMISSIONS
                else:
                    result.sections[name] = PlayersInfo(
                        online=_value(universe_fields, 'CurrentPlayers', 0),
                        max=_value(server_fields, 'MaxPlayers', 0),
                        list=cls._extract_player_list(players) if isinstance(players, list) else [],
                    )

            elif name == FieldName.PLUGINS:
                if plugins is None:
                    result.sections[name] = NO_PERMISSIONS
                else:
                    plugin_list = cls._extract_plugin_list(plugins)
                    count = len(plugins) if isinstance(plugins, (dict, list)) else len(plugin_list)
                    result.sections[name] = PluginsInfo(count=count, list=plugin_list)

        return result

    @staticmethod
    def _extract_player_list(players: list) -> List[PlayerEntry]:
        """Build player entries from the Players array, skipping non-object items."""
        player_list = []

        for player in players:
            if isinstance(player, dict):
                player_list.append(PlayerEntry(
                    name=_first_value(player, ('name', 'username'), 'Unknown'),
                    uuid=player.get('uuid'),
                    ping=player.get('ping'),
                ))

        return player_list

    @staticmethod
    def _extract_plugin_list(plugins) -> List[PluginEntry]:
        """Build plugin entries from the Plugins mapping (name -> info object)."""
        if not isinstance(plugins, dict):
            return []

        plugin_list = []

        for plugin_name, info in plugins.items():
            if isinstance(info, dict):
                plugin_list.append(PluginEntry(
                    name=plugin_name,
                    version=_value(info, 'Version', 'Unknown'),
                    loaded=_value(info, 'Loaded', False),
                    enabled=_value(info, 'Enabled', False),
                    state=_value(info, 'State', 'UNKNOWN'),
                ))

        return plugin_list


def _value(source: dict, key: str, default=None):
    """source[key], or default when the key is missing or null."""
    value = source.get(key)
    return default if value is None else value


def _first_value(source: dict, keys: Iterable[str], default=None):
    for key in keys:
        value = source.get(key)
        if value is not None:
            return value
    return default
