"""
HyQuery Client

Queries a Hytale server over the binary HyQuery UDP protocol.

Protocol: UDP
Port: 5520 (default, same as the game port)

Communication Flow:
1. Client sends "HYQUERY\\0" + query type (basic or full)
2. Server answers with a single "HYREPLY\\0" datagram
3. Client decodes the reply and formats the requested sections

There is no retransmission: one datagram out, one datagram back within the
timeout, otherwise the server is reported offline.
"""

import asyncio
import logging
import time
from typing import Iterable

from hytale_query.errors import (
    ProtocolViolationError,
    QueryError,
    QueryTimeoutError,
    TransportError,
    TruncatedBufferError,
)
from hytale_query.models import (
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
from hytale_query.protocol.fields import FieldName, expand_fields, requires_full_query
from hytale_query.protocol.hyquery_proto import HyQueryReply, build_request, decode_response


DEFAULT_PORT = 5520

logger = logging.getLogger(__name__)


class HyQueryClient:
    """
    HyQuery UDP client.

    Stateless: every call to query() opens its own datagram endpoint and
    closes it before returning, so one instance can serve concurrent queries.
    """

    # =========================================================================
    # UDP Protocol Handler
    # =========================================================================

    class ReplyProtocol(asyncio.DatagramProtocol):
        """Resolves a future with the first datagram received."""

        def __init__(self, reply: asyncio.Future):
            self.reply = reply
            self.transport = None
            super().__init__()

        def connection_made(self, transport):
            self.transport = transport

        def datagram_received(self, data, addr):
            if not self.reply.done():
                self.reply.set_result(data)

        def error_received(self, exc):
            if not self.reply.done():
                self.reply.set_exception(
                    TransportError(f"Failed to receive response: {exc}")
                )

        def connection_lost(self, exc):
            if exc is not None and not self.reply.done():
                self.reply.set_exception(
                    TransportError(f"Failed to receive response: {exc}")
                )

    # =========================================================================
    # Query
    # =========================================================================

    async def query(self, host: str, port: int = DEFAULT_PORT, timeout_seconds: float = 3,
                    fields: Iterable[FieldName] = ()) -> QueryResult:
        """
        Query a server and return its status.

        Args:
            host: Server hostname or IP
            port: Server game port
            timeout_seconds: How long to wait for the reply
            fields: Requested sections; empty means all sections but a basic query

        Returns:
            OnlineResult or OfflineResult, never raises for query failures
        """
        fields = tuple(fields)
        full = requires_full_query(fields)
        start_time = time.perf_counter()

        logger.debug(f"[HyQuery] Querying {host}:{port} ({'full' if full else 'basic'})")

        try:
            data = await self._exchange(host, port, build_request(full), timeout_seconds)

            emitted = expand_fields(fields)
            reply = decode_response(
                data,
                want_players=FieldName.PLAYERS in emitted,
                want_plugins=FieldName.PLUGINS in emitted,
            )

            latency = round((time.perf_counter() - start_time) * 1000, 1)
            result = self._format_response(host, port, reply, latency, emitted)

            logger.info(f"[HyQuery] {host}:{port} online ({latency} ms)")
            return result

        except TruncatedBufferError as e:
            return self._offline(host, port, ProtocolViolationError(f"Truncated response: {e}"))

        except QueryError as e:
            return self._offline(host, port, e)

    async def _exchange(self, host: str, port: int, request: bytes, timeout_seconds: float) -> bytes:
        """
        Send one request datagram and wait for one reply datagram.

        Raises:
            TransportError: Socket could not be created, or send/receive failed
            QueryTimeoutError: No reply in time
        """
        loop = asyncio.get_running_loop()
        reply = loop.create_future()

        try:
            transport, _ = await asyncio.wait_for(
                loop.create_datagram_endpoint(
                    lambda: self.ReplyProtocol(reply),
                    remote_addr=(host, port)
                ),
                timeout=timeout_seconds
            )
        except asyncio.TimeoutError:
            raise QueryTimeoutError('No response from server (timeout)') from None
        except OSError as e:
            raise TransportError(f"Failed to create UDP socket: {e}") from e

        try:
            try:
                transport.sendto(request)
            except OSError as e:
                raise TransportError(f"Failed to send query packet: {e}") from e

            try:
                return await asyncio.wait_for(reply, timeout=timeout_seconds)
            except asyncio.TimeoutError:
                raise QueryTimeoutError('No response from server (timeout)') from None
        finally:
            transport.close()

    # =========================================================================
    # Formatting
    # =========================================================================

    @staticmethod
    def _format_response(host: str, port: int, reply: HyQueryReply, latency: float,
                         emitted: Iterable[FieldName]) -> OnlineResult:
        """
        Project a decoded reply onto the requested sections.

        HyQuery has no data for build info, the default world, player pings
        or plugin metadata; those are filled with fixed placeholders.
        """
        result = OnlineResult(host=host, port=port, method=QueryMethod.HYQUERY, latency_ms=latency)

        for name in emitted:
            if name == FieldName.SERVER:
                result.sections[name] = ServerInfo(
                    name=reply.server_name,
                    version=reply.version,
                    motd=reply.motd,
                    max_players=reply.max_players,
                )

            elif name == FieldName.UNIVERSE:
                result.sections[name] = UniverseInfo(
                    current_players=reply.online_players,
                    default_world='unknown',
                )

            elif name == FieldName.PLAYERS:
                result.sections[name] = PlayersInfo(
                    online=reply.online_players,
                    max=reply.max_players,
                    list=[
                        PlayerEntry(name=player_name, uuid=player_uuid, ping=None)
                        for player_name, player_uuid in (reply.players or [])
                    ],
                )

            elif name == FieldName.PLUGINS:
                plugins = [
                    PluginEntry(name=plugin_name, version='Unknown', loaded=True,
                                enabled=True, state='LOADED')
                    for plugin_name in (reply.plugins or [])
                ]
                result.sections[name] = PluginsInfo(count=len(plugins), list=plugins)

        return result

    @staticmethod
    def _offline(host: str, port: int, error: QueryError) -> OfflineResult:
        logger.info(f"[HyQuery] {host}:{port} offline: {error}")
        return OfflineResult(
            host=host,
            port=port,
            method=QueryMethod.HYQUERY,
            error=str(error),
            error_kind=error.kind,
        )
