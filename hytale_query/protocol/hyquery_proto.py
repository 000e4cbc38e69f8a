"""
HyQuery protocol utilities

Builds request packets and decodes reply packets of the HyQuery UDP
protocol spoken on the Hytale game port (5520 by default).

Request:
    "HYQUERY\\0" (8 bytes) + query type (1 byte, 0x00 basic / 0x01 full)

Reply:
    "HYREPLY\\0" (8 bytes)
    response type       uint8
    server name         string
    motd                string
    online players      uint32
    max players         uint32
    port                uint32
    version             string
    -- full replies only --
    player count        uint32
    players             (string name + 16 byte UUID) x count
    plugin count        uint32
    plugins             string x count

All integers are little-endian; strings are prefixed with their byte length
as a 2-byte little-endian unsigned integer.
"""

import logging
import struct
import uuid
from dataclasses import dataclass
from typing import List, Optional, Tuple

from hytale_query.errors import ProtocolViolationError
from hytale_query.protocol.binary_cursor import BinaryCursor, UUID_SIZE


logger = logging.getLogger(__name__)


# =============================================================================
# Protocol Constants
# =============================================================================

REQUEST_MAGIC = b'HYQUERY\x00'
RESPONSE_MAGIC = b'HYREPLY\x00'

TYPE_BASIC = 0x00
TYPE_FULL = 0x01


# =============================================================================
# Reply Record
# =============================================================================

@dataclass
class HyQueryReply:
    """Raw server status decoded from a HyQuery reply packet"""

    response_type: int
    server_name: str
    motd: str
    online_players: int
    max_players: int
    port: int
    version: str
    # None means "not decoded", either because the reply was basic or the
    # section was not requested
    players: Optional[List[Tuple[str, str]]] = None
    plugins: Optional[List[str]] = None

    @property
    def is_full(self) -> bool:
        return self.response_type == TYPE_FULL


# =============================================================================
# Encoding
# =============================================================================

def build_request(full: bool) -> bytes:
    """
    Build a HyQuery request packet.

    Args:
        full: True for a full query (players and plugins), False for basic

    Returns:
        9-byte request packet

    Example:
        >>> build_request(False)
        b'HYQUERY\\x00\\x00'
    """
    return REQUEST_MAGIC + bytes([TYPE_FULL if full else TYPE_BASIC])


def _pack_string(value: str) -> bytes:
    raw = value.encode('utf-8')
    if len(raw) > 0xFFFF:
        raise ValueError(f"String too long for HyQuery encoding: {len(raw)} bytes")
    return struct.pack('<H', len(raw)) + raw


def encode_response(server_name: str, motd: str, online_players: int, max_players: int,
                    port: int, version: str,
                    players: Optional[List[Tuple[str, str]]] = None,
                    plugins: Optional[List[str]] = None) -> bytes:
    """
    Encode a HyQuery reply packet.

    The reply is full when either players or plugins is given (a missing
    list is then encoded as empty). Used by local responders and tests.

    Args:
        server_name: Server name
        motd: Message of the day
        online_players: Current player count
        max_players: Player limit
        port: Game port reported by the server
        version: Server version string
        players: Optional list of (name, uuid string) tuples
        plugins: Optional list of plugin names

    Returns:
        Encoded reply packet
    """
    full = players is not None or plugins is not None

    packet = bytearray(RESPONSE_MAGIC)
    packet.append(TYPE_FULL if full else TYPE_BASIC)
    packet += _pack_string(server_name)
    packet += _pack_string(motd)
    packet += struct.pack('<III', online_players, max_players, port)
    packet += _pack_string(version)

    if full:
        players = players or []
        plugins = plugins or []

        packet += struct.pack('<I', len(players))
        for name, player_uuid in players:
            packet += _pack_string(name)
            packet += uuid.UUID(player_uuid).bytes

        packet += struct.pack('<I', len(plugins))
        for name in plugins:
            packet += _pack_string(name)

    return bytes(packet)


# =============================================================================
# Decoding
# =============================================================================

def decode_response(data: bytes, want_players: bool = True, want_plugins: bool = True) -> HyQueryReply:
    """
    Decode a HyQuery reply packet.

    The header is always decoded. For full replies with data left over, the
    player block is decoded when want_players is set, and the plugin block
    when want_plugins is set. Asking for plugins without players still walks
    over the player block, entry by entry, to reach the plugin block.

    Args:
        data: Raw reply datagram
        want_players: Decode the player list
        want_plugins: Decode the plugin list

    Returns:
        HyQueryReply

    Raises:
        ProtocolViolationError: Wrong magic bytes
        TruncatedBufferError: Packet ended mid-field
    """
    if data[:len(RESPONSE_MAGIC)] != RESPONSE_MAGIC:
        raise ProtocolViolationError('Invalid response magic bytes')

    cursor = BinaryCursor(data, offset=len(RESPONSE_MAGIC))

    reply = HyQueryReply(
        response_type=cursor.read_uint8(),
        server_name=cursor.read_string(),
        motd=cursor.read_string(),
        online_players=cursor.read_uint32_le(),
        max_players=cursor.read_uint32_le(),
        port=cursor.read_uint32_le(),
        version=cursor.read_string(),
    )

    if not reply.is_full:
        return reply

    if want_players and cursor.remaining > 0:
        reply.players = _read_players(cursor)

    if want_plugins and cursor.remaining > 0 and reply.players is None:
        _skip_players(cursor)

    if want_plugins and cursor.remaining > 0:
        reply.plugins = _read_plugins(cursor)

    logger.debug(
        f"[HyQuery] Decoded reply: type=0x{reply.response_type:02x}, "
        f"players={None if reply.players is None else len(reply.players)}, "
        f"plugins={None if reply.plugins is None else len(reply.plugins)}, "
        f"trailing={cursor.remaining}"
    )

    return reply


def _read_players(cursor: BinaryCursor) -> List[Tuple[str, str]]:
    count = cursor.read_uint32_le()
    players = []
    for _ in range(count):
        name = cursor.read_string()
        players.append((name, cursor.read_uuid()))
    return players


def _skip_players(cursor: BinaryCursor):
    count = cursor.read_uint32_le()
    for _ in range(count):
        cursor.skip_string()
        cursor.skip(UUID_SIZE)


def _read_plugins(cursor: BinaryCursor) -> List[str]:
    count = cursor.read_uint32_le()
    return [cursor.read_string() for _ in range(count)]
