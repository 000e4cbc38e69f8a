"""
Request and result types for server queries

A query goes in as a QueryRequest and always comes back as a QueryResult:
either OnlineResult with the requested sections, or OfflineResult with a
human-readable error. Sections the server had no data for hold the
NO_PERMISSIONS sentinel instead of being left out.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from hytale_query.errors import ErrorKind, InvalidInputError
from hytale_query.protocol.fields import ALL_FIELDS, FieldName, parse_fields


# Marker for a requested section the server reported no data for
NO_PERMISSIONS = 'no_permissions'


class QueryMethod(str, Enum):
    """Wire protocol used to query a server"""

    NITRADO = 'nitrado'
    HYQUERY = 'hyquery'

    @classmethod
    def parse(cls, raw) -> 'QueryMethod':
        """Parse a method name case-insensitively; raise InvalidInputError if unknown."""
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise InvalidInputError('Invalid method. Must be "nitrado" or "hyquery"') from None


# =============================================================================
# Request
# =============================================================================

@dataclass(frozen=True)
class QueryRequest:
    """
    One server query.

    Attributes:
        host: Hostname or IP, optionally with an http:// or https:// prefix (Nitrado only)
        port: Target port, or None for the method's default port
        method: Wire protocol
        fields: Requested sections, empty meaning all
        timeout_seconds: Per-transport timeout
        verify_ssl: Verify TLS certificates (Nitrado only)
    """

    host: str
    port: Optional[int] = None
    method: QueryMethod = QueryMethod.NITRADO
    fields: Tuple[FieldName, ...] = ()
    timeout_seconds: float = 5
    verify_ssl: bool = False

    @classmethod
    def create(cls, host, port=None, method=QueryMethod.NITRADO, fields=None,
               timeout_seconds=5, verify_ssl=False) -> 'QueryRequest':
        """
        Validate raw caller input and build a request.

        Args:
            host: Server host (required, non-empty)
            port: Port as int or numeric string, or None for the default
            method: Method name or QueryMethod
            fields: Comma separated string, list of names, or None
            timeout_seconds: Positive timeout
            verify_ssl: TLS verification flag

        Returns:
            QueryRequest

        Raises:
            InvalidInputError: On any invalid parameter
        """
        if not isinstance(host, str) or not host.strip():
            raise InvalidInputError('Missing required parameter: host')

        query_method = QueryMethod.parse(method)

        if port is not None and port != '':
            port = parse_port(port)
        else:
            port = None

        try:
            timeout_seconds = float(timeout_seconds)
        except (TypeError, ValueError):
            raise InvalidInputError(f'Invalid timeout: {timeout_seconds!r}') from None
        if timeout_seconds <= 0:
            raise InvalidInputError('Timeout must be a positive number of seconds')

        if isinstance(fields, tuple) and all(isinstance(f, FieldName) for f in fields):
            parsed_fields = fields
        else:
            parsed_fields = parse_fields(fields)

        return cls(
            host=host.strip(),
            port=port,
            method=query_method,
            fields=parsed_fields,
            timeout_seconds=timeout_seconds,
            verify_ssl=bool(verify_ssl),
        )


def parse_port(raw) -> int:
    """
    Parse and range-check a port number.

    Raises:
        InvalidInputError: Not an integer, or outside 1-65535
    """
    if isinstance(raw, bool):
        raise InvalidInputError('Invalid port number. Must be between 1 and 65535')
    try:
        port = int(str(raw).strip()) if not isinstance(raw, int) else raw
    except ValueError:
        raise InvalidInputError('Invalid port number. Must be between 1 and 65535') from None
    if port < 1 or port > 65535:
        raise InvalidInputError('Invalid port number. Must be between 1 and 65535')
    return port


# =============================================================================
# Result Sections
# =============================================================================

@dataclass
class ServerInfo:
    name: str
    version: str
    max_players: int
    motd: Optional[str] = None
    revision: Optional[str] = None
    patchline: Optional[str] = None
    protocol_version: Optional[int] = None
    protocol_hash: Optional[str] = None
    # HyQuery carries a MOTD but none of the build fields, Nitrado the reverse
    has_build_info: bool = False

    def to_dict(self) -> dict:
        data = {'name': self.name, 'version': self.version}
        if self.has_build_info:
            data.update({
                'revision': self.revision,
                'patchline': self.patchline,
                'protocol_version': self.protocol_version,
                'protocol_hash': self.protocol_hash,
            })
        else:
            data['motd'] = self.motd
        data['max_players'] = self.max_players
        return data


@dataclass
class UniverseInfo:
    current_players: int
    default_world: str

    def to_dict(self) -> dict:
        return {'current_players': self.current_players, 'default_world': self.default_world}


@dataclass
class PlayerEntry:
    name: str
    uuid: Optional[str] = None
    ping: Optional[int] = None

    def to_dict(self) -> dict:
        return {'name': self.name, 'uuid': self.uuid, 'ping': self.ping}


@dataclass
class PlayersInfo:
    online: int
    max: int
    list: List[PlayerEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'online': self.online,
            'max': self.max,
            'list': [player.to_dict() for player in self.list],
        }


@dataclass
class PluginEntry:
    name: str
    version: str = 'Unknown'
    loaded: bool = False
    enabled: bool = False
    state: str = 'UNKNOWN'

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'version': self.version,
            'loaded': self.loaded,
            'enabled': self.enabled,
            'state': self.state,
        }


@dataclass
class PluginsInfo:
    count: int
    list: List[PluginEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {'count': self.count, 'list': [plugin.to_dict() for plugin in self.list]}


Section = Union[ServerInfo, UniverseInfo, PlayersInfo, PluginsInfo, str]


def _section_to_json(section: Section) -> Any:
    if isinstance(section, str):
        return section
    return section.to_dict()


# =============================================================================
# Results
# =============================================================================

@dataclass
class OnlineResult:
    """
    Successful query.

    The sections dict holds exactly the emitted sections; each value is a
    populated record or NO_PERMISSIONS.
    """

    host: str
    port: int
    method: QueryMethod
    latency_ms: float
    sections: Dict[FieldName, Section] = field(default_factory=dict)

    online = True

    @property
    def server(self) -> Optional[Section]:
        return self.sections.get(FieldName.SERVER)

    @property
    def universe(self) -> Optional[Section]:
        return self.sections.get(FieldName.UNIVERSE)

    @property
    def players(self) -> Optional[Section]:
        return self.sections.get(FieldName.PLAYERS)

    @property
    def plugins(self) -> Optional[Section]:
        return self.sections.get(FieldName.PLUGINS)

    def to_dict(self) -> dict:
        data = {
            'online': True,
            'host': self.host,
            'port': self.port,
            'latency_ms': self.latency_ms,
            'method': self.method.value,
        }
        for name in ALL_FIELDS:
            if name in self.sections:
                data[name.value] = _section_to_json(self.sections[name])
        return data


@dataclass
class OfflineResult:
    """Failed query; identity fields may be unset for batch validation records."""

    error: str
    host: Optional[str] = None
    port: Optional[int] = None
    method: Optional[QueryMethod] = None
    error_kind: ErrorKind = ErrorKind.INTERNAL

    online = False

    def to_dict(self) -> dict:
        data = {'online': False}
        if self.host is not None:
            data['host'] = self.host
        if self.port is not None:
            data['port'] = self.port
        if self.method is not None:
            data['method'] = self.method.value
        data['error'] = self.error
        return data


QueryResult = Union[OnlineResult, OfflineResult]
