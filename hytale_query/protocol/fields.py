"""
Field selection shared by both query protocols

Callers may ask for any subset of the four response sections. An empty
selection means "everything", but that expansion only happens when the
response is formatted: HyQuery picks its wire query type from the caller's
original selection, so an empty selection still sends a basic query.
"""

from enum import Enum
from typing import Iterable, Tuple, Union


class FieldName(str, Enum):
    """Response sections a caller can request"""

    SERVER = 'server'
    UNIVERSE = 'universe'
    PLAYERS = 'players'
    PLUGINS = 'plugins'


# Canonical section order, used for expansion and for JSON output
ALL_FIELDS = (FieldName.SERVER, FieldName.UNIVERSE, FieldName.PLAYERS, FieldName.PLUGINS)

# Sections whose data only comes back in a full HyQuery reply
FULL_QUERY_FIELDS = frozenset({FieldName.PLAYERS, FieldName.PLUGINS})


def parse_fields(raw: Union[str, Iterable[str], None]) -> Tuple[FieldName, ...]:
    """
    Parse a fields parameter into FieldName members.

    Accepts a comma separated string ("server, players") or a list of
    strings. Tokens are trimmed and lower-cased; unknown tokens are dropped
    silently. Input order is kept and duplicates are removed.

    Args:
        raw: Fields as string, list of strings, or None

    Returns:
        Tuple of FieldName (empty when nothing valid was given)

    Example:
        >>> parse_fields('Players, bogus,server')
        (<FieldName.PLAYERS: 'players'>, <FieldName.SERVER: 'server'>)
    """
    if raw is None:
        return ()

    if isinstance(raw, str):
        tokens = raw.split(',')
    elif isinstance(raw, (list, tuple, set, frozenset)):
        tokens = [token for token in raw if isinstance(token, str)]
    else:
        return ()

    fields = []
    for token in tokens:
        try:
            field = FieldName(token.strip().lower())
        except ValueError:
            continue
        if field not in fields:
            fields.append(field)

    return tuple(fields)


def requires_full_query(fields: Iterable[FieldName]) -> bool:
    """
    Decide whether HyQuery needs a full query.

    Must be called with the caller's original selection: an empty selection
    means a basic query even though all sections get emitted later.
    """
    return any(field in FULL_QUERY_FIELDS for field in fields)


def expand_fields(fields: Iterable[FieldName]) -> Tuple[FieldName, ...]:
    """Return the sections to emit, in canonical order (all four when empty)."""
    requested = set(fields)
    if not requested:
        return ALL_FIELDS
    return tuple(field for field in ALL_FIELDS if field in requested)


def fields_cache_token(fields: Iterable[FieldName]) -> str:
    """Canonical string for a selection: sorted names joined by '_', or 'all'."""
    names = sorted({FieldName(field).value for field in fields})
    return '_'.join(names) if names else 'all'
