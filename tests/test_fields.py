"""
Tests for field parsing and the basic/full decision.
"""

import pytest

from hytale_query.protocol.fields import (
    ALL_FIELDS,
    FieldName,
    expand_fields,
    fields_cache_token,
    parse_fields,
    requires_full_query,
)


class TestParseFields:
    """Parsing caller input."""

    def test_comma_string(self):
        assert parse_fields('server,players') == (FieldName.SERVER, FieldName.PLAYERS)

    def test_whitespace_and_case(self):
        assert parse_fields(' Server , PLUGINS ') == (FieldName.SERVER, FieldName.PLUGINS)

    def test_list_input(self):
        assert parse_fields(['universe', 'plugins']) == (FieldName.UNIVERSE, FieldName.PLUGINS)

    def test_unknown_tokens_dropped(self):
        assert parse_fields('server,bogus,,maps') == (FieldName.SERVER,)

    def test_duplicates_removed(self):
        assert parse_fields('players,players,server') == (FieldName.PLAYERS, FieldName.SERVER)

    def test_empty_and_none(self):
        assert parse_fields('') == ()
        assert parse_fields(None) == ()
        assert parse_fields([]) == ()

    def test_non_string_list_items_ignored(self):
        assert parse_fields(['server', 3, None]) == (FieldName.SERVER,)

    def test_unsupported_type(self):
        assert parse_fields(42) == ()


class TestRequiresFullQuery:
    """Basic vs full HyQuery selection."""

    @pytest.mark.parametrize('fields, full', [
        ((), False),
        ((FieldName.SERVER,), False),
        ((FieldName.PLAYERS,), True),
        ((FieldName.PLUGINS,), True),
        ((FieldName.SERVER, FieldName.UNIVERSE), False),
        ((FieldName.SERVER, FieldName.PLUGINS), True),
    ])
    def test_selection(self, fields, full):
        assert requires_full_query(fields) is full

    def test_empty_selection_is_basic_even_though_all_sections_emitted(self):
        # The wire query type follows the original selection, emission the expanded one
        assert requires_full_query(()) is False
        assert requires_full_query(expand_fields(())) is True


class TestExpandFields:
    """Default expansion."""

    def test_empty_expands_to_all(self):
        assert expand_fields(()) == ALL_FIELDS

    def test_canonical_order(self):
        assert expand_fields((FieldName.PLUGINS, FieldName.SERVER)) == (FieldName.SERVER, FieldName.PLUGINS)


class TestFieldsCacheToken:
    """Canonical cache key fragment."""

    def test_all(self):
        assert fields_cache_token(()) == 'all'

    def test_sorted(self):
        assert fields_cache_token((FieldName.SERVER, FieldName.PLAYERS)) == 'players_server'
        assert fields_cache_token((FieldName.PLAYERS, FieldName.SERVER)) == 'players_server'
