"""
Tests for BinaryCursor.
"""

import struct

import pytest

from hytale_query.errors import ProtocolViolationError, TruncatedBufferError
from hytale_query.protocol.binary_cursor import BinaryCursor


class TestBinaryCursorIntegers:
    """Fixed-width reads."""

    def test_read_uint32_le(self):
        cursor = BinaryCursor(struct.pack('<I', 0xDEADBEEF))
        assert cursor.read_uint32_le() == 0xDEADBEEF
        assert cursor.offset == 4
        assert cursor.remaining == 0

    def test_read_uint32_is_unsigned(self):
        cursor = BinaryCursor(b'\xff\xff\xff\xff')
        assert cursor.read_uint32_le() == 4294967295

    def test_read_uint32_truncated(self):
        cursor = BinaryCursor(b'\x01\x02\x03')
        with pytest.raises(TruncatedBufferError):
            cursor.read_uint32_le()
        assert cursor.offset == 0

    def test_truncated_is_protocol_violation(self):
        with pytest.raises(ProtocolViolationError):
            BinaryCursor(b'').read_uint8()

    def test_sequential_reads_advance_offset(self):
        cursor = BinaryCursor(b'\x07' + struct.pack('<HI', 513, 70000))
        assert cursor.read_uint8() == 7
        assert cursor.read_uint16_le() == 513
        assert cursor.read_uint32_le() == 70000
        assert cursor.offset == 7


class TestBinaryCursorStrings:
    """Length-prefixed strings."""

    def test_read_string(self):
        cursor = BinaryCursor(b'\x05\x00hello\x00')
        assert cursor.read_string() == 'hello'
        assert cursor.offset == 7
        assert cursor.remaining == 1

    def test_read_empty_string(self):
        cursor = BinaryCursor(b'\x00\x00')
        assert cursor.read_string() == ''
        assert cursor.offset == 2

    def test_read_utf8_string(self):
        raw = 'Ünïcødé'.encode('utf-8')
        cursor = BinaryCursor(struct.pack('<H', len(raw)) + raw)
        assert cursor.read_string() == 'Ünïcødé'

    def test_invalid_utf8_is_replaced(self):
        cursor = BinaryCursor(b'\x02\x00\xff\xfe')
        assert cursor.read_string() == '\ufffd\ufffd'

    def test_string_body_truncated(self):
        cursor = BinaryCursor(b'\x0a\x00short')
        with pytest.raises(TruncatedBufferError):
            cursor.read_string()

    def test_string_length_truncated(self):
        with pytest.raises(TruncatedBufferError):
            BinaryCursor(b'\x01').read_string()

    def test_skip_string(self):
        cursor = BinaryCursor(b'\x03\x00abc\x2a')
        cursor.skip_string()
        assert cursor.read_uint8() == 42


class TestBinaryCursorUuid:
    """UUID rendering."""

    def test_zero_uuid(self):
        assert BinaryCursor(bytes(16)).read_uuid() == '00000000-0000-0000-0000-000000000000'

    def test_uuid_is_lowercase_hyphenated(self):
        raw = bytes.fromhex('0F8FAD5BD9CB469FA16570867728950E')
        assert BinaryCursor(raw).read_uuid() == '0f8fad5b-d9cb-469f-a165-70867728950e'

    def test_uuid_truncated(self):
        with pytest.raises(TruncatedBufferError):
            BinaryCursor(bytes(15)).read_uuid()


class TestBinaryCursorSkip:
    """Skipping bytes."""

    def test_skip(self):
        cursor = BinaryCursor(b'\x00\x00\x00\x09')
        cursor.skip(3)
        assert cursor.read_uint8() == 9

    def test_skip_past_end(self):
        cursor = BinaryCursor(b'\x00\x00')
        with pytest.raises(TruncatedBufferError):
            cursor.skip(3)

    def test_skip_negative(self):
        with pytest.raises(ValueError):
            BinaryCursor(b'\x00').skip(-1)
