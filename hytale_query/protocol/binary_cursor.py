"""
Binary cursor for little-endian wire formats

Reads fixed-width integers, length-prefixed strings and raw UUIDs from a
byte buffer, advancing an internal offset. One cursor belongs to one decode
call and is never shared.
"""

import struct

from hytale_query.errors import TruncatedBufferError


UUID_SIZE = 16


class BinaryCursor:
    """
    Sequential reader over an immutable byte buffer.

    Every read checks that enough bytes remain and raises
    TruncatedBufferError instead of returning short data.

    Example:
        >>> cursor = BinaryCursor(b'\\x03\\x00abc\\x2a\\x00\\x00\\x00')
        >>> cursor.read_string()
        'abc'
        >>> cursor.read_uint32_le()
        42
    """

    def __init__(self, data: bytes, offset: int = 0):
        self._data = bytes(data)
        self._offset = offset

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def _take(self, size: int, what: str) -> bytes:
        if size < 0:
            raise ValueError(f"Cannot read a negative number of bytes ({size})")
        if self.remaining < size:
            raise TruncatedBufferError(
                f"need {size} bytes for {what} at offset {self._offset}, "
                f"only {self.remaining} left"
            )
        chunk = self._data[self._offset:self._offset + size]
        self._offset += size
        return chunk

    def read_uint8(self) -> int:
        return self._take(1, 'uint8')[0]

    def read_uint16_le(self) -> int:
        return struct.unpack('<H', self._take(2, 'uint16'))[0]

    def read_uint32_le(self) -> int:
        """Read a 4-byte unsigned little-endian integer."""
        return struct.unpack('<I', self._take(4, 'uint32'))[0]

    def read_string(self) -> str:
        """
        Read a string prefixed with its 2-byte little-endian byte length.

        Invalid UTF-8 sequences are replaced rather than rejected.
        """
        length = self.read_uint16_le()
        if length == 0:
            return ''
        return self._take(length, 'string body').decode('utf-8', errors='replace')

    def read_uuid(self) -> str:
        """
        Read 16 raw bytes as a lowercase 8-4-4-4-12 UUID string.

        Example:
            >>> BinaryCursor(bytes(16)).read_uuid()
            '00000000-0000-0000-0000-000000000000'
        """
        h = self._take(UUID_SIZE, 'uuid').hex()
        return f'{h[0:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}'

    def skip(self, size: int):
        """Advance the offset without decoding anything."""
        self._take(size, f'skip of {size} bytes')

    def skip_string(self):
        """Advance past one length-prefixed string."""
        self.skip(self.read_uint16_le())
