"""
Error taxonomy for server queries

Clients raise these internally and convert them into OfflineResult records
at their query() boundary. Only InvalidInputError is ever raised to a caller.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Category recorded on every offline result"""

    INVALID_INPUT = 'invalid_input'
    TRANSPORT = 'transport'
    PROTOCOL = 'protocol'
    TIMEOUT = 'timeout'
    INTERNAL = 'internal'


class QueryError(Exception):
    """Base class for all query failures"""

    kind = ErrorKind.INTERNAL


class InvalidInputError(QueryError):
    """Missing host, out-of-range port, unknown method and similar caller mistakes"""

    kind = ErrorKind.INVALID_INPUT


class TransportError(QueryError):
    """Socket, DNS, TLS or HTTP level failure"""

    kind = ErrorKind.TRANSPORT


class ProtocolViolationError(QueryError):
    """The server answered, but not in the expected format"""

    kind = ErrorKind.PROTOCOL


class TruncatedBufferError(ProtocolViolationError):
    """A binary read ran past the end of the buffer"""


class QueryTimeoutError(QueryError):
    """No response within the configured timeout"""

    kind = ErrorKind.TIMEOUT
