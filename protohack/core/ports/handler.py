from typing import Callable, Protocol

from protohack.core.models.delimiter import NEWLINE, DelimiterPolicy


class ProtocolHandler(Protocol):
    """
    Defines the interface a line protocol implements to be served by a
    ProtocolServer.

    A handler is created for each accepted connection and receives that
    connection's frames, one at a time and in arrival order. It never sees
    the socket: framing, writing, and disconnect policy belong to the
    transport.

    Implementations must:
    - return the same delimiter policy for the whole life of the instance
    - return the exact bytes to write back (possibly empty) for a
      conforming payload
    - raise RequestError for a malformed payload
    """

    def get_delimiter(self) -> DelimiterPolicy:
        """Return the framing rule for this protocol. Defaults to newline."""
        return NEWLINE

    def process_request(self, payload: bytes) -> bytes:
        """Turn one framed payload into the reply bytes for the peer."""
        ...


HandlerFactory = Callable[[], ProtocolHandler]
"""
Zero-argument callable building a ProtocolHandler for a new connection.
A handler class with a no-argument constructor qualifies.
"""
