class ProtohackError(Exception):
    """Base class for every error raised by protohack."""


class BindFailure(ProtohackError):
    """
    The listener could not be bound to the requested address.

    Fatal at startup: the server never begins accepting connections.
    """


class ConnectionFailure(ProtohackError):
    """An I/O failure scoped to a single connection."""


class ReadFailure(ConnectionFailure):
    """The next frame could not be read from the peer."""


class FrameTooLarge(ReadFailure):
    """A pending frame grew past the configured maximum size."""


class WriteFailure(ConnectionFailure):
    """A reply could not be written or flushed to the peer."""


class RequestError(ProtohackError):
    """
    Raised by a protocol handler when a payload is malformed.

    This is an expected protocol-level signal rather than a fault. The
    offending bytes are kept for diagnostics.
    """

    def __init__(self, payload: bytes, reason: str = "malformed request") -> None:
        super().__init__(reason)
        self.payload = bytes(payload)
        self.reason = reason

    def __repr__(self) -> str:
        return f"RequestError(reason={self.reason!r}, payload={self.payload!r})"
