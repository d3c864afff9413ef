from typing import Iterator

from protohack.core.models.delimiter import DelimiterPolicy, ExactBytes, UntilByte
from protohack.core.models.errors import FrameTooLarge, ReadFailure


class Framer:
    """
    Splits a continuous byte stream into frames according to a delimiter
    policy.

    Bytes are pushed in with `feed()` as they arrive from the transport, and
    complete frames are pulled out by iterating over the Framer. Each
    iteration yields the frames that are complete at that moment and leaves
    any incomplete tail buffered for the next call.

    - UntilByte: a frame runs up to and including the delimiter byte.
    - ExactBytes: a frame is exactly `size` bytes.

    At end of stream, `flush()` hands back the incomplete tail. For UntilByte
    the tail is a valid (unterminated) last frame; for ExactBytes it is a
    truncated frame and raises ReadFailure.

    The Framer never looks inside a frame.
    """

    def __init__(self, policy: DelimiterPolicy, max_frame_size: int) -> None:
        self.policy = policy
        self._max_frame_size = max_frame_size
        self._buffer = bytearray()
        # Index up to which the buffer is known not to contain the delimiter.
        self._scanned = 0

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet returned as a frame."""
        return len(self._buffer)

    def feed(self, data: bytes) -> None:
        self._buffer.extend(data)

    def __iter__(self) -> Iterator[bytes]:
        while (frame := self._next_frame()) is not None:
            yield frame

        if len(self._buffer) > self._max_frame_size:
            raise FrameTooLarge(
                f"Pending frame of {len(self._buffer)} bytes exceeds "
                f"{self._max_frame_size} bytes"
            )

    def flush(self) -> bytes:
        """Return and clear the incomplete tail left at end of stream."""
        tail = bytes(self._buffer)
        self._buffer.clear()
        self._scanned = 0

        if tail and isinstance(self.policy, ExactBytes):
            raise ReadFailure(
                f"Stream ended after {len(tail)} of {self.policy.size} bytes"
            )

        return tail

    def _next_frame(self) -> bytes | None:
        match self.policy:
            case UntilByte(byte=byte):
                end = self._buffer.find(byte, self._scanned)
                if end < 0:
                    self._scanned = len(self._buffer)
                    return None
                size = end + 1
            case ExactBytes(size=size):
                if len(self._buffer) < size:
                    return None

        frame = bytes(self._buffer[:size])
        del self._buffer[:size]
        self._scanned = 0
        return frame
