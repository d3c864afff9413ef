import asyncio
import logging

from protohack.core.models.errors import ReadFailure, WriteFailure
from protohack.core.transport.flow import FlowControl


StreamItem = bytes | ReadFailure | None
"""
What the ConnectionProtocol pushes to a Streamer: a frame, the read error
that ended the stream, or None for a clean end of stream.
"""


class Streamer:
    """
    Manages the bidirectional flow of bytes for a single TCP connection.

    It receives frames from the ConnectionProtocol through an internal queue
    and exposes them to the connection loop via the asynchronous `receive()`
    method. Replies handed to `send()` are written to the transport and
    flushed before `send()` returns.

    `receive()` follows stream-read conventions: it returns the next frame,
    returns `b""` once the peer has cleanly closed its side and every frame
    before that has been consumed, and raises ReadFailure when the stream
    ended on an error.

    Reading from the transport is paused by the ConnectionProtocol when too
    many frames are queued, and resumed by `receive()` once the queue is
    empty.

    `send()` enforces write-then-flush. If the transport signals that writing
    is paused, `send()` waits until writing becomes possible again. If the
    transport is closing or the write fails, WriteFailure is raised.

    Streamer does not split frames or interpret their contents. These tasks
    are handled by the Framer and the ProtocolHandler.
    """
    def __init__(
        self,
        transport: asyncio.Transport,
        flow: FlowControl,
        queue: asyncio.Queue[StreamItem],
    ) -> None:
        self.queue = queue
        self._transport = transport
        self._flow = flow
        self._eof = False
        self._error: ReadFailure | None = None
        self._reading_paused = False
        self._logger = logging.getLogger("core.transport.stream")

    @property
    def reading_paused(self) -> bool:
        return self._reading_paused

    def pause_reading(self) -> None:
        if self._reading_paused or self._transport.is_closing():
            return

        self._reading_paused = True
        self._transport.pause_reading()
        self._logger.debug(f"{self.queue.qsize()} frame(s) pending, reading paused")

    def resume_reading(self) -> None:
        if not self._reading_paused:
            return

        self._reading_paused = False
        if not self._transport.is_closing():
            self._transport.resume_reading()

    async def receive(self) -> bytes:
        if not self._eof:
            item = await self.queue.get()
            if self.queue.empty():
                self.resume_reading()
            if isinstance(item, bytes):
                return item

            self._eof = True
            self._error = item

        if self._error is not None:
            raise self._error
        return b""

    async def send(self, payload: bytes) -> None:
        if not payload:
            return

        if self._transport.is_closing():
            raise WriteFailure("Transport is closing")

        try:
            self._transport.write(payload)
        except (OSError, RuntimeError) as exc:
            raise WriteFailure(f"Failed to write {len(payload)} bytes: {exc}") from exc

        await self.flush()

    async def flush(self) -> None:
        if self._flow.write_paused:
            self._logger.debug("Transport paused, waiting before flush completes")
            await self._flow.drain()

        if self._flow.released:
            raise WriteFailure("Connection lost before the reply was flushed")

    def close(self) -> None:
        self._transport.close()
