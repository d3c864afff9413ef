import asyncio
import logging

from protohack.core.models.config import ServerConfig
from protohack.core.models.errors import ReadFailure
from protohack.core.models.state import ServerState
from protohack.core.transport.addr import get_local_addr, get_remote_addr
from protohack.core.transport.connection import Connection
from protohack.core.transport.flow import FlowControl
from protohack.core.transport.framer import Framer
from protohack.core.transport.stream import Streamer, StreamItem


class ConnectionProtocol(asyncio.Protocol):
    """
    Implements the low-level framing and connection lifecycle for a
    single TCP client. It receives raw bytes from the transport, splits them
    into frames with a Framer, and forwards the frames to the Streamer
    associated with the connection.

    When a connection is established, ConnectionProtocol asks the configured
    factory for a fresh ProtocolHandler, builds a Framer with that handler's
    delimiter policy, registers itself in the server's connection set, and
    starts the task running the Connection loop.

    If a pending frame grows beyond the configured maximum size, the stream
    is terminated with a read failure and no further bytes are framed.
    When too many complete frames wait for the Connection loop, reading
    from the socket is paused until the Streamer has consumed them.

    When the peer half-closes, the trailing unterminated bytes (if any) are
    delivered as a last frame and the transport is kept open so the pending
    replies can still be written; the Connection loop closes it once done.
    When the connection is lost, ConnectionProtocol removes itself from the
    server state, releases flow control, and signals the end of the stream
    (clean or failed) to the Streamer.

    ConnectionProtocol does not interpret frames or decide what to send.
    These responsibilities belong to the ProtocolHandler and the Connection.
    """
    def __init__(
        self,
        config: ServerConfig,
        server_state: ServerState,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._transport: asyncio.Transport = None   # type: ignore[assignment]
        self._flow: FlowControl = None  # type: ignore[assignment]
        self._streamer: Streamer = None   # type: ignore[assignment]
        self._framer: Framer = None   # type: ignore[assignment]

        self._config = config
        self._loop = loop or asyncio.get_event_loop()
        self._connections = server_state.connections
        self._tasks = server_state.tasks
        self._ended = False
        self._client: tuple[str, int] | None = None
        self._local: tuple[str, int] | None = None
        self._logger = logging.getLogger("core.transport.protocol")

    @property
    def who(self) -> str:
        return "%s:%d" % self._client if self._client else ""

    @property
    def local(self) -> str:
        return "%s:%d" % self._local if self._local else ""

    def connection_made(self, transport: asyncio.Transport) -> None:  # type: ignore[override]
        self._transport = transport
        self._client = get_remote_addr(transport)
        self._local = get_local_addr(transport)

        handler = self._config.handler_factory()
        self._flow = FlowControl()
        self._framer = Framer(
            policy=handler.get_delimiter(),
            max_frame_size=self._config.max_buffer_size,
        )
        self._streamer = Streamer(
            transport=self._transport,
            flow=self._flow,
            queue=asyncio.Queue(),
        )
        connection = Connection(
            streamer=self._streamer,
            handler=handler,
            malformed_response=self._config.malformed_response,
            peer=self.who,
        )
        self._connections.add(self)

        task = self._loop.create_task(connection.run())
        task.add_done_callback(self._tasks.discard)
        self._tasks.add(task)

        self._logger.debug(f"{self.who} - Connection made on {self.local}")

    def connection_lost(self, exc: Exception | None) -> None:
        self._connections.discard(self)
        self._logger.debug(f"{self.who} - Connection lost.")

        if self._flow is not None:
            self._flow.release()

        if exc is None:
            self._transport.close()
            self._end_stream(None)
        else:
            self._end_stream(ReadFailure(f"Connection lost: {exc!r}"))

    def eof_received(self) -> bool:
        try:
            tail = self._framer.flush()
        except ReadFailure as exc:
            self._end_stream(exc)
            return True

        if tail:
            self._push(tail)
        self._end_stream(None)

        # Keep the write side open until pending replies are flushed.
        return True

    def data_received(self, data: bytes) -> None:
        if self._ended:
            return

        self._framer.feed(data)
        try:
            for frame in self._framer:
                self._push(frame)
        except ReadFailure as exc:
            self._logger.warning(f"{self.who} - {exc}, closing connection")
            self._end_stream(exc)

    def pause_writing(self) -> None:
        self._flow.pause_writing()

    def resume_writing(self) -> None:
        self._flow.resume_writing()

    def shutdown(self) -> None:
        self._transport.close()

    def _push(self, item: StreamItem) -> None:
        queue = self._streamer.queue
        queue.put_nowait(item)

        if isinstance(item, bytes) and queue.qsize() >= self._config.max_pending_frames:
            self._streamer.pause_reading()

    def _end_stream(self, item: ReadFailure | None) -> None:
        if self._ended:
            return
        self._ended = True
        self._push(item)
