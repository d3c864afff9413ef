import logging
from enum import StrEnum

from protohack.core.models.errors import ReadFailure, RequestError, WriteFailure
from protohack.core.ports.handler import ProtocolHandler
from protohack.core.transport.stream import Streamer


class ConnectionState(StrEnum):
    reading = "reading"
    dispatching = "dispatching"
    writing = "writing"
    disconnecting = "disconnecting"
    closed = "closed"
    failed = "failed"


class ConnectionOutcome(StrEnum):
    peer_closed = "peer_closed"
    """The peer shut down its side; every request got its reply."""

    malformed = "malformed"
    """A request was rejected; the malformed reply was sent and the link dropped."""

    read_failed = "read_failed"
    write_failed = "write_failed"

    handler_failed = "handler_failed"
    """The handler raised something other than RequestError."""


class Connection:
    """
    Drives one accepted connection from its first frame to its teardown.

    The loop alternates between three states:

    - reading: wait for the next frame from the Streamer. An empty frame
      means the peer closed cleanly and ends the loop. A ReadFailure ends it
      as failed without writing anything.
    - dispatching: hand the frame to the ProtocolHandler. A reply moves to
      writing and back to reading. A RequestError moves to writing with the
      malformed response and then to disconnecting, whatever else the peer
      has already sent.
    - writing: write and flush through the Streamer. A WriteFailure ends the
      loop as failed.

    Request N's reply is flushed before frame N+1 is read, so replies leave
    in request order and a single request never gets more than one reply.

    The transport is closed on every exit path.
    """

    def __init__(
        self,
        streamer: Streamer,
        handler: ProtocolHandler,
        malformed_response: bytes,
        peer: str = "",
    ) -> None:
        self.state = ConnectionState.reading
        self._streamer = streamer
        self._handler = handler
        self._malformed_response = malformed_response
        self._peer = peer
        self._logger = logging.getLogger("core.transport.connection")

    async def run(self) -> ConnectionOutcome:
        try:
            outcome = await self._loop()
        except ReadFailure as exc:
            self.state = ConnectionState.failed
            self._logger.warning(f"{self._peer} - Read failure: {exc}")
            outcome = ConnectionOutcome.read_failed
        except WriteFailure as exc:
            self.state = ConnectionState.failed
            self._logger.warning(f"{self._peer} - Write failure: {exc}")
            outcome = ConnectionOutcome.write_failed
        except Exception as exc:
            self.state = ConnectionState.failed
            self._logger.error(f"{self._peer} - Exception in protocol handler", exc_info=exc)
            outcome = ConnectionOutcome.handler_failed
        finally:
            self._streamer.close()

        self._logger.debug(f"{self._peer} - Connection finished: {outcome}")
        return outcome

    async def _loop(self) -> ConnectionOutcome:
        while True:
            self.state = ConnectionState.reading
            payload = await self._streamer.receive()
            if not payload:
                self.state = ConnectionState.closed
                return ConnectionOutcome.peer_closed

            self.state = ConnectionState.dispatching
            try:
                reply = self._handler.process_request(payload)
            except RequestError as exc:
                self._logger.info(
                    f"{self._peer} - Malformed request ({exc.reason}): {exc.payload!r}"
                )
                self.state = ConnectionState.writing
                await self._streamer.send(self._malformed_response)
                self.state = ConnectionState.disconnecting
                return ConnectionOutcome.malformed

            self.state = ConnectionState.writing
            await self._streamer.send(reply)
