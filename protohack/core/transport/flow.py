import asyncio


class FlowControl:
    """
    Writable state of one connection's transport.

    asyncio transports buffer writes internally and call back into the
    protocol when that buffer crosses its high/low water marks. FlowControl
    turns those callbacks into an awaitable `drain()`, which the Streamer
    uses as the flush step after every reply: a reply counts as sent once
    the transport has accepted it and is not holding the peer back.

    `release()` wakes any waiter for good once the connection is gone, so a
    flush can never hang on a dead socket.
    """

    def __init__(self) -> None:
        self._writable = asyncio.Event()
        self._writable.set()
        self.write_paused = False
        self.released = False

    async def drain(self) -> None:
        """Block until writing is allowed again."""
        await self._writable.wait()

    def pause_writing(self) -> None:
        """Mark the transport as non-writable and block future drains."""
        if self.released:
            return
        self.write_paused = True
        self._writable.clear()

    def resume_writing(self) -> None:
        """Mark the transport as writable and wake blocked drains."""
        if self.write_paused:
            self.write_paused = False
            self._writable.set()

    def release(self) -> None:
        """Unblock drains permanently; called when the connection is lost."""
        self.released = True
        self.resume_writing()
