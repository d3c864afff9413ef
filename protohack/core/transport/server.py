import asyncio
import logging

from protohack.core.models.config import ServerConfig
from protohack.core.models.errors import BindFailure
from protohack.core.models.state import ServerState
from protohack.core.ports.handler import HandlerFactory
from protohack.core.transport.addr import parse_address
from protohack.core.transport.protocol import ConnectionProtocol


class ProtocolServer:
    """
    Owns the lifecycle of a TCP server that accepts client connections,
    instantiates a ConnectionProtocol for each connection, and coordinates
    graceful shutdown.

    It binds to the configured host and port, using asyncio's create_server
    to create an asyncio.Server that dispatches new connections to
    ConnectionProtocol instances. Accepting runs on the event loop
    independently of every connection: each connection loop is its own task,
    so a slow or idle client never delays the next accept. Each
    ConnectionProtocol is constructed with a shared ServerState, which tracks
    active connections and the tasks running their loops.

    The server does not implement any protocol itself. Instead, it wires the
    configured handler factory into each connection.

    On shutdown, ProtocolServer closes the listening socket, asks all active
    connections to shut down, and waits for both client connections and
    connection tasks to complete. If the graceful shutdown timeout is
    exceeded, any remaining tasks are cancelled and an error is logged.
    """
    def __init__(
        self,
        config: ServerConfig,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._config = config
        self._loop = loop or asyncio.get_event_loop()
        self.state = ServerState()
        self._logger = logging.getLogger("core.transport.server")

        self._server: asyncio.AbstractServer | None = None

    @property
    def running(self) -> bool:
        return self._server is not None and self._server.is_serving()

    @property
    def listen(self) -> tuple[str, int]:
        """Address actually bound, with port 0 resolved to the OS choice."""
        if self._server is None or not self._server.sockets:
            return self._config.host, self._config.port

        sockname = self._server.sockets[0].getsockname()
        return sockname[0], sockname[1]

    def create_protocol(self) -> asyncio.Protocol:
        return ConnectionProtocol(
            config=self._config,
            server_state=self.state,
            loop=self._loop,
        )

    async def start(self) -> None:
        config = self._config

        try:
            self._server = await self._loop.create_server(
                self.create_protocol,
                host=config.host,
                port=config.port,
                backlog=config.backlog,
            )
        except OSError as exc:
            raise BindFailure(
                f"Unable to bind {config.host}:{config.port}: {exc}"
            ) from exc

        self._logger.info("Listening on %s:%d", *self.listen)

    async def shutdown(self) -> None:
        if self._server:
            self._server.close()

        for connection in self.state.connections.copy():
            connection.shutdown()

        try:
            await asyncio.wait_for(
                self._wait_task_complete(),
                timeout=self._config.timeout_graceful_shutdown
            )
        except asyncio.TimeoutError:
            self._logger.error(
                f"Cancel {len(self.state.tasks)} running task(s), "
                f"timeout graceful shutdown: {self.state.tasks}"
            )
            for task in self.state.tasks:
                task.cancel("Task cancelled, timeout graceful shutdown exceeded")

    async def _wait_task_complete(self) -> None:
        if self.state.connections:
            self._logger.info("Waiting for client connections to close.")

        while self.state.connections:
            await asyncio.sleep(0.1)

        if self.state.tasks:
            self._logger.info("Waiting for connection tasks to complete.")

        while self.state.tasks:
            await asyncio.sleep(0.1)

        if self._server:
            await self._server.wait_closed()


async def serve(
    addr: str,
    handler_factory: HandlerFactory,
    stop_event: asyncio.Event | None = None,
    **options,
) -> None:
    """
    Serve `handler_factory`'s protocol on `addr` (`host:port`).

    Binding happens before this coroutine first suspends on the stop event,
    so an unusable address surfaces immediately as BindFailure. The server
    then accepts connections until `stop_event` is set (forever if omitted)
    and shuts down gracefully. Extra keyword options are passed to
    ServerConfig.
    """
    try:
        host, port = parse_address(addr)
    except ValueError as exc:
        raise BindFailure(str(exc)) from exc

    config = ServerConfig(
        handler_factory=handler_factory,
        host=host,
        port=port,
        **options,
    )
    server = ProtocolServer(config=config, loop=asyncio.get_running_loop())
    await server.start()

    try:
        await (stop_event or asyncio.Event()).wait()
    finally:
        await server.shutdown()
