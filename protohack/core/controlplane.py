import asyncio
import logging

from protohack.bootstrap.config.settings import ProtohackConfig
from protohack.core.models.config import ServerConfig
from protohack.core.ports.handler import HandlerFactory
from protohack.core.transport.server import ProtocolServer


class ControlPlane:
    """
    Runs one ProtocolServer for the configured solution on a dedicated event
    loop, from startup until a stop event, then shuts it down gracefully.
    """
    def __init__(
        self,
        config: ProtohackConfig,
        handler_factory: HandlerFactory,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._config = config
        self._handler_factory = handler_factory
        self._loop = loop or self._create_event_loop()
        self._server = ProtocolServer(
            config=self._build_server_config(),
            loop=self._loop,
        )
        self._logger = logging.getLogger("protohack.controlplane")

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def server(self) -> ProtocolServer:
        return self._server

    async def start(self, stop_event: asyncio.Event) -> None:
        await self._server.start()
        self._logger.info(
            "Serving '%s' on %s:%d", self._config.solution, *self._server.listen
        )

        await stop_event.wait()

        self._logger.info("Shutting down server.")
        await self._server.shutdown()

    def _build_server_config(self) -> ServerConfig:
        server_config = self._config.server

        return ServerConfig(
            handler_factory=self._handler_factory,
            host=server_config.host,
            port=server_config.port,
            backlog=server_config.backlog,
            max_buffer_size=server_config.max_buffer_size,
            max_pending_frames=server_config.max_pending_frames,
            timeout_graceful_shutdown=server_config.timeout_graceful_shutdown,
        )

    @staticmethod
    def _create_event_loop() -> asyncio.AbstractEventLoop:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        return loop
