from dataclasses import dataclass

from protohack.core.ports.handler import HandlerFactory


@dataclass
class ServerConfig:
    """
    Static configuration for a ProtocolServer.

    This structure defines all parameters required to start a server:
    the protocol to speak, networking, resource limits, and graceful
    shutdown behavior.
    """
    handler_factory: HandlerFactory
    """
    Callable returning a fresh ProtocolHandler. It is called once per
    accepted connection, so a handler may keep per-session state.
    """

    host: str
    """
    IP address or hostname on which the server listens.
    """

    port: int
    """
    TCP port to bind. If set to 0, the OS selects an available port.
    """

    backlog: int = 128
    """
    Maximum number of pending TCP connections waiting for accept().
    """

    max_buffer_size: int = 1024 * 1024  # 1MB
    """
    Maximum size of a single pending frame.
    A peer that sends more bytes without completing a frame is disconnected.
    """

    max_pending_frames: int = 128
    """
    Maximum number of complete frames queued for a connection before the
    server stops reading from its socket. Reading resumes once the
    connection loop has consumed the queued frames.
    """

    malformed_response: bytes = b"malformed\n"
    """
    Bytes written back, once, before closing a connection whose request
    was rejected by the handler.
    """

    timeout_graceful_shutdown: float = 5.0
    """
    Maximum time (in seconds) allowed for graceful shutdown:
    - active connections must close
    - connection tasks registered in ServerState.tasks must complete
    After this timeout, remaining tasks are cancelled.
    """
