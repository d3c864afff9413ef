import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from protohack.core.transport.protocol import ConnectionProtocol


@dataclass
class ServerState:
    """
    Shared runtime state for a ProtocolServer.

    This object is mutated by:
    - ConnectionProtocol: adds/removes active connections and registers the
      task running each connection loop
    - ProtocolServer.shutdown(): waits for connections and tasks to complete

    Connections never read each other's entries; the sets only exist so the
    server can find what is still running.
    """
    connections: set["ConnectionProtocol"] = field(default_factory=set)
    """
    Set of active ConnectionProtocol instances. Each TCP connection
    corresponds to one ConnectionProtocol.
    """

    tasks: set[asyncio.Task[None]] = field(default_factory=set)
    """
    Set of connection loop tasks. Each task is removed via
    task.add_done_callback(tasks.discard) once it completes.
    """
