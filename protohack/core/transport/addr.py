import asyncio


def _to_host_port(value: object) -> tuple[str, int] | None:
    if isinstance(value, (tuple, list)) and len(value) >= 2:
        return str(value[0]), int(value[1])
    return None


def get_remote_addr(transport: asyncio.BaseTransport) -> tuple[str, int] | None:
    """Return the peer (host, port) of a transport, if it can be determined."""
    sock = transport.get_extra_info("socket")
    if sock is not None:
        try:
            return _to_host_port(sock.getpeername())
        except OSError:
            return None

    return _to_host_port(transport.get_extra_info("peername"))


def get_local_addr(transport: asyncio.BaseTransport) -> tuple[str, int] | None:
    """Return the local (host, port) of a transport, if it can be determined."""
    sock = transport.get_extra_info("socket")
    if sock is not None:
        try:
            return _to_host_port(sock.getsockname())
        except OSError:
            return None

    return _to_host_port(transport.get_extra_info("sockname"))


def parse_address(addr: str) -> tuple[str, int]:
    """
    Split a `host:port` string into its host and port.

    The port is taken after the last colon so IPv6 hosts may be written in
    brackets, e.g. `[::1]:50000`. An empty host means all interfaces.
    Raises ValueError when the string is not a usable address.
    """
    host, sep, raw_port = addr.rpartition(":")
    if not sep:
        raise ValueError(f"Address '{addr}' is not of the form host:port")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ValueError(f"IPv6 address '{host}' must be enclosed in brackets")

    try:
        port = int(raw_port)
    except ValueError:
        raise ValueError(f"Invalid port '{raw_port}' in address '{addr}'") from None

    if not 0 <= port <= 65535:
        raise ValueError(f"Port {port} out of range in address '{addr}'")

    return host or "0.0.0.0", port
