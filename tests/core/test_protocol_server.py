import asyncio
import socket
import struct

import pytest
import pytest_asyncio

from protohack.core.models.config import ServerConfig
from protohack.core.models.errors import BindFailure
from protohack.core.transport.server import ProtocolServer, serve
from protohack.solutions.means_to_an_end import MeansToAnEndHandler
from protohack.solutions.prime_time import PrimeTimeHandler, is_prime
from tests.helpers import LineClient


def make_config(handler_factory=PrimeTimeHandler, **kwargs) -> ServerConfig:
    return ServerConfig(
        handler_factory=handler_factory,
        host="127.0.0.1",
        port=0,
        backlog=10,
        timeout_graceful_shutdown=1.0,
        **kwargs,
    )


def prime_line(number) -> bytes:
    return b'{"method":"isPrime","number":%s}\n' % str(number).encode()


def prime_reply(prime: bool) -> bytes:
    return b'{"method":"isPrime","prime":%s}\n' % (b"true" if prime else b"false")


@pytest_asyncio.fixture
async def server():
    server = ProtocolServer(make_config(), asyncio.get_running_loop())
    await server.start()
    yield server
    await server.shutdown()


@pytest.mark.it
@pytest.mark.asyncio
async def test_conforming_requests_keep_connection_open(server):
    client = await LineClient.connect(*server.listen)

    assert await client.request(prime_line(2)) == prime_reply(True)
    assert await client.request(b'{"number":9,"method":"isPrime"}\n') == prime_reply(False)
    assert await client.request(prime_line(778013)) == prime_reply(True)
    assert await client.request(prime_line(4224223.1234)) == prime_reply(False)

    await client.close()


@pytest.mark.it
@pytest.mark.asyncio
async def test_malformed_request_gets_one_reply_then_disconnect(server):
    client = await LineClient.connect(*server.listen)

    assert await client.request(prime_line(11)) == prime_reply(True)

    # Further requests already in flight must not be answered.
    client.writer.write(b'{"method":"isPrim","number":3}\n' + prime_line(3) + prime_line(5))
    await client.writer.drain()

    rest = await asyncio.wait_for(client.reader.read(), timeout=5)
    assert rest == b"malformed\n"

    await client.close()


@pytest.mark.it
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "line",
    [
        b"{}\n",
        b"not json\n",
        b'{"method":"isPrime"}\n',
        b'{"method":"isPrime","number":"7"}\n',
        b'{"method":"isPrime","number":false}\n',
        b'{"method":"isPrime","number":NaN}\n',
        b'{"method":"isPrime","number":Infinity}\n',
        b'{"method":"isPrime","number":1e400}\n',
    ],
)
async def test_malformed_variants(server, line):
    client = await LineClient.connect(*server.listen)

    client.writer.write(line)
    await client.writer.drain()

    assert await asyncio.wait_for(client.reader.read(), timeout=5) == b"malformed\n"
    await client.close()


@pytest.mark.it
@pytest.mark.asyncio
async def test_pipelined_requests_answered_in_order(server):
    client = await LineClient.connect(*server.listen)
    numbers = list(range(50))

    client.writer.write(b"".join(prime_line(n) for n in numbers))
    await client.writer.drain()

    for n in numbers:
        line = await asyncio.wait_for(client.reader.readline(), timeout=5)
        assert line == prime_reply(is_prime(n))

    await client.close()


@pytest.mark.it
@pytest.mark.asyncio
async def test_half_closed_client_still_gets_answers(server):
    client = await LineClient.connect(*server.listen)

    # The last request has no trailing newline.
    client.writer.write(prime_line(7) + b'{"method":"isPrime","number":8}')
    client.writer.write_eof()

    rest = await asyncio.wait_for(client.reader.read(), timeout=5)
    assert rest == prime_reply(True) + prime_reply(False)

    await client.close()


@pytest.mark.it
@pytest.mark.asyncio
async def test_five_concurrent_clients(server):
    clients = [await LineClient.connect(*server.listen) for _ in range(5)]

    async def conversation(index: int, client: LineClient) -> list[bytes]:
        replies = []
        for n in range(index, 200, 5):
            replies.append(await client.request(prime_line(n)))
            await asyncio.sleep(0)
        return replies

    results = await asyncio.gather(
        *(conversation(i, client) for i, client in enumerate(clients))
    )

    for index, replies in enumerate(results):
        assert replies == [prime_reply(is_prime(n)) for n in range(index, 200, 5)]

    assert len(server.state.connections) == 5

    for client in clients:
        await client.close()


@pytest.mark.it
@pytest.mark.asyncio
async def test_idle_connection_does_not_block_others(server):
    idle = await LineClient.connect(*server.listen)
    # A partial line leaves the idle connection waiting for its delimiter.
    idle.writer.write(b'{"method":"isPrime",')
    await idle.writer.drain()

    busy = await LineClient.connect(*server.listen)
    assert await busy.request(prime_line(13)) == prime_reply(True)

    await busy.close()
    await idle.close()


@pytest.mark.it
@pytest.mark.asyncio
async def test_oversized_line_disconnects():
    server = ProtocolServer(make_config(max_buffer_size=64), asyncio.get_running_loop())
    await server.start()

    client = await LineClient.connect(*server.listen)
    client.writer.write(b"x" * 1024)
    await client.writer.drain()

    assert await asyncio.wait_for(client.reader.read(), timeout=5) == b""

    await client.close()
    await server.shutdown()


@pytest.mark.it
@pytest.mark.asyncio
async def test_fixed_size_protocol():
    server = ProtocolServer(make_config(MeansToAnEndHandler), asyncio.get_running_loop())
    await server.start()

    reader, writer = await asyncio.open_connection(*server.listen)
    for timestamp, price in [(12345, 101), (12346, 102), (12347, 100), (40960, 5)]:
        writer.write(struct.pack("!cii", b"I", timestamp, price))
    writer.write(struct.pack("!cii", b"Q", 12288, 16384))
    await writer.drain()

    reply = await asyncio.wait_for(reader.readexactly(4), timeout=5)
    assert struct.unpack("!i", reply) == (101,)

    writer.close()
    await writer.wait_closed()
    await server.shutdown()


@pytest.mark.it
@pytest.mark.asyncio
async def test_bind_failure():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen()
        port = sock.getsockname()[1]

        server = ProtocolServer(
            ServerConfig(handler_factory=PrimeTimeHandler, host="127.0.0.1", port=port),
            asyncio.get_running_loop(),
        )

        with pytest.raises(BindFailure):
            await server.start()

        assert not server.running


@pytest.mark.it
@pytest.mark.asyncio
async def test_shutdown_with_open_connection(server):
    client = await LineClient.connect(*server.listen)
    assert await client.request(prime_line(3)) == prime_reply(True)

    await server.shutdown()

    assert len(server.state.connections) == 0
    assert len(server.state.tasks) == 0
    assert not server.running
    assert await asyncio.wait_for(client.reader.read(), timeout=5) == b""

    await client.close()


@pytest.mark.it
@pytest.mark.asyncio
async def test_shutdown_without_start():
    server = ProtocolServer(make_config(), asyncio.get_running_loop())

    await server.shutdown()

    assert not server.running


@pytest.mark.it
@pytest.mark.asyncio
async def test_serve_entry_point():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    stop_event = asyncio.Event()
    task = asyncio.create_task(serve(f"127.0.0.1:{port}", PrimeTimeHandler, stop_event))

    for _ in range(50):
        try:
            client = await LineClient.connect("127.0.0.1", port)
            break
        except OSError:
            await asyncio.sleep(0.05)
    else:
        pytest.fail("server did not start")

    assert await client.request(prime_line(17)) == prime_reply(True)
    await client.close()

    stop_event.set()
    await asyncio.wait_for(task, timeout=5)


@pytest.mark.it
@pytest.mark.asyncio
@pytest.mark.parametrize("addr", ["no-port", "127.0.0.1:99999"])
async def test_serve_rejects_bad_address(addr):
    with pytest.raises(BindFailure):
        await serve(addr, PrimeTimeHandler, asyncio.Event())
