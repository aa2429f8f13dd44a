"""
Pytest configuration and shared fixtures.
"""

import os
import socket
from collections.abc import Generator
from uuid import uuid4

import pytest

from beanstalk_client.config import Settings
from beanstalk_client.connection import Connection
from beanstalk_client.errors import NotFoundError
from beanstalk_client.protocol.transport import Transport

# Live daemon used by the integration tests
TEST_BEANSTALK_HOST = os.getenv("TEST_BEANSTALK_HOST", "localhost")
TEST_BEANSTALK_PORT = int(os.getenv("TEST_BEANSTALK_PORT", "11300"))


class FakeServer:
    """
    The daemon's end of a socket pair.

    Replies are written up front; the client finds them waiting once it
    has sent its commands. Everything the client sent can be read back
    afterwards with received().
    """

    def __init__(self, sock: socket.socket):
        self.sock = sock

    def reply(self, *chunks: bytes) -> None:
        """Queue raw response bytes for the client."""
        self.sock.sendall(b"".join(chunks))

    def received(self) -> bytes:
        """Drain everything the client has sent so far."""
        chunks = []
        self.sock.setblocking(False)
        try:
            while True:
                try:
                    chunk = self.sock.recv(65536)
                except BlockingIOError:
                    break
                if not chunk:
                    break
                chunks.append(chunk)
        finally:
            self.sock.setblocking(True)
        return b"".join(chunks)

    def close(self) -> None:
        self.sock.close()


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        beanstalk_host=TEST_BEANSTALK_HOST,
        beanstalk_port=TEST_BEANSTALK_PORT,
        connect_timeout_seconds=2.0,
        default_priority=1024,
        default_ttr_seconds=60,
        log_level="DEBUG",
        log_format="console",
        worker_reserve_timeout_seconds=1,
        worker_poll_interval_seconds=0.01,
    )


@pytest.fixture
def socket_pair() -> Generator[tuple[socket.socket, socket.socket]]:
    """A connected pair of stream sockets: (client end, server end)."""
    client_sock, server_sock = socket.socketpair()
    yield client_sock, server_sock
    client_sock.close()
    server_sock.close()


@pytest.fixture
def server(socket_pair: tuple[socket.socket, socket.socket]) -> FakeServer:
    """The scripted daemon end of the socket pair."""
    return FakeServer(socket_pair[1])


@pytest.fixture
def transport(socket_pair: tuple[socket.socket, socket.socket]) -> Generator[Transport]:
    """A transport over the client end of the socket pair."""
    transport = Transport(socket_pair[0], "socketpair")
    yield transport
    transport.close()


@pytest.fixture
def conn(transport: Transport, test_settings: Settings) -> Connection:
    """A connection talking to the fake server."""
    return Connection(transport, settings=test_settings)


@pytest.fixture(scope="session")
def beanstalkd_address() -> str:
    """Address of a live daemon; skips the test when none is reachable."""
    address = f"{TEST_BEANSTALK_HOST}:{TEST_BEANSTALK_PORT}"
    try:
        with socket.create_connection(
            (TEST_BEANSTALK_HOST, TEST_BEANSTALK_PORT), timeout=0.5
        ):
            pass
    except OSError:
        pytest.skip(f"No beanstalkd listening on {address}")
    return address


@pytest.fixture
def tube_name() -> str:
    """Generate a tube name no other test uses."""
    return f"test-{uuid4().hex[:12]}"


@pytest.fixture
def live_conn(
    beanstalkd_address: str,
    test_settings: Settings,
    tube_name: str,
) -> Generator[Connection]:
    """A connection to the live daemon, using and watching only tube_name."""
    conn = Connection.connect(beanstalkd_address, settings=test_settings)
    conn.use(tube_name)
    conn.watch(tube_name)
    conn.ignore("default")

    yield conn

    if conn.closed:
        conn = Connection.connect(beanstalkd_address, settings=test_settings)
        conn.use(tube_name)
    drain_tube(conn)
    conn.quit()


def drain_tube(conn: Connection) -> None:
    """Delete every job left in the connection's used tube."""
    for peek in (conn.peek_ready, conn.peek_delayed, conn.peek_buried):
        while True:
            try:
                job = peek()
            except NotFoundError:
                break
            conn.delete(job.id)
