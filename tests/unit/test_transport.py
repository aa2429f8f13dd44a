"""
Unit tests for the TCP transport.
"""

import errno
import io

import pytest
from prometheus_client import REGISTRY

from beanstalk_client.constants import METRIC_BYTES_SENT, WRITE_PATH_BUFFERED, WRITE_PATH_DIRECT
from beanstalk_client.errors import ConnectionClosedError, FramingError, TransportError
from beanstalk_client.protocol.transport import Transport, is_temporary_error, parse_address


class FakeSocket:
    """
    Socket double with scripted send results.

    Each entry of send_results is either the maximum number of bytes the
    next send() accepts, or an exception it raises.
    """

    def __init__(self, send_results: list | None = None, incoming: bytes = b""):
        self.sent = bytearray()
        self.sends: list[int] = []
        self.send_results = list(send_results or [])
        self.reader = io.BytesIO(incoming)
        self.closed = False

    def send(self, data: bytes) -> int:
        if self.send_results:
            result = self.send_results.pop(0)
            if isinstance(result, BaseException):
                raise result
            data = data[:result]
        self.sends.append(len(data))
        self.sent += data
        return len(data)

    def makefile(self, mode: str):
        return self.reader

    def close(self) -> None:
        self.closed = True


def bytes_sent(path: str) -> float:
    """Read the bytes-sent counter for a write path."""
    return REGISTRY.get_sample_value(METRIC_BYTES_SENT, {"path": path}) or 0.0


class TestParseAddress:
    """Tests for parse_address."""

    def test_host_and_port(self):
        assert parse_address("example.com:11301") == ("example.com", 11301)

    def test_bare_host_gets_default_port(self):
        assert parse_address("localhost") == ("localhost", 11300)

    def test_ipv6(self):
        assert parse_address("[::1]:11302") == ("::1", 11302)

    def test_invalid_port(self):
        with pytest.raises(ValueError):
            parse_address("localhost:abc")

    def test_empty_host(self):
        with pytest.raises(ValueError):
            parse_address(":11300")


class TestSendAll:
    """Tests for the write strategy."""

    def test_small_payload_written_directly(self):
        """Test that payloads under the threshold bypass the buffer."""
        sock = FakeSocket()
        transport = Transport(sock, "fake", buffer_threshold=1500)
        before = bytes_sent(WRITE_PATH_DIRECT)

        sent = transport.send_all(b"x" * 1499)

        assert sent == 1499
        assert bytes(sock.sent) == b"x" * 1499
        assert sock.sends == [1499]
        assert bytes_sent(WRITE_PATH_DIRECT) - before == 1499

    def test_large_payload_buffered_and_flushed(self):
        """Test that payloads at the threshold go through the buffer."""
        sock = FakeSocket()
        transport = Transport(sock, "fake", buffer_threshold=1500)
        before = bytes_sent(WRITE_PATH_BUFFERED)

        sent = transport.send_all(b"y" * 1500)

        assert sent == 1500
        assert bytes(sock.sent) == b"y" * 1500
        assert bytes_sent(WRITE_PATH_BUFFERED) - before == 1500

    def test_partial_writes_continue(self):
        """Test that the loop keeps sending after a short write."""
        sock = FakeSocket(send_results=[3, 2])
        transport = Transport(sock, "fake")

        sent = transport.send_all(b"0123456789")

        assert sent == 10
        assert bytes(sock.sent) == b"0123456789"
        assert sock.sends == [3, 2, 5]

    def test_temporary_errors_retried(self):
        """Test that interrupted and would-block writes are retried in place."""
        sock = FakeSocket(
            send_results=[
                InterruptedError(errno.EINTR, "interrupted"),
                BlockingIOError(errno.EAGAIN, "try again"),
                OSError(errno.ENOBUFS, "no buffer space"),
            ]
        )
        transport = Transport(sock, "fake")

        sent = transport.send_all(b"hello")

        assert sent == 5
        assert bytes(sock.sent) == b"hello"

    def test_temporary_flush_error_retried(self):
        """Test that a temporary error while flushing the buffer is retried."""
        sock = FakeSocket(send_results=[BlockingIOError(errno.EAGAIN, "try again")])
        transport = Transport(sock, "fake", buffer_threshold=4)

        assert transport.send_all(b"buffered") == 8
        assert bytes(sock.sent) == b"buffered"

    def test_buffered_write_resumes_after_would_block(self):
        """Test that bytes not taken by the buffer are sent on the next pass."""
        data = bytes(range(256)) * 80
        sock = FakeSocket(
            send_results=[5000, BlockingIOError(errno.EAGAIN, "try again")]
        )
        transport = Transport(sock, "fake")

        sent = transport.send_all(data)

        assert sent == len(data)
        assert bytes(sock.sent) == data

    def test_permanent_error_surfaces_bytes_sent(self):
        """Test that a non-temporary error aborts with the count so far."""
        reset = ConnectionResetError(errno.ECONNRESET, "reset by peer")
        sock = FakeSocket(send_results=[4, reset])
        transport = Transport(sock, "fake")

        with pytest.raises(TransportError) as exc_info:
            transport.send_all(b"0123456789")

        assert exc_info.value.bytes_sent == 4
        assert exc_info.value.__cause__ is reset

    def test_permanent_error_during_buffered_write(self):
        """Test that bytes already pushed out by the buffer are counted."""
        reset = ConnectionResetError(errno.ECONNRESET, "reset by peer")
        sock = FakeSocket(send_results=[3000, reset])
        transport = Transport(sock, "fake")

        with pytest.raises(TransportError) as exc_info:
            transport.send_all(b"z" * 20000)

        assert exc_info.value.bytes_sent == 3000
        assert exc_info.value.__cause__ is reset

    def test_permanent_error_during_flush(self):
        """Test that a broken pipe while flushing reports the flushed bytes."""
        broken = BrokenPipeError(errno.EPIPE, "broken pipe")
        sock = FakeSocket(send_results=[500, broken])
        transport = Transport(sock, "fake", buffer_threshold=1500)

        with pytest.raises(TransportError) as exc_info:
            transport.send_all(b"w" * 2000)

        assert exc_info.value.bytes_sent == 500
        assert exc_info.value.__cause__ is broken

    def test_send_after_close(self):
        """Test that a closed transport refuses to write."""
        sock = FakeSocket()
        transport = Transport(sock, "fake")
        transport.close()

        with pytest.raises(ConnectionClosedError):
            transport.send_all(b"stats\r\n")
        assert sock.closed is True


class TestReads:
    """Tests for read_line and read_exact."""

    def test_read_line_strips_crlf(self):
        transport = Transport(FakeSocket(incoming=b"INSERTED 1\r\nDELETED\r\n"), "fake")

        assert transport.read_line() == b"INSERTED 1"
        assert transport.read_line() == b"DELETED"

    def test_read_line_bare_lf(self):
        transport = Transport(FakeSocket(incoming=b"INSERTED 1\n"), "fake")

        with pytest.raises(FramingError):
            transport.read_line()

    def test_read_line_eof(self):
        transport = Transport(FakeSocket(incoming=b""), "fake")

        with pytest.raises(ConnectionClosedError):
            transport.read_line()

    def test_read_line_eof_mid_line(self):
        transport = Transport(FakeSocket(incoming=b"RESERV"), "fake")

        with pytest.raises(ConnectionClosedError):
            transport.read_line()

    def test_read_exact(self):
        transport = Transport(FakeSocket(incoming=b"abc\r\ndef"), "fake")

        assert transport.read_exact(5) == b"abc\r\n"

    def test_read_exact_short(self):
        transport = Transport(FakeSocket(incoming=b"abc"), "fake")

        with pytest.raises(ConnectionClosedError):
            transport.read_exact(5)


class TestIsTemporaryError:
    """Tests for is_temporary_error."""

    def test_temporary(self):
        assert is_temporary_error(InterruptedError(errno.EINTR, "x")) is True
        assert is_temporary_error(BlockingIOError(errno.EAGAIN, "x")) is True
        assert is_temporary_error(OSError(errno.ENOBUFS, "x")) is True

    def test_permanent(self):
        assert is_temporary_error(ConnectionResetError(errno.ECONNRESET, "x")) is False
        assert is_temporary_error(BrokenPipeError(errno.EPIPE, "x")) is False
