"""
TCP transport for the line-oriented protocol.

Owns one blocking socket. Writes shorter than the buffer threshold go
straight to the socket; larger ones go through a buffered writer followed
by a flush. Reads come from a buffered reader.
"""

import errno
import io
import logging
import socket

from beanstalk_client.constants import (
    CRLF,
    DEFAULT_PORT,
    MIN_LEN_TO_BUFFER,
    WRITE_PATH_BUFFERED,
    WRITE_PATH_DIRECT,
)
from beanstalk_client.errors import ConnectionClosedError, FramingError, TransportError
from beanstalk_client.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

_TEMPORARY_ERRNOS = frozenset(
    {errno.EAGAIN, errno.EWOULDBLOCK, errno.EINTR, errno.ENOBUFS}
)


def is_temporary_error(exc: OSError) -> bool:
    """Check whether a socket error is worth retrying in place."""
    if isinstance(exc, (InterruptedError, BlockingIOError)):
        return True
    return exc.errno in _TEMPORARY_ERRNOS


def parse_address(address: str) -> tuple[str, int]:
    """
    Split a ``host:port`` string.

    Accepts ``[::1]:11300`` for IPv6 and a bare host, which gets the
    default port.

    Args:
        address: The server address.

    Returns:
        Tuple of (host, port).
    """
    if address.startswith("["):
        host, _, rest = address[1:].partition("]")
        port = rest.lstrip(":")
    elif address.count(":") == 1:
        host, _, port = address.partition(":")
    else:
        host, port = address, ""

    if not host:
        raise ValueError(f"Invalid address: {address!r}")
    try:
        return host, int(port) if port else DEFAULT_PORT
    except ValueError:
        raise ValueError(f"Invalid port in address: {address!r}") from None


class SocketWriter(io.RawIOBase):
    """
    Raw write side of a socket, under the buffered writer.

    Counts the bytes the socket accepted, so a failed buffered write can
    still report how much reached the wire. Temporary errors are reported
    as "would block" (None), which makes the buffered writer keep the
    unsent bytes and raise BlockingIOError with ``characters_written``.
    """

    def __init__(self, sock: socket.socket):
        super().__init__()
        self._sock = sock
        self.bytes_written = 0

    def writable(self) -> bool:
        return True

    def write(self, data) -> int | None:
        try:
            count = self._sock.send(data)
        except OSError as e:
            if is_temporary_error(e):
                return None
            raise
        self.bytes_written += count
        return count


class Transport:
    """
    One TCP stream to the daemon.

    Not safe for concurrent use: the protocol has no request identifiers,
    so callers must serialize operations themselves.
    """

    def __init__(
        self,
        sock: socket.socket,
        address: str,
        buffer_threshold: int = MIN_LEN_TO_BUFFER,
    ):
        """
        Wrap an already connected socket.

        Args:
            sock: A connected stream socket in blocking mode.
            address: Remote address, informational only.
            buffer_threshold: Writes of at least this many bytes are buffered.
        """
        self._sock = sock
        self.address = address
        self.buffer_threshold = buffer_threshold
        self._reader = sock.makefile("rb")
        self._raw_writer = SocketWriter(sock)
        self._writer = io.BufferedWriter(self._raw_writer)
        self._closed = False
        self._metrics = get_metrics()

    @classmethod
    def connect(
        cls,
        address: str,
        timeout: float | None = None,
        buffer_threshold: int = MIN_LEN_TO_BUFFER,
    ) -> "Transport":
        """
        Open a TCP connection.

        Args:
            address: ``host:port`` of the daemon.
            timeout: Seconds to wait for the connection to be established.
            buffer_threshold: Writes of at least this many bytes are buffered.

        Returns:
            A connected Transport.

        Raises:
            TransportError: If the connection cannot be established.
        """
        host, port = parse_address(address)
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except OSError as e:
            raise TransportError(f"Failed to connect to {address}: {e}") from e

        # Reads block for as long as the server holds a reserve open
        sock.settimeout(None)

        logger.debug("Connected", extra={"address": address})
        return cls(sock, address, buffer_threshold=buffer_threshold)

    @property
    def closed(self) -> bool:
        return self._closed

    def send_all(self, data: bytes) -> int:
        """
        Write every byte of data, retrying partial and interrupted writes.

        Args:
            data: The bytes to send.

        Returns:
            Number of bytes sent.

        Raises:
            TransportError: On a non-temporary socket error. ``bytes_sent``
                holds how much was written before the failure.
        """
        self._check_open()

        view = memoryview(data)
        sent = 0
        while sent < len(view):
            pending = view[sent:]
            if len(pending) >= self.buffer_threshold:
                path = WRITE_PATH_BUFFERED
                written = self._write_buffered(pending, sent)
            else:
                path = WRITE_PATH_DIRECT
                written = self._write_direct(pending, sent)
            sent += written
            self._metrics.record_bytes_sent(path, written)
        return sent

    def _write_direct(self, data: memoryview, sent: int) -> int:
        try:
            return self._sock.send(data)
        except OSError as e:
            return self._handle_write_error(e, sent)

    def _write_buffered(self, data: memoryview, sent: int) -> int:
        start = self._raw_writer.bytes_written
        try:
            accepted = self._writer.write(data)
        except OSError as e:
            accepted = self._handle_write_error(
                e, sent + self._raw_writer.bytes_written - start
            )

        # Bytes accepted by the buffer count as sent only once flushed
        while True:
            try:
                self._writer.flush()
                return accepted
            except OSError as e:
                self._handle_write_error(e, sent + self._raw_writer.bytes_written - start)

    def _handle_write_error(self, exc: OSError, sent: int) -> int:
        if not is_temporary_error(exc):
            raise TransportError(
                f"Write to {self.address} failed: {exc}", bytes_sent=sent
            ) from exc
        logger.debug(
            "Temporary write error, retrying",
            extra={"address": self.address, "error": str(exc)},
        )
        return getattr(exc, "characters_written", 0) or 0

    def read_line(self) -> bytes:
        """
        Read one CRLF-terminated line.

        Returns:
            The line without its terminator.

        Raises:
            ConnectionClosedError: If the stream ends before a full line.
            FramingError: If the line ends in a bare LF.
            TransportError: On a socket error.
        """
        self._check_open()
        try:
            line = self._reader.readline()
        except OSError as e:
            raise TransportError(f"Read from {self.address} failed: {e}") from e

        if not line.endswith(b"\n"):
            raise ConnectionClosedError(
                f"Connection to {self.address} closed while reading a response"
            )
        if not line.endswith(CRLF):
            raise FramingError(f"Response line not terminated by CRLF: {line!r}")
        return line[:-2]

    def read_exact(self, size: int) -> bytes:
        """
        Read exactly size bytes.

        Raises:
            ConnectionClosedError: If the stream ends first.
            TransportError: On a socket error.
        """
        self._check_open()
        try:
            data = self._reader.read(size)
        except OSError as e:
            raise TransportError(f"Read from {self.address} failed: {e}") from e

        if len(data) != size:
            raise ConnectionClosedError(
                f"Connection to {self.address} closed after {len(data)} of {size} bytes"
            )
        return data

    def close(self) -> None:
        """Close the stream. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        for stream in (self._reader, self._writer):
            try:
                stream.close()
            except OSError:
                # Unflushed bytes on a dead socket
                logger.debug("Error closing stream", extra={"address": self.address})
        self._sock.close()
        logger.debug("Connection closed", extra={"address": self.address})

    def _check_open(self) -> None:
        if self._closed:
            raise ConnectionClosedError(f"Connection to {self.address} is closed")
