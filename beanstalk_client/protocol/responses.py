"""
Response parsing.

A response line is tokenized into its leading status word and arguments
first. Each operation then checks the status it expects and scans only
that shape; any other line is resolved through the status table in
``beanstalk_client.errors``.
"""

from dataclasses import dataclass

from beanstalk_client.constants import CRLF, Status
from beanstalk_client.errors import (
    BeanstalkError,
    FramingError,
    error_for_line,
)
from beanstalk_client.protocol.transport import Transport


@dataclass(frozen=True)
class Response:
    """One tokenized response line."""

    status: str
    args: tuple[str, ...]
    line: str


def parse_line(raw: bytes) -> Response:
    """
    Tokenize a response line.

    Args:
        raw: Line contents without the CRLF terminator.

    Returns:
        The tokenized response.

    Raises:
        FramingError: If the line is empty or not ASCII.
    """
    try:
        line = raw.decode("ascii")
    except UnicodeDecodeError:
        raise FramingError(f"Response line is not ASCII: {raw!r}") from None

    tokens = line.split(" ")
    if not tokens[0]:
        raise FramingError(f"Malformed response line: {line!r}")
    return Response(status=tokens[0], args=tuple(tokens[1:]), line=line)


def error_for(response: Response) -> BeanstalkError:
    """Get the exception for a response the operation did not expect."""
    return error_for_line(response.line)


def expect_exact(response: Response, expected: str) -> None:
    """
    Require the response line to equal expected.

    Raises:
        BeanstalkError: The status table entry for any other line.
    """
    if response.line != expected:
        raise error_for(response)


def expect_ints(response: Response, status: Status, count: int) -> tuple[int, ...]:
    """
    Scan the unsigned integer fields of an expected status.

    Args:
        response: The tokenized response.
        status: The status the operation expects.
        count: Exact number of integer fields that status carries.

    Returns:
        The parsed fields.

    Raises:
        FramingError: If the status matches but the fields are malformed.
        BeanstalkError: The status table entry for any other status.
    """
    if response.status != status:
        raise error_for(response)
    if len(response.args) != count or not all(
        arg.isascii() and arg.isdigit() for arg in response.args
    ):
        raise FramingError(f"Malformed {status} response: {response.line!r}")
    return tuple(int(arg) for arg in response.args)


def expect_word(response: Response, status: Status) -> str:
    """
    Scan the single word carried by an expected status, e.g. ``USING <tube>``.

    Raises:
        FramingError: If the status matches but has no single argument.
        BeanstalkError: The status table entry for any other status.
    """
    if response.status != status:
        raise error_for(response)
    if len(response.args) != 1 or not response.args[0]:
        raise FramingError(f"Malformed {status} response: {response.line!r}")
    return response.args[0]


def read_body(transport: Transport, length: int) -> bytes:
    """
    Read a body of declared length plus its CRLF terminator.

    Args:
        transport: The transport to read from.
        length: Length declared by the status line.

    Returns:
        The body without its terminator.

    Raises:
        FramingError: If the terminator is missing or the length is off.
    """
    data = transport.read_exact(length + 2)
    body = data[:-2]
    if data[-2:] != CRLF or len(body) != length:
        raise FramingError(
            f"Body of declared length {length} not terminated by CRLF"
        )
    return body
