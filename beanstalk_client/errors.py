"""
Exception hierarchy for the client.

Every exception carries an ``ErrorKind`` so callers can match on the kind
instead of on exception identity:

    try:
        job = conn.reserve(timeout=1)
    except BeanstalkError as exc:
        match exc.kind:
            case ErrorKind.TIMED_OUT:
                ...
"""

from enum import StrEnum

from beanstalk_client.constants import Status


class ErrorKind(StrEnum):
    """Closed set of failure kinds."""

    # Transport / client side
    TRANSPORT = "transport"
    FRAMING = "framing"
    INVALID_ARGUMENT = "invalid argument"
    INVALID_LENGTH = "invalid length"

    # Reported by the daemon
    OUT_OF_MEMORY = "out of memory"
    INTERNAL_ERROR = "internal error"
    BAD_FORMAT = "bad format"
    UNKNOWN_COMMAND = "unknown command"
    BURIED = "buried"
    EXPECTED_CRLF = "expected CRLF"
    JOB_TOO_BIG = "job too big"
    DRAINING = "draining"
    DEADLINE_SOON = "deadline soon"
    TIMED_OUT = "timed out"
    NOT_FOUND = "not found"
    NOT_IGNORED = "not ignored"
    UNKNOWN = "unknown error"


class BeanstalkError(Exception):
    """Base exception for the client."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.kind.value)


class TransportError(BeanstalkError):
    """
    The stream failed. The connection should be considered dead.

    Attributes:
        bytes_sent: Bytes of the failed write that reached the socket.
    """

    kind = ErrorKind.TRANSPORT

    def __init__(self, message: str | None = None, bytes_sent: int = 0) -> None:
        super().__init__(message)
        self.bytes_sent = bytes_sent


class ConnectionClosedError(TransportError):
    """The peer closed the stream, or the connection was already closed."""


class FramingError(BeanstalkError):
    """A response did not have the shape its status promised."""

    kind = ErrorKind.FRAMING


class InvalidArgumentError(BeanstalkError, ValueError):
    """An argument was rejected before anything was sent."""

    kind = ErrorKind.INVALID_ARGUMENT


class InvalidTubeNameError(InvalidArgumentError):
    """A tube name is empty, too long, or contains whitespace."""

    def __init__(self, message: str | None = None, too_long: bool = False) -> None:
        if too_long:
            self.kind = ErrorKind.INVALID_LENGTH
        super().__init__(message)


class ServerError(BeanstalkError):
    """
    An error status reported by the daemon.

    Attributes:
        line: The raw response line, without its terminator.
    """

    status: Status | None = None

    def __init__(self, line: str | None = None) -> None:
        self.line = line if line is not None else str(self.status or "")
        super().__init__(self.kind.value)


class OutOfMemoryError(ServerError):
    status = Status.OUT_OF_MEMORY
    kind = ErrorKind.OUT_OF_MEMORY


class InternalError(ServerError):
    status = Status.INTERNAL_ERROR
    kind = ErrorKind.INTERNAL_ERROR


class BadFormatError(ServerError):
    status = Status.BAD_FORMAT
    kind = ErrorKind.BAD_FORMAT


class UnknownCommandError(ServerError):
    status = Status.UNKNOWN_COMMAND
    kind = ErrorKind.UNKNOWN_COMMAND


class BuriedError(ServerError):
    """
    The job is buried.

    On put this is a partial success: the job exists under ``job_id`` but
    was buried instead of becoming ready.
    """

    status = Status.BURIED
    kind = ErrorKind.BURIED

    def __init__(self, line: str | None = None, job_id: int | None = None) -> None:
        super().__init__(line)
        self.job_id = job_id


class ExpectedCrlfError(ServerError):
    status = Status.EXPECTED_CRLF
    kind = ErrorKind.EXPECTED_CRLF


class JobTooBigError(ServerError):
    status = Status.JOB_TOO_BIG
    kind = ErrorKind.JOB_TOO_BIG


class DrainingError(ServerError):
    status = Status.DRAINING
    kind = ErrorKind.DRAINING


class DeadlineSoonError(ServerError):
    """A job reserved by this connection is about to hit its TTR."""

    status = Status.DEADLINE_SOON
    kind = ErrorKind.DEADLINE_SOON


class TimedOutError(ServerError):
    """No job became available within the reserve window."""

    status = Status.TIMED_OUT
    kind = ErrorKind.TIMED_OUT


class NotFoundError(ServerError):
    status = Status.NOT_FOUND
    kind = ErrorKind.NOT_FOUND


class NotIgnoredError(ServerError):
    """Ignoring the last watched tube is refused."""

    status = Status.NOT_IGNORED
    kind = ErrorKind.NOT_IGNORED


class UnknownStatusError(ServerError):
    """A response line that no operation expects and no table entry covers."""

    kind = ErrorKind.UNKNOWN

    def __init__(self, line: str | None = None) -> None:
        super().__init__(line)
        self.args = (f"{self.kind.value}: {self.line!r}",)


STATUS_ERRORS: dict[str, type[ServerError]] = {
    Status.DEADLINE_SOON: DeadlineSoonError,
    Status.TIMED_OUT: TimedOutError,
    Status.EXPECTED_CRLF: ExpectedCrlfError,
    Status.JOB_TOO_BIG: JobTooBigError,
    Status.DRAINING: DrainingError,
    Status.BURIED: BuriedError,
    Status.NOT_FOUND: NotFoundError,
    Status.NOT_IGNORED: NotIgnoredError,
    # common errors
    Status.OUT_OF_MEMORY: OutOfMemoryError,
    Status.INTERNAL_ERROR: InternalError,
    Status.BAD_FORMAT: BadFormatError,
    Status.UNKNOWN_COMMAND: UnknownCommandError,
}


def error_for_line(line: str) -> ServerError:
    """
    Resolve a response line through the status table.

    Only bare status lines match a table entry; anything else becomes an
    UnknownStatusError carrying the raw text.

    Args:
        line: Response line without its terminator.

    Returns:
        The exception to raise.
    """
    error_class = STATUS_ERRORS.get(line)
    if error_class is None:
        return UnknownStatusError(line)
    return error_class(line)
