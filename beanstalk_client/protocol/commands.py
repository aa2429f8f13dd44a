"""
Command encoding.

Every command is one ASCII line terminated by CRLF. ``put`` and
``put-unique`` are followed by the raw job body and another CRLF.
Arguments are validated here, so a bad argument fails before any I/O.
"""

import math
import re
from datetime import timedelta

from beanstalk_client.constants import CRLF, MAX_PRIORITY, MAX_TUBE_NAME_LENGTH, Command
from beanstalk_client.errors import InvalidArgumentError, InvalidTubeNameError

Duration = int | float | timedelta

_WHITESPACE = re.compile(r"\s")


def validate_tube_name(tube: str) -> str:
    """
    Check a tube name against the protocol limits.

    Args:
        tube: The tube name.

    Returns:
        The tube name, unchanged.

    Raises:
        InvalidTubeNameError: If the name is empty, longer than 200 bytes,
            or contains whitespace.
    """
    if not tube:
        raise InvalidTubeNameError("Tube name must not be empty")
    if len(tube.encode("utf-8")) > MAX_TUBE_NAME_LENGTH:
        raise InvalidTubeNameError(
            f"Tube name longer than {MAX_TUBE_NAME_LENGTH} bytes", too_long=True
        )
    if _WHITESPACE.search(tube) or not tube.isascii():
        raise InvalidTubeNameError(f"Tube name must be ASCII without whitespace: {tube!r}")
    return tube


def to_seconds(value: Duration) -> int:
    """Convert a duration to the whole seconds sent on the wire."""
    seconds = value.total_seconds() if isinstance(value, timedelta) else value
    if isinstance(seconds, float) and not math.isfinite(seconds):
        raise InvalidArgumentError(f"Duration must be finite: {value!r}")
    if seconds < 0:
        raise InvalidArgumentError(f"Duration must not be negative: {value!r}")
    return int(seconds)


def _priority(priority: int) -> int:
    if not 0 <= priority <= MAX_PRIORITY:
        raise InvalidArgumentError(
            f"Priority must be between 0 and {MAX_PRIORITY}: {priority}"
        )
    return priority


def _job_id(job_id: int) -> int:
    if job_id < 0:
        raise InvalidArgumentError(f"Job id must not be negative: {job_id}")
    return job_id


def encode(verb: Command, *args: object) -> bytes:
    """Render a single-line command."""
    parts = [str(verb), *(str(arg) for arg in args)]
    return " ".join(parts).encode("ascii") + CRLF


def put(
    body: bytes,
    priority: int,
    delay: Duration,
    ttr: Duration,
    verb: Command = Command.PUT,
) -> bytes:
    """
    Render a put (or put-unique) header line followed by the body.

    Args:
        body: Raw job body.
        priority: 0 is most urgent, 2**32-1 least.
        delay: Time the job stays delayed before becoming ready.
        ttr: Time a worker has to finish the job once reserved.
        verb: ``put`` or ``put-unique``.
    """
    if verb not in (Command.PUT, Command.PUT_UNIQUE):
        raise InvalidArgumentError(f"Not a put verb: {verb}")
    header = encode(verb, _priority(priority), to_seconds(delay), to_seconds(ttr), len(body))
    return header + bytes(body) + CRLF


def use(tube: str) -> bytes:
    return encode(Command.USE, validate_tube_name(tube))


def watch(tube: str) -> bytes:
    return encode(Command.WATCH, validate_tube_name(tube))


def ignore(tube: str) -> bytes:
    return encode(Command.IGNORE, validate_tube_name(tube))


def reserve(timeout: Duration | None = None) -> bytes:
    """Render ``reserve``, or ``reserve-with-timeout`` when a timeout is given."""
    if timeout is None:
        return encode(Command.RESERVE)
    return encode(Command.RESERVE_WITH_TIMEOUT, to_seconds(timeout))


def reserve_job(job_id: int) -> bytes:
    return encode(Command.RESERVE_JOB, _job_id(job_id))


def delete(job_id: int) -> bytes:
    return encode(Command.DELETE, _job_id(job_id))


def release(job_id: int, priority: int, delay: Duration) -> bytes:
    return encode(Command.RELEASE, _job_id(job_id), _priority(priority), to_seconds(delay))


def bury(job_id: int, priority: int) -> bytes:
    return encode(Command.BURY, _job_id(job_id), _priority(priority))


def touch(job_id: int) -> bytes:
    return encode(Command.TOUCH, _job_id(job_id))


def peek(job_id: int) -> bytes:
    return encode(Command.PEEK, _job_id(job_id))


def kick(bound: int) -> bytes:
    if bound < 0:
        raise InvalidArgumentError(f"Kick bound must not be negative: {bound}")
    return encode(Command.KICK, bound)


def kick_job(job_id: int) -> bytes:
    return encode(Command.KICK_JOB, _job_id(job_id))


def stats_job(job_id: int) -> bytes:
    return encode(Command.STATS_JOB, _job_id(job_id))


def stats_tube(tube: str) -> bytes:
    return encode(Command.STATS_TUBE, validate_tube_name(tube))


def pause_tube(tube: str, delay: Duration) -> bytes:
    return encode(Command.PAUSE_TUBE, validate_tube_name(tube), to_seconds(delay))
