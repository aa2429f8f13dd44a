"""
Connection to a beanstalkd server.

Each operation encodes one command, sends it, reads the status line and,
for body-bearing statuses, the body, then maps the status to a result or
raises the matching exception from ``beanstalk_client.errors``.

One request is in flight at a time. A Connection must not be shared
between threads without external locking; use one Connection per worker.
"""

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from beanstalk_client.config import Settings, get_settings
from beanstalk_client.constants import SPAN_COMMAND, Command, Status
from beanstalk_client.errors import BeanstalkError, BuriedError, FramingError, TransportError
from beanstalk_client.observability.metrics import get_metrics
from beanstalk_client.observability.tracing import create_span
from beanstalk_client.protocol import commands
from beanstalk_client.protocol.commands import Duration
from beanstalk_client.protocol.responses import (
    Response,
    expect_exact,
    expect_ints,
    expect_word,
    parse_line,
    read_body,
)
from beanstalk_client.protocol.transport import Transport
from beanstalk_client.types.job import Job
from beanstalk_client.types.stats import (
    JobStats,
    TubeStats,
    parse_yaml_dict,
    parse_yaml_list,
)

logger = logging.getLogger(__name__)


class Connection:
    """
    A session with one beanstalkd server over one TCP stream.

    Can be used as a context manager, which quits on exit::

        with connect("localhost:11300") as conn:
            conn.use("emails")
            job_id = conn.put(b"hello")
    """

    def __init__(self, transport: Transport, settings: Settings | None = None):
        """
        Initialize the connection over an open transport.

        Args:
            transport: The connected transport. Owned by the connection from now on.
            settings: Settings for job defaults. Defaults to the cached settings.
        """
        self._transport = transport
        self._settings = settings or get_settings()
        self._metrics = get_metrics()

    @classmethod
    def connect(
        cls,
        address: str | None = None,
        settings: Settings | None = None,
    ) -> "Connection":
        """
        Dial a server.

        Args:
            address: ``host:port``. Defaults to the configured server.
            settings: Settings to use. Defaults to the cached settings.

        Returns:
            An open Connection.

        Raises:
            TransportError: If the server cannot be reached.
        """
        settings = settings or get_settings()
        transport = Transport.connect(
            address or settings.beanstalk_address,
            timeout=settings.connect_timeout_seconds,
            buffer_threshold=settings.write_buffer_threshold,
        )
        return cls(transport, settings)

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.quit()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"Connection({self.address!r}, {state})"

    @property
    def address(self) -> str:
        return self._transport.address

    @property
    def closed(self) -> bool:
        return self._transport.closed

    # ------------------------------------------------------------------
    # Request/response plumbing
    # ------------------------------------------------------------------

    def _execute(self, command: Command, data: bytes) -> Response:
        """
        Send one encoded command and read its status line.

        Args:
            command: The verb, for logging and metrics.
            data: The encoded command.

        Returns:
            The tokenized status line.
        """
        start_time = time.perf_counter()
        status = "error"
        with create_span(SPAN_COMMAND, command=command, address=self.address):
            try:
                with self._closing_on_desync():
                    self._transport.send_all(data)
                    response = parse_line(self._transport.read_line())
                status = response.status
                return response
            finally:
                duration = time.perf_counter() - start_time
                self._metrics.record_command(command, status, duration)
                logger.debug(
                    "Command completed",
                    extra={
                        "command": str(command),
                        "status": status,
                        "duration_ms": round(duration * 1000, 3),
                    },
                )

    @contextmanager
    def _closing_on_desync(self) -> Iterator[None]:
        """
        Close the stream when a failure leaves it out of step with the server.

        After a transport or framing error the rest of the reply may still be
        unread, so the next command would read it as its own response.
        """
        try:
            yield
        except (TransportError, FramingError) as e:
            if not self.closed:
                logger.warning(
                    "Closing connection after stream failure",
                    extra={"address": self.address, "error": str(e)},
                )
                self._transport.close()
            raise

    def _ints(self, response: Response, status: Status, count: int) -> tuple[int, ...]:
        with self._closing_on_desync():
            return expect_ints(response, status, count)

    def _word(self, response: Response, status: Status) -> str:
        with self._closing_on_desync():
            return expect_word(response, status)

    def _send_expect_exact(self, command: Command, data: bytes, expected: str) -> None:
        expect_exact(self._execute(command, data), expected)

    def _read_job(self, response: Response, status: Status) -> Job:
        job_id, length = self._ints(response, status, 2)
        with self._closing_on_desync():
            return Job(id=job_id, body=read_body(self._transport, length))

    def _read_payload(self, command: Command, data: bytes) -> bytes:
        (length,) = self._ints(self._execute(command, data), Status.OK, 1)
        with self._closing_on_desync():
            return read_body(self._transport, length)

    # ------------------------------------------------------------------
    # Producer commands
    # ------------------------------------------------------------------

    def use(self, tube: str) -> None:
        """
        Use a tube.

        Subsequent put commands insert into this tube. A connection that
        never issued use puts into the tube named "default".

        Raises:
            InvalidTubeNameError: Before any I/O, if the name is invalid.
            UnknownStatusError: If the server echoes a different tube name.
        """
        self._send_expect_exact(Command.USE, commands.use(tube), f"{Status.USING} {tube}")

    def put(
        self,
        body: bytes | str,
        priority: int | None = None,
        delay: Duration = 0,
        ttr: Duration | None = None,
    ) -> int:
        """
        Put a job into the currently used tube.

        Args:
            body: Job body. Strings are encoded as UTF-8.
            priority: Integer < 2**32. Jobs with smaller priority values are
                scheduled first; 0 is the most urgent.
            delay: Time to wait before the job becomes ready. The job is in
                the "delayed" state during this time.
            ttr: Time to run, counted from the moment a worker reserves the
                job. If the worker does not delete, release or bury the job
                in time, the server releases it. The server raises a TTR of
                0 to 1 second.

        Returns:
            The id of the new job.

        Raises:
            BuriedError: The job was created but buried, e.g. because the
                server ran out of memory growing a priority queue. The id
                is on the exception's ``job_id``.
        """
        return self._put(Command.PUT, body, priority, delay, ttr)

    def put_unique(
        self,
        body: bytes | str,
        priority: int | None = None,
        delay: Duration = 0,
        ttr: Duration | None = None,
    ) -> int:
        """
        Put a job that the server de-duplicates.

        Same arguments, result and errors as put(); the de-duplication rules
        belong to the server.
        """
        return self._put(Command.PUT_UNIQUE, body, priority, delay, ttr)

    def _put(
        self,
        command: Command,
        body: bytes | str,
        priority: int | None,
        delay: Duration,
        ttr: Duration | None,
    ) -> int:
        if isinstance(body, str):
            body = body.encode("utf-8")
        data = commands.put(
            body,
            self._settings.default_priority if priority is None else priority,
            delay,
            self._settings.default_ttr_seconds if ttr is None else ttr,
            verb=command,
        )
        response = self._execute(command, data)

        if response.status == Status.BURIED and response.args:
            (job_id,) = self._ints(response, Status.BURIED, 1)
            logger.warning("Job buried on insert", extra={"job_id": job_id})
            raise BuriedError(response.line, job_id=job_id)

        (job_id,) = self._ints(response, Status.INSERTED, 1)
        return job_id

    # ------------------------------------------------------------------
    # Consumer commands
    # ------------------------------------------------------------------

    def watch(self, tube: str) -> int:
        """
        Add a tube to the watch list.

        Returns:
            Number of tubes now watched.
        """
        (count,) = self._ints(self._execute(Command.WATCH, commands.watch(tube)), Status.WATCHING, 1)
        return count

    def ignore(self, tube: str) -> int:
        """
        Remove a tube from the watch list.

        Returns:
            Number of tubes now watched.

        Raises:
            NotIgnoredError: If it is the last watched tube.
        """
        (count,) = self._ints(self._execute(Command.IGNORE, commands.ignore(tube)), Status.WATCHING, 1)
        return count

    def reserve(self, timeout: Duration | None = None) -> Job:
        """
        Reserve a job from any watched tube.

        Args:
            timeout: Seconds to wait for a job. None waits indefinitely.
                The server enforces it, with second granularity.

        Returns:
            The reserved job.

        Raises:
            TimedOutError: No job became ready within the timeout.
            DeadlineSoonError: A job already reserved by this connection is
                about to reach its TTR.
        """
        response = self._execute(
            Command.RESERVE if timeout is None else Command.RESERVE_WITH_TIMEOUT,
            commands.reserve(timeout),
        )
        return self._read_job(response, Status.RESERVED)

    def reserve_job(self, job_id: int) -> Job:
        """
        Reserve a specific job by id.

        Raises:
            NotFoundError: If the job does not exist or is already reserved.
        """
        response = self._execute(Command.RESERVE_JOB, commands.reserve_job(job_id))
        return self._read_job(response, Status.RESERVED)

    def delete(self, job_id: int) -> None:
        """
        Delete a job.

        Raises:
            NotFoundError: If the job does not exist or is reserved by
                another client.
        """
        self._send_expect_exact(Command.DELETE, commands.delete(job_id), Status.DELETED)

    def release(self, job_id: int, priority: int | None = None, delay: Duration = 0) -> None:
        """
        Release a reserved job back into the ready queue.

        Normally used when the job fails because of a transitory error.

        Args:
            job_id: The job to release.
            priority: New priority for the job.
            delay: Time the job stays delayed before becoming ready again.

        Raises:
            BuriedError: If the server ran out of memory and buried the job.
            NotFoundError: If the job is not reserved by this connection.
        """
        if priority is None:
            priority = self._settings.default_priority
        self._send_expect_exact(
            Command.RELEASE, commands.release(job_id, priority, delay), Status.RELEASED
        )

    def bury(self, job_id: int, priority: int | None = None) -> None:
        """
        Bury a job.

        Buried jobs are kept in a FIFO list and are not touched by the
        server again until kicked.

        Raises:
            NotFoundError: If the job is not reserved by this connection.
        """
        if priority is None:
            priority = self._settings.default_priority
        self._send_expect_exact(Command.BURY, commands.bury(job_id, priority), Status.BURIED)

    def touch(self, job_id: int) -> None:
        """
        Request more time to work on a reserved job.

        Resets the job's TTR countdown, e.g. on DEADLINE_SOON.

        Raises:
            NotFoundError: If the job is not reserved by this connection.
        """
        self._send_expect_exact(Command.TOUCH, commands.touch(job_id), Status.TOUCHED)

    # ------------------------------------------------------------------
    # Other commands
    # ------------------------------------------------------------------

    def peek(self, job_id: int) -> Job:
        """
        Inspect a job by id without reserving it.

        Raises:
            NotFoundError: If the job does not exist.
        """
        return self._peek(Command.PEEK, commands.peek(job_id))

    def peek_ready(self) -> Job:
        """Inspect the next ready job in the used tube."""
        return self._peek(Command.PEEK_READY, commands.encode(Command.PEEK_READY))

    def peek_delayed(self) -> Job:
        """Inspect the delayed job with the shortest delay left in the used tube."""
        return self._peek(Command.PEEK_DELAYED, commands.encode(Command.PEEK_DELAYED))

    def peek_buried(self) -> Job:
        """Inspect the next buried job in the used tube."""
        return self._peek(Command.PEEK_BURIED, commands.encode(Command.PEEK_BURIED))

    def _peek(self, command: Command, data: bytes) -> Job:
        return self._read_job(self._execute(command, data), Status.FOUND)

    def kick(self, bound: int) -> int:
        """
        Kick jobs in the used tube back into the ready queue.

        If there are buried jobs, only buried jobs are kicked; otherwise
        delayed jobs are.

        Args:
            bound: Upper bound on the number of jobs to kick.

        Returns:
            Number of jobs actually kicked.
        """
        (count,) = self._ints(self._execute(Command.KICK, commands.kick(bound)), Status.KICKED, 1)
        return count

    def kick_job(self, job_id: int) -> None:
        """
        Kick one buried or delayed job into the ready queue of its tube.

        Raises:
            NotFoundError: If the job does not exist or is not kickable.
        """
        self._send_expect_exact(Command.KICK_JOB, commands.kick_job(job_id), Status.KICKED)

    def pause_tube(self, tube: str, delay: Duration) -> None:
        """
        Stop handing out jobs from a tube for a while.

        Raises:
            NotFoundError: If the tube does not exist.
        """
        self._send_expect_exact(
            Command.PAUSE_TUBE, commands.pause_tube(tube, delay), Status.PAUSED
        )

    def stats(self) -> bytes:
        """Server statistics, as the raw YAML returned by the server."""
        return self._read_payload(Command.STATS, commands.encode(Command.STATS))

    def stats_tube(self, tube: str) -> bytes:
        """
        Tube statistics, as the raw YAML returned by the server.

        Raises:
            NotFoundError: If the tube does not exist.
        """
        return self._read_payload(Command.STATS_TUBE, commands.stats_tube(tube))

    def stats_job(self, job_id: int) -> bytes:
        """
        Job statistics, as the raw YAML returned by the server.

        Raises:
            NotFoundError: If the job does not exist.
        """
        return self._read_payload(Command.STATS_JOB, commands.stats_job(job_id))

    def list_tubes(self) -> bytes:
        """All existing tube names, as the raw YAML returned by the server."""
        return self._read_payload(Command.LIST_TUBES, commands.encode(Command.LIST_TUBES))

    def list_tubes_watched(self) -> bytes:
        """Watched tube names, as the raw YAML returned by the server."""
        return self._read_payload(
            Command.LIST_TUBES_WATCHED, commands.encode(Command.LIST_TUBES_WATCHED)
        )

    def list_tube_used(self) -> str:
        """Name of the tube currently used."""
        response = self._execute(Command.LIST_TUBE_USED, commands.encode(Command.LIST_TUBE_USED))
        return self._word(response, Status.USING)

    # Parsed views of the raw payloads

    def stats_dict(self) -> dict[str, Any]:
        return parse_yaml_dict(self.stats())

    def stats_tube_model(self, tube: str) -> TubeStats:
        return TubeStats.from_yaml(self.stats_tube(tube))

    def stats_job_model(self, job_id: int) -> JobStats:
        return JobStats.from_yaml(self.stats_job(job_id))

    def tubes(self) -> list[str]:
        return parse_yaml_list(self.list_tubes())

    def tubes_watched(self) -> list[str]:
        return parse_yaml_list(self.list_tubes_watched())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def quit(self) -> None:
        """
        Send quit and close the connection.

        The close always happens; a failure to send quit is only logged.
        """
        if self.closed:
            return
        try:
            self._transport.send_all(commands.encode(Command.QUIT))
        except BeanstalkError as e:
            logger.debug("Failed to send quit", extra={"address": self.address, "error": str(e)})
        finally:
            self._transport.close()

    def close(self) -> None:
        """Close the connection without sending quit."""
        self._transport.close()


def connect(address: str | None = None, settings: Settings | None = None) -> Connection:
    """
    Dial a beanstalkd server.

    Args:
        address: ``host:port``. Defaults to the configured server.
        settings: Settings to use. Defaults to the cached settings.

    Returns:
        An open Connection.
    """
    return Connection.connect(address, settings)
