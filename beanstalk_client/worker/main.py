"""
Worker process for executing jobs.

The worker reserves jobs from its watched tubes, runs the handler
registered for each job's tube, and then deletes, releases or buries
the job according to the handler's result.
"""

import importlib
import logging
import os
import signal
import time

from beanstalk_client.config import Settings, get_settings
from beanstalk_client.connection import Connection
from beanstalk_client.constants import DEFAULT_TUBE, SPAN_EXECUTE_JOB
from beanstalk_client.errors import (
    DeadlineSoonError,
    NotFoundError,
    ServerError,
    TimedOutError,
)
from beanstalk_client.observability.logging import (
    bind_context,
    clear_context,
    job_context,
    setup_logging,
)
from beanstalk_client.observability.metrics import get_metrics, setup_metrics
from beanstalk_client.observability.tracing import create_span, setup_tracing
from beanstalk_client.types.job import Job, JobContext, JobResult
from beanstalk_client.worker.handlers import execute_job

logger = logging.getLogger(__name__)

OUTCOME_DELETED = "deleted"
OUTCOME_RELEASED = "released"
OUTCOME_BURIED = "buried"
OUTCOME_LOST = "lost"


class Worker:
    """
    Job worker that reserves and executes jobs over a single connection.

    Features:
    - Per-tube handler dispatch, using stats-job to find the job's tube
    - Delete on success, release when the handler asks for a retry,
      bury otherwise
    - Graceful shutdown on SIGTERM/SIGINT, within one reserve timeout
    """

    def __init__(
        self,
        connection: Connection | None = None,
        tubes: list[str] | None = None,
        worker_id: str | None = None,
        reserve_timeout: int | None = None,
        poll_interval: float | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize the worker.

        Args:
            connection: Connection to use. Dialed on start if not given.
            tubes: Tubes to watch. Defaults to the configured tubes.
            worker_id: Unique worker identifier. Defaults to hostname + PID.
            reserve_timeout: Seconds each reserve waits before re-checking
                for shutdown.
            poll_interval: Seconds to back off after a server error.
            settings: Settings to use. Defaults to the cached settings.
        """
        self._settings = settings or get_settings()

        self.worker_id = worker_id or f"{os.uname().nodename}-{os.getpid()}"
        self.tubes = tubes or list(self._settings.worker_tubes)
        self.reserve_timeout = (
            self._settings.worker_reserve_timeout_seconds
            if reserve_timeout is None
            else reserve_timeout
        )
        self.poll_interval = (
            self._settings.worker_poll_interval_seconds
            if poll_interval is None
            else poll_interval
        )

        self._connection = connection
        self._running = False
        self._metrics = get_metrics()

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """
        Run the worker until stop() is called.

        Raises:
            TransportError: If the connection fails. The worker does not
                reconnect.
        """
        bind_context(worker_id=self.worker_id)
        logger.info(
            "Worker starting",
            extra={"worker_id": self.worker_id, "tubes": self.tubes}
        )

        if self._connection is None:
            self._connection = Connection.connect(settings=self._settings)
        bind_context(address=self._connection.address)

        self._running = True
        try:
            self._watch_tubes()

            # Main reserve loop
            while self._running:
                try:
                    self._reserve_and_execute()
                except ServerError as e:
                    logger.exception(
                        f"Error in worker loop: {e}",
                        extra={"worker_id": self.worker_id}
                    )
                    time.sleep(self.poll_interval)
        finally:
            self._running = False
            self._connection.quit()
            logger.info("Worker stopped", extra={"worker_id": self.worker_id})
            clear_context()

    def stop(self) -> None:
        """Stop the worker gracefully."""
        logger.info("Worker stopping", extra={"worker_id": self.worker_id})
        self._running = False

    def _watch_tubes(self) -> None:
        for tube in self.tubes:
            self._connection.watch(tube)
        if DEFAULT_TUBE not in self.tubes:
            self._connection.ignore(DEFAULT_TUBE)

    def _reserve_and_execute(self) -> bool:
        """
        Reserve one job and execute it.

        Returns:
            True if a job was processed.
        """
        try:
            job = self._connection.reserve(timeout=self.reserve_timeout)
        except TimedOutError:
            return False
        except DeadlineSoonError:
            logger.warning(
                "Deadline soon reported while reserving",
                extra={"worker_id": self.worker_id}
            )
            return False

        self._execute_job(job)
        return True

    def _execute_job(self, job: Job) -> None:
        """
        Execute a single reserved job.

        Handles the full lifecycle:
        1. Look up the job's tube and reserve count
        2. Execute the handler
        3. Delete, release or bury the job

        Args:
            job: The reserved job.
        """
        start_time = time.perf_counter()

        try:
            stats = self._connection.stats_job_model(job.id)
        except NotFoundError:
            logger.warning(
                "Reserved job disappeared before execution",
                extra={"job_id": job.id}
            )
            return

        context = JobContext(job=job, stats=stats)

        with job_context(job.id, context.tube, context.attempt):
            logger.info("Executing job")

            with create_span(
                SPAN_EXECUTE_JOB,
                job_id=job.id,
                tube=context.tube,
                attempt=context.attempt,
            ):
                result = execute_job(context)

            duration = time.perf_counter() - start_time
            if result.duration_ms is None:
                result.duration_ms = duration * 1000

            outcome = self._finish_job(context, result)

        self._metrics.record_job_processed(
            tube=context.tube,
            outcome=outcome,
            duration_seconds=duration,
        )

    def _finish_job(self, context: JobContext, result: JobResult) -> str:
        """
        Acknowledge a job according to its result.

        Returns:
            The outcome, for metrics.
        """
        job_id = context.job_id
        try:
            if result.success:
                self._connection.delete(job_id)
                logger.info(
                    "Job completed successfully",
                    extra={"job_id": job_id, "duration_ms": result.duration_ms}
                )
                return OUTCOME_DELETED

            if result.retry_delay_seconds is not None:
                self._connection.release(
                    job_id,
                    priority=context.stats.pri,
                    delay=result.retry_delay_seconds,
                )
                logger.warning(
                    "Job failed, released for retry",
                    extra={
                        "job_id": job_id,
                        "error": result.error,
                        "attempt": context.attempt,
                        "delay": result.retry_delay_seconds,
                    }
                )
                return OUTCOME_RELEASED

            self._connection.bury(job_id, priority=context.stats.pri)
            logger.warning(
                "Job failed, buried",
                extra={"job_id": job_id, "error": result.error, "attempt": context.attempt}
            )
            return OUTCOME_BURIED

        except NotFoundError:
            # TTR expired and the server handed the job out again
            logger.warning(
                "Job no longer reserved by this worker",
                extra={"job_id": job_id}
            )
            return OUTCOME_LOST


def load_handler_modules(modules: list[str]) -> None:
    """Import modules so their @register_handler decorators run."""
    for name in modules:
        importlib.import_module(name)
        logger.info(f"Loaded handler module: {name}")


def run() -> None:
    """Run the worker."""
    settings = get_settings()

    setup_logging(settings, handler_modules=settings.worker_handler_modules)
    setup_metrics(settings.metrics_port)
    if settings.tracing_enabled:
        setup_tracing()

    load_handler_modules(settings.worker_handler_modules)

    worker = Worker(settings=settings)

    # Handle shutdown signals
    for sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(sig, lambda signum, frame: worker.stop())

    worker.start()


if __name__ == "__main__":
    run()
