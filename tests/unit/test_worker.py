"""
Unit tests for the worker loop against a mocked connection.
"""

from collections.abc import Generator
from unittest.mock import MagicMock, call

import pytest

from beanstalk_client.config import Settings
from beanstalk_client.connection import Connection
from beanstalk_client.constants import JobState
from beanstalk_client.errors import (
    DeadlineSoonError,
    InternalError,
    NotFoundError,
    TimedOutError,
)
from beanstalk_client.types.job import Job, JobContext, JobResult
from beanstalk_client.types.stats import JobStats
from beanstalk_client.worker.handlers import register_handler, unregister_handler
from beanstalk_client.worker.main import Worker

TUBE = "emails"


@pytest.fixture
def connection() -> MagicMock:
    """A connection double with the job's stats preloaded."""
    connection = MagicMock(spec=Connection)
    connection.stats_job_model.return_value = JobStats(
        id=1, tube=TUBE, state=JobState.RESERVED, pri=50, reserves=2
    )
    return connection


@pytest.fixture
def worker(connection: MagicMock, test_settings: Settings) -> Worker:
    return Worker(
        connection=connection,
        tubes=[TUBE],
        worker_id="test-worker",
        settings=test_settings,
    )


@pytest.fixture
def handler_result() -> Generator[list[JobResult]]:
    """Register a handler that returns whatever result the test sets."""
    results: list[JobResult] = [JobResult(success=True)]

    @register_handler(TUBE)
    def handle(context: JobContext) -> JobResult:
        return results[0]

    yield results
    unregister_handler(TUBE)


class TestExecuteJob:
    """Tests for acknowledging executed jobs."""

    def test_success_deletes(self, worker: Worker, connection: MagicMock, handler_result):
        worker._execute_job(Job(id=1, body=b"x"))

        connection.stats_job_model.assert_called_once_with(1)
        connection.delete.assert_called_once_with(1)
        connection.release.assert_not_called()
        connection.bury.assert_not_called()

    def test_retry_releases_with_job_priority(
        self, worker: Worker, connection: MagicMock, handler_result
    ):
        handler_result[0] = JobResult(success=False, error="later", retry_delay_seconds=30)

        worker._execute_job(Job(id=1, body=b"x"))

        connection.release.assert_called_once_with(1, priority=50, delay=30)
        connection.delete.assert_not_called()

    def test_failure_buries(self, worker: Worker, connection: MagicMock, handler_result):
        handler_result[0] = JobResult(success=False, error="bad input")

        worker._execute_job(Job(id=1, body=b"x"))

        connection.bury.assert_called_once_with(1, priority=50)

    def test_no_handler_buries(self, worker: Worker, connection: MagicMock):
        worker._execute_job(Job(id=1, body=b"x"))

        connection.bury.assert_called_once_with(1, priority=50)

    def test_job_lost_after_ttr(self, worker: Worker, connection: MagicMock, handler_result):
        connection.delete.side_effect = NotFoundError()

        context = JobContext(
            job=Job(id=1, body=b"x"),
            stats=connection.stats_job_model.return_value,
        )
        outcome = worker._finish_job(context, JobResult(success=True))

        assert outcome == "lost"

    def test_job_gone_before_execution(
        self, worker: Worker, connection: MagicMock, handler_result
    ):
        connection.stats_job_model.side_effect = NotFoundError()

        worker._execute_job(Job(id=1, body=b"x"))

        connection.delete.assert_not_called()
        connection.bury.assert_not_called()

    def test_success_outcome(self, worker: Worker, connection: MagicMock, handler_result):
        context = JobContext(
            job=Job(id=1, body=b"x"),
            stats=connection.stats_job_model.return_value,
        )

        assert worker._finish_job(context, JobResult(success=True)) == "deleted"


class TestReserve:
    """Tests for a single reserve step."""

    def test_timeout_is_idle(self, worker: Worker, connection: MagicMock):
        connection.reserve.side_effect = TimedOutError()

        assert worker._reserve_and_execute() is False
        connection.reserve.assert_called_once_with(timeout=1)

    def test_deadline_soon_is_idle(self, worker: Worker, connection: MagicMock):
        connection.reserve.side_effect = DeadlineSoonError()

        assert worker._reserve_and_execute() is False

    def test_job_processed(self, worker: Worker, connection: MagicMock, handler_result):
        connection.reserve.return_value = Job(id=1, body=b"x")

        assert worker._reserve_and_execute() is True
        connection.delete.assert_called_once_with(1)


class TestLoop:
    """Tests for start and stop."""

    def test_start_watches_and_quits(self, worker: Worker, connection: MagicMock):
        def reserve(timeout):
            worker.stop()
            raise TimedOutError()

        connection.reserve.side_effect = reserve

        worker.start()

        connection.watch.assert_called_once_with(TUBE)
        connection.ignore.assert_called_once_with("default")
        connection.quit.assert_called_once_with()
        assert worker.running is False

    def test_default_tube_kept(self, connection: MagicMock, test_settings: Settings):
        worker = Worker(connection=connection, tubes=["default"], settings=test_settings)
        connection.reserve.side_effect = lambda timeout: worker.stop() or Job(id=1, body=b"")
        connection.stats_job_model.side_effect = NotFoundError()

        worker.start()

        connection.watch.assert_called_once_with("default")
        connection.ignore.assert_not_called()

    def test_server_error_backs_off(self, worker: Worker, connection: MagicMock):
        errors = [InternalError()]

        def reserve(timeout):
            if errors:
                raise errors.pop()
            worker.stop()
            raise TimedOutError()

        connection.reserve.side_effect = reserve

        worker.start()

        assert connection.reserve.call_args_list == [call(timeout=1), call(timeout=1)]
        connection.quit.assert_called_once_with()

    def test_settings_defaults(self, connection: MagicMock, test_settings: Settings):
        worker = Worker(connection=connection, settings=test_settings)

        assert worker.tubes == ["default"]
        assert worker.reserve_timeout == 1
        assert worker.poll_interval == 0.01

    def test_explicit_zero_poll_interval(self, connection: MagicMock, test_settings: Settings):
        worker = Worker(connection=connection, poll_interval=0, settings=test_settings)

        assert worker.poll_interval == 0
