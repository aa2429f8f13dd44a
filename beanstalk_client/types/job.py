"""
Job-related type definitions.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from beanstalk_client.types.stats import JobStats


@dataclass(frozen=True, slots=True)
class Job:
    """
    A job as returned by reserve and peek.

    A snapshot, not a live handle: later operations act on the id and
    never change this object.
    """

    id: int
    body: bytes

    def __repr__(self) -> str:
        preview = self.body[:32] + (b"..." if len(self.body) > 32 else b"")
        return f"Job(id={self.id}, body={preview!r})"


class JobResult(BaseModel):
    """
    Result of job execution.
    Returned by job handlers after processing.

    A failed result with ``retry_delay_seconds`` set is released back to
    its tube with that delay; any other failure is buried.
    """

    success: bool
    output: dict[str, Any] | None = None
    error: str | None = None
    duration_ms: float | None = None
    retry_delay_seconds: int | None = None


@dataclass
class JobContext:
    """
    Context passed to job handlers during execution.
    Contains the reserved job and the server's view of it.
    """

    job: Job
    stats: JobStats

    @property
    def job_id(self) -> int:
        return self.job.id

    @property
    def body(self) -> bytes:
        return self.job.body

    @property
    def tube(self) -> str:
        """Tube the job was reserved from."""
        return self.stats.tube

    @property
    def attempt(self) -> int:
        """How many times the job has been reserved, this time included."""
        return self.stats.reserves
