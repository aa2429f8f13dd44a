"""
beanstalkd client

A synchronous client for the beanstalkd work-queue protocol: put jobs into
tubes, reserve and acknowledge them, and read server statistics over a
single TCP connection.
"""

__version__ = "1.0.0"

from beanstalk_client.connection import Connection, connect
from beanstalk_client.errors import (
    BadFormatError,
    BeanstalkError,
    BuriedError,
    ConnectionClosedError,
    DeadlineSoonError,
    DrainingError,
    ErrorKind,
    ExpectedCrlfError,
    FramingError,
    InternalError,
    InvalidArgumentError,
    InvalidTubeNameError,
    JobTooBigError,
    NotFoundError,
    NotIgnoredError,
    OutOfMemoryError,
    ServerError,
    TimedOutError,
    TransportError,
    UnknownCommandError,
    UnknownStatusError,
)
from beanstalk_client.types import Job, JobStats, TubeStats

__all__ = [
    "Connection",
    "connect",
    "Job",
    "JobStats",
    "TubeStats",
    "ErrorKind",
    "BeanstalkError",
    "TransportError",
    "ConnectionClosedError",
    "FramingError",
    "InvalidArgumentError",
    "InvalidTubeNameError",
    "ServerError",
    "OutOfMemoryError",
    "InternalError",
    "BadFormatError",
    "UnknownCommandError",
    "BuriedError",
    "ExpectedCrlfError",
    "JobTooBigError",
    "DrainingError",
    "DeadlineSoonError",
    "TimedOutError",
    "NotFoundError",
    "NotIgnoredError",
    "UnknownStatusError",
]
