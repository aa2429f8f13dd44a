"""
Protocol constants.
Centralized location for wire tokens and limits used across the client.
"""

from enum import StrEnum


class Command(StrEnum):
    """Verbs understood by the daemon."""

    PUT = "put"
    PUT_UNIQUE = "put-unique"
    USE = "use"
    RESERVE = "reserve"
    RESERVE_WITH_TIMEOUT = "reserve-with-timeout"
    RESERVE_JOB = "reserve-job"
    DELETE = "delete"
    RELEASE = "release"
    BURY = "bury"
    TOUCH = "touch"
    WATCH = "watch"
    IGNORE = "ignore"
    PEEK = "peek"
    PEEK_READY = "peek-ready"
    PEEK_DELAYED = "peek-delayed"
    PEEK_BURIED = "peek-buried"
    KICK = "kick"
    KICK_JOB = "kick-job"
    STATS = "stats"
    STATS_JOB = "stats-job"
    STATS_TUBE = "stats-tube"
    LIST_TUBES = "list-tubes"
    LIST_TUBE_USED = "list-tube-used"
    LIST_TUBES_WATCHED = "list-tubes-watched"
    PAUSE_TUBE = "pause-tube"
    QUIT = "quit"


class Status(StrEnum):
    """Leading token of a response line."""

    # Success
    INSERTED = "INSERTED"
    USING = "USING"
    RESERVED = "RESERVED"
    DELETED = "DELETED"
    RELEASED = "RELEASED"
    BURIED = "BURIED"
    TOUCHED = "TOUCHED"
    WATCHING = "WATCHING"
    FOUND = "FOUND"
    KICKED = "KICKED"
    OK = "OK"
    PAUSED = "PAUSED"

    # Command specific
    NOT_IGNORED = "NOT_IGNORED"
    EXPECTED_CRLF = "EXPECTED_CRLF"
    JOB_TOO_BIG = "JOB_TOO_BIG"
    DRAINING = "DRAINING"
    DEADLINE_SOON = "DEADLINE_SOON"
    TIMED_OUT = "TIMED_OUT"
    NOT_FOUND = "NOT_FOUND"

    # Common to every command
    OUT_OF_MEMORY = "OUT_OF_MEMORY"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    BAD_FORMAT = "BAD_FORMAT"
    UNKNOWN_COMMAND = "UNKNOWN_COMMAND"


class JobState(StrEnum):
    """
    Server-side job states, as reported by stats-job.

    State transitions:
    - READY -> RESERVED (reserve)
    - RESERVED -> READY (release, or TTR expiry)
    - RESERVED -> BURIED (bury)
    - BURIED -> READY (kick / kick-job)
    - DELAYED -> READY (delay elapsed, or kick)
    - any -> deleted (delete)
    """

    READY = "ready"
    RESERVED = "reserved"
    DELAYED = "delayed"
    BURIED = "buried"


# Wire limits
DEFAULT_PORT = 11300
DEFAULT_TUBE = "default"
MAX_TUBE_NAME_LENGTH = 200
MAX_PRIORITY = 2**32 - 1
MIN_LEN_TO_BUFFER = 1500
CRLF = b"\r\n"

# Metrics names
METRIC_COMMANDS = "beanstalk_commands_total"
METRIC_COMMAND_LATENCY = "beanstalk_command_latency_seconds"
METRIC_BYTES_SENT = "beanstalk_bytes_sent_total"
METRIC_JOBS_PROCESSED = "beanstalk_jobs_processed_total"
METRIC_JOB_DURATION = "beanstalk_job_duration_seconds"

# Trace span names
SPAN_COMMAND = "beanstalk.command"
SPAN_EXECUTE_JOB = "execute_job"

# Write paths
WRITE_PATH_DIRECT = "direct"
WRITE_PATH_BUFFERED = "buffered"
