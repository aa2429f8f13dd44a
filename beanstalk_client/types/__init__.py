"""
Type definitions for the client.
Contains value objects returned by operations and consumed by the worker.
"""

from beanstalk_client.types.job import (
    Job,
    JobContext,
    JobResult,
)
from beanstalk_client.types.stats import (
    JobStats,
    TubeStats,
    parse_yaml_dict,
    parse_yaml_list,
)

__all__ = [
    # Job types
    "Job",
    "JobContext",
    "JobResult",
    # Stats types
    "JobStats",
    "TubeStats",
    "parse_yaml_dict",
    "parse_yaml_list",
]
