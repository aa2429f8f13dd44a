"""
Typed views over the YAML payloads returned by the stats and list commands.

The daemon returns flat YAML documents with hyphenated keys, e.g.::

    ---
    id: 3
    tube: emails
    state: reserved
    time-left: 118
"""

from typing import Any, Self

import yaml
from pydantic import BaseModel, ConfigDict

from beanstalk_client.constants import JobState
from beanstalk_client.errors import FramingError


def _load(payload: bytes) -> Any:
    try:
        return yaml.safe_load(payload)
    except yaml.YAMLError as e:
        raise FramingError(f"Invalid YAML payload: {e}") from e


def parse_yaml_dict(payload: bytes) -> dict[str, Any]:
    """
    Parse a stats payload into a dict.

    Raises:
        FramingError: If the payload is not a YAML mapping.
    """
    data = _load(payload)
    if not isinstance(data, dict):
        raise FramingError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def parse_yaml_list(payload: bytes) -> list[str]:
    """
    Parse a tube list payload into a list of names.

    Raises:
        FramingError: If the payload is not a YAML sequence.
    """
    data = _load(payload)
    if data is None:
        return []
    if not isinstance(data, list):
        raise FramingError(f"Expected a YAML sequence, got {type(data).__name__}")
    # Numeric tube names come back from YAML as ints
    return [str(item) for item in data]


class _StatsModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=lambda name: name.replace("_", "-"),
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="allow",
        frozen=True,
    )

    @classmethod
    def from_yaml(cls, payload: bytes) -> Self:
        """Build the model from a raw stats payload."""
        return cls.model_validate(parse_yaml_dict(payload))


class JobStats(_StatsModel):
    """Response to stats-job."""

    id: int
    tube: str
    state: JobState
    pri: int = 0
    age: int = 0
    delay: int = 0
    ttr: int = 0
    time_left: int = 0
    file: int = 0
    reserves: int = 0
    timeouts: int = 0
    releases: int = 0
    buries: int = 0
    kicks: int = 0


class TubeStats(_StatsModel):
    """Response to stats-tube."""

    name: str
    current_jobs_urgent: int = 0
    current_jobs_ready: int = 0
    current_jobs_reserved: int = 0
    current_jobs_delayed: int = 0
    current_jobs_buried: int = 0
    total_jobs: int = 0
    current_using: int = 0
    current_waiting: int = 0
    current_watching: int = 0
    pause: int = 0
    cmd_delete: int = 0
    cmd_pause_tube: int = 0
    pause_time_left: int = 0
