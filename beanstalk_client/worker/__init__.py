"""
Worker module.
Contains the reserve loop and the per-tube handler registry.
"""

from beanstalk_client.worker.handlers import (
    execute_job,
    get_handler,
    list_handlers,
    register_handler,
    unregister_handler,
)
from beanstalk_client.worker.main import Worker

__all__ = [
    "Worker",
    "register_handler",
    "unregister_handler",
    "get_handler",
    "list_handlers",
    "execute_job",
]
