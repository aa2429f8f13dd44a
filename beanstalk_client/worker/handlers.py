"""
Job handlers registry.

Handlers are registered per tube. Since a reserved job may be handed to
a worker again after a TTR expiry or release, handlers should be
idempotent.
"""

import logging
from typing import Callable

from beanstalk_client.types.job import JobContext, JobResult

logger = logging.getLogger(__name__)

# Type alias for job handler functions
JobHandler = Callable[[JobContext], JobResult]

# Handler registry
_handlers: dict[str, JobHandler] = {}


def register_handler(tube: str) -> Callable[[JobHandler], JobHandler]:
    """
    Decorator to register a job handler.

    Args:
        tube: The tube whose jobs this handler processes.

    Returns:
        Decorator function.

    Example:
        @register_handler("emails")
        def handle_email(context: JobContext) -> JobResult:
            ...
    """
    def decorator(handler: JobHandler) -> JobHandler:
        _handlers[tube] = handler
        logger.info(f"Registered handler for tube: {tube}")
        return handler
    return decorator


def unregister_handler(tube: str) -> None:
    """Remove the handler for a tube, if any."""
    _handlers.pop(tube, None)


def get_handler(tube: str) -> JobHandler | None:
    """
    Get the handler for a tube.

    Args:
        tube: The tube name.

    Returns:
        The handler function or None if not found.
    """
    return _handlers.get(tube)


def list_handlers() -> list[str]:
    """List all tubes with a registered handler."""
    return list(_handlers.keys())


def execute_job(context: JobContext) -> JobResult:
    """
    Execute a job using the handler registered for its tube.

    Args:
        context: The job context.

    Returns:
        JobResult from the handler, or a failed result if there is no
        handler or the handler raised.
    """
    handler = get_handler(context.tube)

    if handler is None:
        logger.error(
            f"No handler for tube: {context.tube}",
            extra={"job_id": context.job_id}
        )
        return JobResult(
            success=False,
            error=f"No handler registered for tube: {context.tube}",
        )

    try:
        return handler(context)
    except Exception as e:
        logger.exception(
            "Handler raised exception",
            extra={"job_id": context.job_id, "error": str(e)}
        )
        return JobResult(
            success=False,
            error=f"Handler exception: {str(e)}",
        )
