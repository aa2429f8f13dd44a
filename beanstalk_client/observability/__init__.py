"""
Observability module.
Contains logging, metrics, and tracing setup.
"""

from beanstalk_client.observability.logging import (
    bind_context,
    clear_context,
    job_context,
    setup_logging,
)
from beanstalk_client.observability.metrics import (
    MetricsCollector,
    get_metrics,
    setup_metrics,
)
from beanstalk_client.observability.tracing import create_span, get_tracer, setup_tracing

__all__ = [
    "setup_logging",
    "job_context",
    "bind_context",
    "clear_context",
    "setup_metrics",
    "get_metrics",
    "MetricsCollector",
    "setup_tracing",
    "get_tracer",
    "create_span",
]
