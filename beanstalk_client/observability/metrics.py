"""
Prometheus metrics collection.
"""

from prometheus_client import (
    Counter,
    Histogram,
    CollectorRegistry,
    REGISTRY,
    start_http_server,
)

from beanstalk_client.constants import (
    METRIC_BYTES_SENT,
    METRIC_COMMAND_LATENCY,
    METRIC_COMMANDS,
    METRIC_JOB_DURATION,
    METRIC_JOBS_PROCESSED,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the client.

    Collects metrics for:
    - Commands sent and the status they got back
    - Command round-trip latency
    - Bytes written, by write path
    - Jobs processed by the worker
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        # Commands counter
        self.commands = Counter(
            METRIC_COMMANDS,
            "Total number of commands sent",
            ["command", "status"],
            registry=self._registry,
        )

        # Command latency histogram
        self.command_latency = Histogram(
            METRIC_COMMAND_LATENCY,
            "Command round-trip latency in seconds",
            ["command"],
            buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0),
            registry=self._registry,
        )

        # Bytes sent counter
        self.bytes_sent = Counter(
            METRIC_BYTES_SENT,
            "Total bytes written to the daemon",
            ["path"],
            registry=self._registry,
        )

        # Jobs processed counter
        self.jobs_processed = Counter(
            METRIC_JOBS_PROCESSED,
            "Total number of jobs processed by workers",
            ["tube", "outcome"],
            registry=self._registry,
        )

        # Job duration histogram
        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Job handler duration in seconds",
            ["tube", "outcome"],
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self._registry,
        )

    def record_command(self, command: str, status: str, duration_seconds: float) -> None:
        """Record a command round trip."""
        self.commands.labels(command=command, status=status).inc()
        self.command_latency.labels(command=command).observe(duration_seconds)

    def record_bytes_sent(self, path: str, count: int) -> None:
        """Record bytes written on the direct or buffered path."""
        self.bytes_sent.labels(path=path).inc(count)

    def record_job_processed(
        self,
        tube: str,
        outcome: str,
        duration_seconds: float,
    ) -> None:
        """Record a job handled by a worker."""
        self.jobs_processed.labels(tube=tube, outcome=outcome).inc()
        self.job_duration.labels(tube=tube, outcome=outcome).observe(
            duration_seconds
        )


def setup_metrics(port: int | None = None) -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Args:
        port: If given, serve the default registry over HTTP on this port.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    if port is not None:
        start_http_server(port)
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
