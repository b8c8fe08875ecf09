"""
Prometheus metrics collection.
"""

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)

from approval_gate.constants import (
    METRIC_APPROVAL_QUEUES,
    METRIC_JOBS_DEFERRED,
    METRIC_JOBS_ADMITTED,
    METRIC_JOBS_RELEASED,
    METRIC_JOBS_REMOVED,
    METRIC_PAUSED_SKIPS,
    METRIC_RECONCILE_REPAIRS,
    METRIC_API_REQUESTS,
    METRIC_API_LATENCY,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the approval gate.

    Collects metrics for:
    - Gate decisions (deferred and admitted jobs)
    - Releases and removals of pending jobs
    - Release attempts skipped on paused queues
    - Reconciliation repairs
    - API requests
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.jobs_deferred = Counter(
            METRIC_JOBS_DEFERRED,
            "Total number of jobs deferred for approval",
            ["job_type"],
            registry=self._registry,
        )

        self.jobs_admitted = Counter(
            METRIC_JOBS_ADMITTED,
            "Total number of jobs admitted by the gate",
            ["job_type"],
            registry=self._registry,
        )

        self.jobs_released = Counter(
            METRIC_JOBS_RELEASED,
            "Total number of pending jobs released to the broker",
            ["job_type"],
            registry=self._registry,
        )

        self.jobs_removed = Counter(
            METRIC_JOBS_REMOVED,
            "Total number of pending jobs removed without running",
            ["job_type"],
            registry=self._registry,
        )

        self.paused_skips = Counter(
            METRIC_PAUSED_SKIPS,
            "Total number of release attempts skipped on paused queues",
            registry=self._registry,
        )

        self.reconcile_repairs = Counter(
            METRIC_RECONCILE_REPAIRS,
            "Total number of repairs made by the reconciler",
            ["kind"],
            registry=self._registry,
        )

        # Registered approval keys, as last seen by the reconciler
        self.approval_queues = Gauge(
            METRIC_APPROVAL_QUEUES,
            "Number of registered approval keys",
            registry=self._registry,
        )

        # API requests counter
        self.api_requests = Counter(
            METRIC_API_REQUESTS,
            "Total number of API requests",
            ["method", "endpoint", "status"],
            registry=self._registry,
        )

        # API latency histogram
        self.api_latency = Histogram(
            METRIC_API_LATENCY,
            "API request latency in seconds",
            ["method", "endpoint"],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
            registry=self._registry,
        )

    def record_job_deferred(self, job_type: str) -> None:
        """Record a job deferred by the gate."""
        self.jobs_deferred.labels(job_type=job_type).inc()

    def record_job_admitted(self, job_type: str) -> None:
        """Record a job admitted by the gate."""
        self.jobs_admitted.labels(job_type=job_type).inc()

    def record_job_released(self, job_type: str) -> None:
        """Record a pending job released to the broker."""
        self.jobs_released.labels(job_type=job_type).inc()

    def record_job_removed(self, job_type: str | None) -> None:
        """Record a pending job removed without running."""
        self.jobs_removed.labels(job_type=job_type or "unknown").inc()

    def record_paused_skip(self) -> None:
        """Record a release attempt skipped because the queue is paused."""
        self.paused_skips.inc()

    def record_reconcile_repairs(self, kind: str, count: int) -> None:
        """Record repairs made by one reconciliation pass."""
        if count:
            self.reconcile_repairs.labels(kind=kind).inc(count)

    def update_approval_queues(self, count: int) -> None:
        """Update the number of registered approval keys."""
        self.approval_queues.set(count)

    def record_api_request(
        self,
        method: str,
        endpoint: str,
        status: int,
        duration_seconds: float,
    ) -> None:
        """Record an API request."""
        self.api_requests.labels(
            method=method,
            endpoint=endpoint,
            status=str(status),
        ).inc()
        self.api_latency.labels(method=method, endpoint=endpoint).observe(
            duration_seconds
        )

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, setting it up on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
