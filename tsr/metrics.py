from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)


class DeployMetrics:
    """Deploy counters on an explicit registry (one per app instance).

    A fresh registry also gets the default process and platform series.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        if registry is None:
            registry = CollectorRegistry()
            ProcessCollector(registry=registry)
            PlatformCollector(registry=registry)
        self.registry = registry
        self.deployments = Counter(
            "tsr_deployments_total",
            "Reconciliations by result (applied, degraded, failed)",
            ["result"],
            registry=self.registry,
        )
        self.reconcile_seconds = Histogram(
            "tsr_reconcile_seconds",
            "Wall time of a reconciliation",
            buckets=(0.01, 0.05, 0.1, 0.5, 1, 2.5, 5, 10),
            registry=self.registry,
        )

    def observe(self, result: str, seconds: float) -> None:
        self.deployments.labels(result=result).inc()
        self.reconcile_seconds.observe(seconds)

    def render(self) -> tuple[bytes, str]:
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
