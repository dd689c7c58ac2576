from __future__ import annotations

import sqlite3
import time
from typing import Callable

from . import db
from .applier import ClusterApplier
from .cluster import KubeCustomObjects
from .errors import SnapshotWriteFailure
from .generator import generate
from .metrics import DeployMetrics
from .models import DeploymentOutcome, Rule
from .settings import Settings, settings as default_settings
from .snapshots import SnapshotWriter


# log_event(level, message, service_name=None, version=None)
EventSink = Callable[..., None]


class Reconciler:
    """Runs generate -> snapshot -> apply for one rule.

    Only a snapshot failure aborts; cluster problems are folded into the
    outcome and a failing event sink is ignored. No retries and no locking
    here: callers serialize per service.
    """

    def __init__(
        self,
        writer: SnapshotWriter,
        applier: ClusterApplier,
        namespace: str = "default",
        metrics: DeployMetrics | None = None,
        log_event: EventSink = db.log_event,
    ):
        self.writer = writer
        self.applier = applier
        self.namespace = namespace
        self.metrics = metrics
        self.log_event = log_event

    def reconcile(self, rule: Rule) -> DeploymentOutcome:
        t0 = time.monotonic()
        service = rule.host

        pair = generate(rule, namespace=self.namespace)
        self._event(
            "INFO",
            f"Generated {pair.virtual_service['metadata']['name']} and {pair.destination_rule['metadata']['name']} "
            f"({rule.version1_name}={rule.version1_weight}%, {rule.version2_name}={rule.version2_weight}%)",
            service,
        )

        try:
            path = self.writer.write(pair, rule.service_name)
        except SnapshotWriteFailure as e:
            self._event("ERROR", f"Snapshot write failed: {e}", service)
            self._observe("failed", t0)
            raise
        self._event("INFO", f"Saved snapshot to {path}", service)

        result = self.applier.apply(pair)
        if result.applied:
            actions = ", ".join(f"{name} {action}" for name, action in result.actions.items())
            self._event("INFO", f"Applied to cluster: {actions}", service)
            self._observe("applied", t0)
        else:
            self._event("WARN", f"Cluster apply skipped or failed: {result.error}", service)
            self._observe("degraded", t0)

        return DeploymentOutcome(
            generated=pair,
            snapshot_path=path,
            cluster_applied=result.applied,
            cluster_error=result.error,
        )

    def _event(self, level: str, message: str, service: str) -> None:
        # The audit log must never decide the outcome of a reconciliation.
        try:
            self.log_event(level, message, service_name=service)
        except sqlite3.Error:
            pass

    def _observe(self, result: str, t0: float) -> None:
        if self.metrics is not None:
            self.metrics.observe(result, time.monotonic() - t0)


def build_reconciler(
    cfg: Settings | None = None,
    metrics: DeployMetrics | None = None,
    log_event: EventSink = db.log_event,
) -> Reconciler:
    """Wire a Reconciler from settings. A missing cluster means degraded mode."""
    cfg = cfg or default_settings
    objects = None
    if cfg.enable_cluster:
        objects = KubeCustomObjects.from_kubeconfig(cfg.kubeconfig, timeout_s=cfg.cluster_timeout_s)
    if objects is None:
        log_event("WARN", "No Kubernetes configuration found; deployments will be snapshot-only")
    return Reconciler(
        writer=SnapshotWriter(cfg.snapshot_dir),
        applier=ClusterApplier(objects),
        namespace=cfg.namespace,
        metrics=metrics,
        log_event=log_event,
    )
