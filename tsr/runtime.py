from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Iterator

from .models import DeploymentOutcome


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class DeploymentRecord:
    rule_id: str
    service: str
    outcome: DeploymentOutcome
    finished_at: str


class RuntimeState:
    """In-memory state shared by request handlers.

    Reconciliations for the same service are serialized through
    deploy_lock(); different services proceed in parallel.
    """

    def __init__(self) -> None:
        self.lock = Lock()
        self.service_locks: dict[str, Lock] = {}  # service -> lock
        self.last_deployments: dict[str, DeploymentRecord] = {}  # service -> record

    def _service_lock(self, service: str) -> Lock:
        with self.lock:
            return self.service_locks.setdefault(service.lower(), Lock())

    @contextmanager
    def deploy_lock(self, service: str) -> Iterator[None]:
        lk = self._service_lock(service)
        with lk:
            yield

    def record_deployment(self, rule_id: str, service: str, outcome: DeploymentOutcome) -> DeploymentRecord:
        rec = DeploymentRecord(rule_id=rule_id, service=service.lower(), outcome=outcome, finished_at=utc_now())
        with self.lock:
            self.last_deployments[rec.service] = rec
        return rec

    def last_deployment(self, service: str) -> DeploymentRecord | None:
        with self.lock:
            return self.last_deployments.get(service.lower())
