from __future__ import annotations

from typing import Any, Protocol

from .errors import ClusterObjectRejected, ClusterUnavailable, ObjectExists
from .generator import ISTIO_GROUP, ISTIO_VERSION, PLURALS
from .models import ApplyResult, RoutingObjectPair


CLUSTER_UNAVAILABLE = "cluster unavailable"


class CustomObjects(Protocol):
    def create(self, group: str, version: str, namespace: str, plural: str, body: dict[str, Any]) -> None: ...

    def replace(
        self, group: str, version: str, namespace: str, plural: str, name: str, body: dict[str, Any]
    ) -> None: ...


class ClusterApplier:
    """Best-effort create-or-replace of a routing pair against a cluster.

    With no cluster (``objects is None``) every apply is a degraded no-op.
    Nothing here raises for cluster problems; they end up in ApplyResult.
    """

    def __init__(self, objects: CustomObjects | None):
        self.objects = objects

    @property
    def available(self) -> bool:
        return self.objects is not None

    def apply_object(self, body: dict[str, Any]) -> str:
        """Create the object, replacing it once if it already exists.

        Returns "created" or "replaced". Raises ClusterUnavailable or
        ClusterObjectRejected.
        """
        if self.objects is None:
            raise ClusterUnavailable(CLUSTER_UNAVAILABLE)
        meta = body["metadata"]
        plural = PLURALS[body["kind"]]
        try:
            self.objects.create(ISTIO_GROUP, ISTIO_VERSION, meta["namespace"], plural, body)
            return "created"
        except ObjectExists:
            self.objects.replace(ISTIO_GROUP, ISTIO_VERSION, meta["namespace"], plural, meta["name"], body)
            return "replaced"

    def apply(self, pair: RoutingObjectPair) -> ApplyResult:
        if self.objects is None:
            return ApplyResult(applied=False, error=CLUSTER_UNAVAILABLE, error_kind="unavailable")

        actions: dict[str, str] = {}
        rejected: list[str] = []
        for body in pair.objects():
            try:
                actions[body["metadata"]["name"]] = self.apply_object(body)
            except ClusterUnavailable as e:
                return ApplyResult(
                    applied=False,
                    error=f"{CLUSTER_UNAVAILABLE}: {e}",
                    error_kind="unavailable",
                    actions=actions,
                )
            except ClusterObjectRejected as e:
                # keep going: the other object may still be accepted
                rejected.append(str(e))

        if rejected:
            return ApplyResult(applied=False, error="; ".join(rejected), error_kind="rejected", actions=actions)
        return ApplyResult(applied=True, actions=actions)
