import pytest
import urllib3
from kubernetes.client.exceptions import ApiException

from conftest import FakeCustomObjects
from tsr.applier import CLUSTER_UNAVAILABLE, ClusterApplier
from tsr.cluster import KubeCustomObjects, load_api_client
from tsr.errors import ClusterObjectRejected, ClusterUnavailable, ObjectExists
from tsr.generator import generate


def test_first_apply_creates_then_second_replaces(fake_cluster, payments_rule):
    applier = ClusterApplier(fake_cluster)
    pair = generate(payments_rule)

    first = applier.apply(pair)
    assert first.applied is True
    assert first.error is None
    assert first.actions == {"payments-vs": "created", "payments-dr": "created"}

    second = applier.apply(pair)
    assert second.applied is True
    assert second.actions == {"payments-vs": "replaced", "payments-dr": "replaced"}
    assert len(fake_cluster.store) == 2


def test_no_cluster_is_degraded_noop(payments_rule):
    result = ClusterApplier(None).apply(generate(payments_rule))
    assert result.applied is False
    assert result.error == CLUSTER_UNAVAILABLE
    assert result.error_kind == "unavailable"


def test_unreachable_cluster_stops_early(payments_rule):
    cluster = FakeCustomObjects(down=True)
    result = ClusterApplier(cluster).apply(generate(payments_rule))
    assert result.applied is False
    assert result.error_kind == "unavailable"
    assert result.error.startswith(CLUSTER_UNAVAILABLE)
    assert cluster.calls == [("create", "payments-vs")]


def test_rejected_object_does_not_block_the_other(payments_rule):
    cluster = FakeCustomObjects(reject={"virtualservices"})
    result = ClusterApplier(cluster).apply(generate(payments_rule))
    assert result.applied is False
    assert result.error_kind == "rejected"
    assert "422" in result.error
    assert result.actions == {"payments-dr": "created"}


def test_apply_object_without_cluster_raises(payments_rule):
    with pytest.raises(ClusterUnavailable):
        ClusterApplier(None).apply_object(generate(payments_rule).virtual_service)


class _FakeCustomObjectsApi:
    def __init__(self, create_error=None, live=None):
        self.create_error = create_error
        self.live = live or {}
        self.calls = []

    def create_namespaced_custom_object(self, **kwargs):
        self.calls.append(("create", kwargs))
        if self.create_error is not None:
            raise self.create_error
        return kwargs["body"]

    def get_namespaced_custom_object(self, **kwargs):
        self.calls.append(("get", kwargs))
        return self.live

    def replace_namespaced_custom_object(self, **kwargs):
        self.calls.append(("replace", kwargs))
        return kwargs["body"]


def test_kube_objects_pass_timeout(payments_rule):
    api = _FakeCustomObjectsApi()
    objs = KubeCustomObjects(api, timeout_s=2.5)
    body = generate(payments_rule).virtual_service

    objs.create("networking.istio.io", "v1beta1", "default", "virtualservices", body)

    op, kwargs = api.calls[0]
    assert op == "create"
    assert kwargs["_request_timeout"] == 2.5
    assert kwargs["plural"] == "virtualservices"


def test_kube_objects_conflict_maps_to_object_exists(payments_rule):
    api = _FakeCustomObjectsApi(create_error=ApiException(status=409, reason="Conflict"))
    objs = KubeCustomObjects(api)
    with pytest.raises(ObjectExists):
        objs.create("g", "v", "default", "virtualservices", generate(payments_rule).virtual_service)


def test_kube_objects_other_api_error_is_rejection(payments_rule):
    api = _FakeCustomObjectsApi(create_error=ApiException(status=403, reason="Forbidden"))
    objs = KubeCustomObjects(api)
    with pytest.raises(ClusterObjectRejected) as exc:
        objs.create("g", "v", "default", "virtualservices", generate(payments_rule).virtual_service)
    assert not isinstance(exc.value, ObjectExists)
    assert exc.value.status == 403


def test_kube_objects_transport_error_is_unavailable(payments_rule):
    api = _FakeCustomObjectsApi(create_error=urllib3.exceptions.ProtocolError("connection reset"))
    objs = KubeCustomObjects(api)
    with pytest.raises(ClusterUnavailable):
        objs.create("g", "v", "default", "virtualservices", generate(payments_rule).virtual_service)


def test_kube_objects_replace_carries_resource_version(payments_rule):
    api = _FakeCustomObjectsApi(live={"metadata": {"name": "payments-vs", "resourceVersion": "42"}})
    objs = KubeCustomObjects(api)
    body = generate(payments_rule).virtual_service

    objs.replace("g", "v", "default", "virtualservices", "payments-vs", body)

    assert [c[0] for c in api.calls] == ["get", "replace"]
    sent = api.calls[1][1]["body"]
    assert sent["metadata"]["resourceVersion"] == "42"
    assert "resourceVersion" not in body["metadata"]


def test_applier_replaces_through_kube_objects_on_conflict(payments_rule):
    api = _FakeCustomObjectsApi(
        create_error=ApiException(status=409, reason="Conflict"),
        live={"metadata": {"resourceVersion": "7"}},
    )
    result = ClusterApplier(KubeCustomObjects(api)).apply(generate(payments_rule))
    assert result.applied is True
    assert result.actions == {"payments-vs": "replaced", "payments-dr": "replaced"}


def test_missing_kubeconfig_means_no_cluster(tmp_path):
    assert load_api_client(str(tmp_path / "missing-kubeconfig")) is None
    assert KubeCustomObjects.from_kubeconfig(str(tmp_path / "missing-kubeconfig")) is None


@pytest.mark.parametrize("content", ["clusters: [\n", "just-a-string\n"])
def test_malformed_kubeconfig_means_no_cluster(tmp_path, content):
    path = tmp_path / "kubeconfig"
    path.write_text(content)
    assert load_api_client(str(path)) is None
    assert ClusterApplier(KubeCustomObjects.from_kubeconfig(str(path))).available is False
