import pytest

from tsr.generator import API_VERSION, generate
from tsr.models import Rule


def test_payments_example(payments_rule):
    pair = generate(payments_rule)
    vs, dr = pair.virtual_service, pair.destination_rule

    assert vs["apiVersion"] == API_VERSION
    assert vs["kind"] == "VirtualService"
    assert vs["metadata"] == {"name": "payments-vs", "namespace": "default"}
    assert vs["spec"]["hosts"] == ["payments"]
    routes = vs["spec"]["http"][0]["route"]
    assert [(r["destination"]["subset"], r["weight"]) for r in routes] == [("v1", 80), ("v2", 20)]
    assert all(r["destination"]["host"] == "payments" for r in routes)

    assert dr["kind"] == "DestinationRule"
    assert dr["metadata"]["name"] == "payments-dr"
    assert dr["spec"]["host"] == "payments"
    assert dr["spec"]["subsets"] == [
        {"name": "v1", "labels": {"version": "v1"}},
        {"name": "v2", "labels": {"version": "v2"}},
    ]


def test_names_derive_from_lowercased_service():
    rule = Rule(service_name="Checkout", version1_name="blue", version2_name="green", version1_weight=0, version2_weight=100)
    pair = generate(rule)
    assert pair.virtual_service["metadata"]["name"] == "checkout-vs"
    assert pair.destination_rule["metadata"]["name"] == "checkout-dr"
    assert pair.virtual_service["spec"]["hosts"] == ["checkout"]


def test_generate_is_deterministic(payments_rule):
    assert generate(payments_rule) == generate(payments_rule)


def test_namespace_is_passed_through(payments_rule):
    pair = generate(payments_rule, namespace="mesh")
    assert pair.virtual_service["metadata"]["namespace"] == "mesh"
    assert pair.destination_rule["metadata"]["namespace"] == "mesh"


@pytest.mark.parametrize("w1", [0, 1, 33, 50, 99, 100])
def test_weights_sum_to_100_and_subsets_match(w1):
    rule = Rule(service_name="svc", version1_name="a", version2_name="b", version1_weight=w1, version2_weight=100 - w1)
    pair = generate(rule)
    routes = pair.virtual_service["spec"]["http"][0]["route"]
    assert sum(r["weight"] for r in routes) == 100
    labels = {s["labels"]["version"] for s in pair.destination_rule["spec"]["subsets"]}
    assert labels == {"a", "b"}


@pytest.mark.parametrize("rule_type", ["HEADER_MATCH", "PATH_BASED"])
def test_other_rule_types_generate_weighted_shape(payments_rule, rule_type):
    other = Rule(
        service_name=payments_rule.service_name,
        version1_name=payments_rule.version1_name,
        version2_name=payments_rule.version2_name,
        version1_weight=payments_rule.version1_weight,
        version2_weight=payments_rule.version2_weight,
        rule_type=rule_type,
    )
    assert generate(other) == generate(payments_rule)
