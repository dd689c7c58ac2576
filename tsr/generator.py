from __future__ import annotations

from typing import Any

from .models import Rule, RoutingObjectPair


ISTIO_GROUP = "networking.istio.io"
ISTIO_VERSION = "v1beta1"
API_VERSION = f"{ISTIO_GROUP}/{ISTIO_VERSION}"

# kind -> plural resource name used by the custom objects API
PLURALS = {
    "VirtualService": "virtualservices",
    "DestinationRule": "destinationrules",
}


def virtual_service_name(service_name: str) -> str:
    return f"{service_name.lower()}-vs"


def destination_rule_name(service_name: str) -> str:
    return f"{service_name.lower()}-dr"


def _metadata(name: str, namespace: str) -> dict[str, Any]:
    return {"name": name, "namespace": namespace}


def generate(rule: Rule, namespace: str = "default") -> RoutingObjectPair:
    """Build the VirtualService / DestinationRule pair for a rule.

    Pure and deterministic. Every rule type currently produces the weighted
    shape; the rule is trusted to already satisfy its invariants.
    """
    host = rule.host
    versions = [
        (rule.version1_name, rule.version1_weight),
        (rule.version2_name, rule.version2_weight),
    ]

    virtual_service = {
        "apiVersion": API_VERSION,
        "kind": "VirtualService",
        "metadata": _metadata(virtual_service_name(rule.service_name), namespace),
        "spec": {
            "hosts": [host],
            "http": [
                {
                    "route": [
                        {"destination": {"host": host, "subset": name}, "weight": weight}
                        for name, weight in versions
                    ]
                }
            ],
        },
    }

    destination_rule = {
        "apiVersion": API_VERSION,
        "kind": "DestinationRule",
        "metadata": _metadata(destination_rule_name(rule.service_name), namespace),
        "spec": {
            "host": host,
            "subsets": [{"name": name, "labels": {"version": name}} for name, _ in versions],
        },
    }

    return RoutingObjectPair(virtual_service=virtual_service, destination_rule=destination_rule)
