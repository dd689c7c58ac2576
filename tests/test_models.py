import pytest
from pydantic import ValidationError

from tsr.api_models import TrafficRuleRequest
from tsr.errors import InvariantViolation
from tsr.models import Rule, RuleType


def _rule(**overrides):
    data = dict(
        service_name="checkout",
        version1_name="v1",
        version2_name="v2",
        version1_weight=50,
        version2_weight=50,
    )
    data.update(overrides)
    return Rule(**data)


def test_rule_defaults_to_weighted_and_coerces_type():
    assert _rule().rule_type is RuleType.WEIGHTED
    assert _rule(rule_type="PATH_BASED").rule_type is RuleType.PATH_BASED


def test_rule_host_is_lowercase():
    assert _rule(service_name="Checkout").host == "checkout"


@pytest.mark.parametrize(
    "overrides",
    [
        {"version1_weight": 70, "version2_weight": 20},
        {"version1_weight": 110, "version2_weight": -10},
        {"service_name": ""},
        {"version1_name": "   "},
        {"version2_name": "v1"},
        {"version1_weight": 50.0},
        {"version1_weight": True, "version2_weight": 99},
        {"rule_type": "CANARY"},
    ],
)
def test_rule_rejects_invariant_violations(overrides):
    with pytest.raises(InvariantViolation):
        _rule(**overrides)


def test_invariant_violation_is_a_value_error():
    with pytest.raises(ValueError):
        _rule(version1_weight=70, version2_weight=20)


def test_request_model_accepts_camel_case_payload():
    req = TrafficRuleRequest.model_validate(
        {
            "serviceName": "payments",
            "version1Name": "v1",
            "version2Name": "v2",
            "version1Weight": 80,
            "version2Weight": 20,
        }
    )
    rule = req.to_rule()
    assert rule.rule_type is RuleType.WEIGHTED
    assert (rule.version1_weight, rule.version2_weight) == (80, 20)


@pytest.mark.parametrize(
    "payload",
    [
        {"version1Weight": 70, "version2Weight": 20},
        {"version1Weight": 101, "version2Weight": -1},
        {"version2Name": "v1"},
        {"serviceName": ""},
        {"ruleType": "SOMETHING"},
    ],
)
def test_request_model_rejects_bad_payloads(payload):
    base = {
        "serviceName": "payments",
        "version1Name": "v1",
        "version2Name": "v2",
        "version1Weight": 80,
        "version2Weight": 20,
    }
    base.update(payload)
    with pytest.raises(ValidationError):
        TrafficRuleRequest.model_validate(base)
