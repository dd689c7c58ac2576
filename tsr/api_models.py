from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .models import Rule, RuleType


class TrafficRuleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    service_name: str = Field(..., alias="serviceName", min_length=1, description="Logical service name")
    version1_name: str = Field(..., alias="version1Name", min_length=1, description="First version label, e.g. v1")
    version2_name: str = Field(..., alias="version2Name", min_length=1, description="Second version label, e.g. v2")
    version1_weight: int = Field(..., alias="version1Weight", ge=0, le=100, description="Percent routed to version 1")
    version2_weight: int = Field(..., alias="version2Weight", ge=0, le=100, description="Percent routed to version 2")
    rule_type: RuleType = Field(RuleType.WEIGHTED, alias="ruleType")

    @model_validator(mode="after")
    def _check_split(self) -> TrafficRuleRequest:
        if self.version1_weight + self.version2_weight != 100:
            raise ValueError("Weights must sum to 100")
        if self.version1_name == self.version2_name:
            raise ValueError("Version names must differ")
        return self

    def to_rule(self) -> Rule:
        return Rule(
            service_name=self.service_name,
            version1_name=self.version1_name,
            version2_name=self.version2_name,
            version1_weight=self.version1_weight,
            version2_weight=self.version2_weight,
            rule_type=self.rule_type,
        )
