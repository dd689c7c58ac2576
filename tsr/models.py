from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import InvariantViolation


class RuleType(str, Enum):
    WEIGHTED = "WEIGHTED"
    # Accepted and stored, but generated exactly like WEIGHTED for now.
    HEADER_MATCH = "HEADER_MATCH"
    PATH_BASED = "PATH_BASED"


@dataclass(frozen=True)
class Rule:
    """Declared traffic split between two versions of one service.

    Construction enforces the invariants, so anything holding a Rule can
    trust that weights sum to 100 and the version names are usable.
    """

    service_name: str
    version1_name: str
    version2_name: str
    version1_weight: int
    version2_weight: int
    rule_type: RuleType = RuleType.WEIGHTED

    def __post_init__(self) -> None:
        for attr in ("service_name", "version1_name", "version2_name"):
            value = getattr(self, attr)
            if not isinstance(value, str) or not value.strip():
                raise InvariantViolation(f"{attr} must be a non-empty string")
        if self.version1_name == self.version2_name:
            raise InvariantViolation("version1_name and version2_name must differ")
        for attr in ("version1_weight", "version2_weight"):
            value = getattr(self, attr)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvariantViolation(f"{attr} must be an integer")
            if not 0 <= value <= 100:
                raise InvariantViolation(f"{attr} must be between 0 and 100")
        if self.version1_weight + self.version2_weight != 100:
            raise InvariantViolation("Weights must sum to 100")
        try:
            object.__setattr__(self, "rule_type", RuleType(self.rule_type))
        except ValueError as e:
            raise InvariantViolation(f"Unknown rule type: {self.rule_type!r}") from e

    @property
    def host(self) -> str:
        return self.service_name.lower()


@dataclass(frozen=True)
class RoutingObjectPair:
    virtual_service: dict[str, Any]
    destination_rule: dict[str, Any]

    def objects(self) -> tuple[dict[str, Any], dict[str, Any]]:
        return self.virtual_service, self.destination_rule


@dataclass(frozen=True)
class ApplyResult:
    applied: bool
    error: str | None = None
    # "unavailable" | "rejected" | None
    error_kind: str | None = None
    # object name -> "created" | "replaced"
    actions: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DeploymentOutcome:
    generated: RoutingObjectPair
    snapshot_path: str
    cluster_applied: bool
    cluster_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "virtualService": self.generated.virtual_service,
            "destinationRule": self.generated.destination_rule,
            "snapshotPath": self.snapshot_path,
            "clusterApplied": self.cluster_applied,
            "clusterError": self.cluster_error,
        }
