from __future__ import annotations


class TsrError(Exception):
    """Base class for reconciler errors."""


class InvariantViolation(TsrError, ValueError):
    """A rule broke the weight-sum or naming invariants."""


class SnapshotWriteFailure(TsrError):
    """The GitOps snapshot could not be written. Fatal to a reconciliation."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Could not write snapshot {path}: {reason}")
        self.path = path
        self.reason = reason


class ClusterUnavailable(TsrError):
    """No cluster configured, or the API did not answer within the timeout."""


class ClusterObjectRejected(TsrError):
    """The cluster API answered with an error for a single object."""

    def __init__(self, kind: str, name: str, status: int | None, reason: str):
        super().__init__(f"{kind} {name} rejected ({status}): {reason}")
        self.kind = kind
        self.name = name
        self.status = status
        self.reason = reason


class ObjectExists(ClusterObjectRejected):
    """409 on create: the object is already present and must be replaced."""
