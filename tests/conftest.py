import os as _os
import sys

import pytest

# Ensure project root is importable (so `import tsr` / `import services...` work without installing)
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from tsr import db  # noqa: E402
from tsr.errors import ClusterObjectRejected, ClusterUnavailable, ObjectExists  # noqa: E402
from tsr.models import Rule  # noqa: E402
from tsr.settings import Settings  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_db(tmp_path_factory, monkeypatch):
    """Point the record store at a throwaway sqlite file for every test."""
    monkeypatch.setattr(db, "settings", Settings(db_path=str(tmp_path_factory.mktemp("db") / "test.db")))
    db.init_db()
    return db


class FakeCustomObjects:
    """In-memory stand-in for the cluster's custom objects API."""

    def __init__(self, down: bool = False, reject: set | None = None):
        self.down = down
        self.reject = reject or set()
        self.store: dict[tuple[str, str, str], dict] = {}
        self.calls: list[tuple[str, str]] = []

    def _check(self, plural: str, name: str) -> None:
        if self.down:
            raise ClusterUnavailable("connection refused")
        if plural in self.reject:
            raise ClusterObjectRejected(plural, name, 422, "Unprocessable Entity")

    def create(self, group, version, namespace, plural, body):
        name = body["metadata"]["name"]
        self.calls.append(("create", name))
        self._check(plural, name)
        key = (plural, namespace, name)
        if key in self.store:
            raise ObjectExists(body["kind"], name, 409, "AlreadyExists")
        self.store[key] = body

    def replace(self, group, version, namespace, plural, name, body):
        self.calls.append(("replace", name))
        self._check(plural, name)
        key = (plural, namespace, name)
        if key not in self.store:
            raise ClusterObjectRejected(body["kind"], name, 404, "Not Found")
        self.store[key] = body


@pytest.fixture
def fake_cluster():
    return FakeCustomObjects()


@pytest.fixture
def payments_rule():
    return Rule(
        service_name="payments",
        version1_name="v1",
        version2_name="v2",
        version1_weight=80,
        version2_weight=20,
        rule_type="WEIGHTED",
    )
