from __future__ import annotations

import os
import tempfile
from typing import Any

import yaml

from .errors import SnapshotWriteFailure
from .models import RoutingObjectPair


def snapshot_paths(directory: str, service_name: str) -> tuple[str, str]:
    """Return (virtualservice_path, destinationrule_path) for a service."""
    base = service_name.lower()
    return (
        os.path.join(directory, f"{base}-virtualservice.yaml"),
        os.path.join(directory, f"{base}-destinationrule.yaml"),
    )


def _dump(obj: dict[str, Any]) -> str:
    return yaml.safe_dump(obj, sort_keys=False, default_flow_style=False)


def _replace_file(path: str, text: str) -> None:
    """Write text next to path, then rename over it. Readers never see a partial file."""
    directory, name = os.path.split(path)
    fd, tmp = tempfile.mkstemp(dir=directory, prefix=f".{name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


class SnapshotWriter:
    """Writes generated objects to the GitOps directory.

    Files are replaced on every call (last write wins), so the directory
    always holds the most recently reconciled state for each service.
    """

    def __init__(self, directory: str):
        self.directory = os.path.abspath(directory)

    def write(self, pair: RoutingObjectPair, service_name: str) -> str:
        vs_path, dr_path = snapshot_paths(self.directory, service_name)
        try:
            os.makedirs(self.directory, exist_ok=True)
            for path, obj in ((vs_path, pair.virtual_service), (dr_path, pair.destination_rule)):
                _replace_file(path, _dump(obj))
        except OSError as e:
            raise SnapshotWriteFailure(self.directory, f"{type(e).__name__}: {e}") from e
        return self.directory

    def read(self, service_name: str) -> dict[str, dict[str, Any]]:
        """Load the snapshot documents for a service, keyed virtualService / destinationRule."""
        docs: dict[str, dict[str, Any]] = {}
        vs_path, dr_path = snapshot_paths(self.directory, service_name)
        for key, path in (("virtualService", vs_path), ("destinationRule", dr_path)):
            if not os.path.exists(path):
                continue
            with open(path, encoding="utf-8") as fh:
                docs[key] = yaml.safe_load(fh)
        return docs
