from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = os.getenv("TSR_DB_PATH", "tsr.db")
    snapshot_dir: str = os.getenv("TSR_SNAPSHOT_DIR", os.path.join("gitops-repo", "istio"))
    namespace: str = os.getenv("TSR_NAMESPACE", "default")

    # Cluster (optional)
    enable_cluster: bool = _env_bool("TSR_ENABLE_CLUSTER", True)
    kubeconfig: str | None = os.getenv("TSR_KUBECONFIG") or os.getenv("KUBECONFIG")
    cluster_timeout_s: float = _env_float("TSR_CLUSTER_TIMEOUT_S", 5.0)

    # API
    admin_user: str = os.getenv("TSR_ADMIN_USER", "admin")
    # Basic auth on mutating routes is only enforced when a password is set.
    admin_password: str | None = os.getenv("TSR_ADMIN_PASSWORD")
    expose_errors: bool = _env_bool("TSR_EXPOSE_ERRORS", False)
    events_limit: int = _env_int("TSR_EVENTS_LIMIT", 100)


settings = Settings()
