from __future__ import annotations

from typing import Any

import urllib3
import yaml
from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from .errors import ClusterObjectRejected, ClusterUnavailable, ObjectExists


HTTP_CONFLICT = 409


def load_api_client(kubeconfig: str | None = None) -> client.ApiClient | None:
    """Build a dedicated ApiClient, or None when no cluster is configured.

    Order: explicit kubeconfig, in-cluster service account, default kubeconfig.
    """
    cfg = client.Configuration()
    try:
        if kubeconfig:
            config.load_kube_config(config_file=kubeconfig, client_configuration=cfg)
        else:
            try:
                config.load_incluster_config(client_configuration=cfg)
            except config.ConfigException:
                config.load_kube_config(client_configuration=cfg)
    except (config.ConfigException, OSError, yaml.YAMLError, TypeError, ValueError):
        # unreadable or malformed kubeconfig: run snapshot-only
        return None
    return client.ApiClient(cfg)


class KubeCustomObjects:
    """Create/replace namespaced custom objects with a bounded request time.

    Transport failures and timeouts surface as ClusterUnavailable; API
    errors as ClusterObjectRejected (ObjectExists for 409).
    """

    def __init__(self, api: client.CustomObjectsApi, timeout_s: float = 5.0):
        self.api = api
        self.timeout_s = timeout_s

    @classmethod
    def from_kubeconfig(cls, kubeconfig: str | None = None, timeout_s: float = 5.0) -> KubeCustomObjects | None:
        api_client = load_api_client(kubeconfig)
        if api_client is None:
            return None
        return cls(client.CustomObjectsApi(api_client), timeout_s=timeout_s)

    def create(self, group: str, version: str, namespace: str, plural: str, body: dict[str, Any]) -> None:
        self._call(
            body,
            self.api.create_namespaced_custom_object,
            group=group,
            version=version,
            namespace=namespace,
            plural=plural,
            body=body,
        )

    def replace(
        self, group: str, version: str, namespace: str, plural: str, name: str, body: dict[str, Any]
    ) -> None:
        # Custom resources reject unconditional updates: carry the live resourceVersion.
        current = self._call(
            body,
            self.api.get_namespaced_custom_object,
            group=group,
            version=version,
            namespace=namespace,
            plural=plural,
            name=name,
        )
        resource_version = (current or {}).get("metadata", {}).get("resourceVersion")
        if resource_version:
            body = {**body, "metadata": {**body["metadata"], "resourceVersion": resource_version}}
        self._call(
            body,
            self.api.replace_namespaced_custom_object,
            group=group,
            version=version,
            namespace=namespace,
            plural=plural,
            name=name,
            body=body,
        )

    def _call(self, body: dict[str, Any], func: Any, /, **kwargs: Any) -> Any:
        kind = body.get("kind", "object")
        name = body.get("metadata", {}).get("name", "")
        try:
            return func(_request_timeout=self.timeout_s, **kwargs)
        except ApiException as e:
            if e.status == HTTP_CONFLICT:
                raise ObjectExists(kind, name, e.status, e.reason or "already exists") from e
            raise ClusterObjectRejected(kind, name, e.status, e.reason or str(e)) from e
        except urllib3.exceptions.HTTPError as e:
            raise ClusterUnavailable(f"{type(e).__name__}: {e}") from e
