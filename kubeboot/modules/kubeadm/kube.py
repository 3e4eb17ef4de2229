"""Convergence actions against the live cluster API."""
import logging
import os
import re
from pathlib import Path
from typing import Callable, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from . import constants
from .config import ClusterConfig
from .retry import retry_after

logger = logging.getLogger("kubeboot.kubeadm.kube")

_SERVER_RE = re.compile(r"server: .*")


def load_kubeconfig(path: Optional[str] = None) -> client.ApiClient:
    """
    Build an API client from a kubeconfig path or from the default location.
    """
    if path:
        resolved = Path(os.path.expanduser(path)).resolve()
        if not resolved.exists():
            raise FileNotFoundError(f"Kubeconfig not found: {resolved}")
        return config.new_client_from_config(config_file=str(resolved))
    return config.new_client_from_config()


class ClusterActions:
    """Idempotent check-and-fix actions run once the API server is up.

    The API client is created on first successful use, so actions can be
    retried while the cluster is still coming up.
    """

    def __init__(
        self,
        kubeconfig: Optional[str] = None,
        api_client: Optional[client.ApiClient] = None,
        sleep: Optional[Callable[[float], None]] = None
    ):
        self.kubeconfig = kubeconfig
        self._api_client = api_client
        self._sleep = sleep

    @property
    def api_client(self) -> client.ApiClient:
        if self._api_client is None:
            self._api_client = load_kubeconfig(self.kubeconfig)
        return self._api_client

    def unmark_master(self, node_name: str) -> None:
        """Remove the master taint so workloads schedule on the node."""
        core = client.CoreV1Api(self.api_client)
        node = core.read_node(node_name)
        taints = node.spec.taints or []
        kept = [t for t in taints if t.key != constants.MASTER_TAINT]
        if len(kept) == len(taints):
            logger.debug(f"Node {node_name} has no {constants.MASTER_TAINT} taint")
            return

        body = {"spec": {"taints": [self.api_client.sanitize_for_serialization(t) for t in kept]}}
        core.patch_node(node_name, body)
        logger.info(f"Removed {constants.MASTER_TAINT} taint from {node_name}")

    def elevate_kube_system_privileges(self) -> None:
        """Bind cluster-admin to the kube-system default service account."""
        rbac = client.RbacAuthorizationV1Api(self.api_client)
        try:
            rbac.read_cluster_role_binding(constants.RBAC_NAME)
            logger.info(f"Role binding {constants.RBAC_NAME} already exists. Skipping creation.")
            return
        except ApiException as e:
            if e.status != 404:
                raise

        body = {
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": "ClusterRoleBinding",
            "metadata": {"name": constants.RBAC_NAME},
            "subjects": [{
                "kind": "ServiceAccount",
                "name": "default",
                "namespace": constants.KUBE_SYSTEM_NAMESPACE,
            }],
            "roleRef": {
                "apiGroup": "rbac.authorization.k8s.io",
                "kind": "ClusterRole",
                "name": "cluster-admin",
            },
        }
        try:
            rbac.create_cluster_role_binding(body)
        except ApiException as e:
            if e.status != 409:
                raise
        logger.info(f"Created role binding {constants.RBAC_NAME}")

    def _kube_proxy_pods_running(self, core: client.CoreV1Api) -> bool:
        pods = core.list_namespaced_pod(
            constants.KUBE_SYSTEM_NAMESPACE, label_selector=constants.KUBE_PROXY_LABEL
        )
        return bool(pods.items) and all(p.status.phase == "Running" for p in pods.items)

    def restart_kube_proxy(self, cfg: ClusterConfig, attempts: int = 300, interval: float = 1.0) -> None:
        """Point kube-proxy at the node's API endpoint and restart its pods."""
        core = client.CoreV1Api(self.api_client)

        retry_after(
            attempts,
            lambda: self._kube_proxy_pods_running(core),
            interval,
            is_success=bool,
            sleep=self._sleep,
        )

        port = cfg.node_port if cfg.node_port > 0 else constants.APISERVER_PORT
        server = f"server: https://{cfg.node_ip}:{port}"

        cm = core.read_namespaced_config_map("kube-proxy", constants.KUBE_SYSTEM_NAMESPACE)
        kubeconfig = (cm.data or {}).get("kubeconfig.conf", "")
        updated = _SERVER_RE.sub(server, kubeconfig)
        if updated != kubeconfig:
            core.patch_namespaced_config_map(
                "kube-proxy", constants.KUBE_SYSTEM_NAMESPACE,
                {"data": {"kubeconfig.conf": updated}}
            )
            logger.info(f"Updated kube-proxy configmap to {server}")

        pods = core.list_namespaced_pod(
            constants.KUBE_SYSTEM_NAMESPACE, label_selector=constants.KUBE_PROXY_LABEL
        )
        for pod in pods.items:
            core.delete_namespaced_pod(pod.metadata.name, constants.KUBE_SYSTEM_NAMESPACE)
            logger.debug(f"Deleted {pod.metadata.name} so it restarts")
