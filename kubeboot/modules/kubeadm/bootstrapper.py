"""kubeadm cluster lifecycle.

This module contains the KubeadmBootstrapper class, which sequences the
commands that bootstrap, reconstruct and converge a single-node cluster.
"""

import logging
import time
from typing import IO, Callable, List, Optional

from kubeboot.config import Config

from . import constants
from .assets import AddonManager, CopyableFile, FileAsset, MemoryAsset
from .cache import BinaryCache
from .config import ClusterConfig
from .configuration import generate_artifacts, kubeadm_init_command, kubeadm_init_options
from .errors import (
    ClusterOperationError,
    ConfigurationError,
    DownloadError,
    ExecError,
    InvalidVersion,
    RetryExhaustedError,
)
from .health import get_apiserver_status, get_kubelet_status
from .images import load_images
from .kube import ClusterActions
from .models import GeneratedArtifacts, LifecycleState
from .retry import retry_after
from .versions import kubeadm_cached_images, parse_kubernetes_version

logger = logging.getLogger("kubeboot.kubeadm.bootstrapper")

BINARIES = ("kubelet", "kubeadm")

UNMARK_MASTER_ATTEMPTS = 200
UNMARK_MASTER_INTERVAL = 1.0
ELEVATE_PRIVILEGES_ATTEMPTS = 100
ELEVATE_PRIVILEGES_INTERVAL = 0.5


def restart_phase_commands(phase: str, control_plane: str) -> List[str]:
    """Return the kubeadm phase commands that rebuild the control plane, in order."""
    cfg = constants.KUBEADM_CONFIG_FILE
    return [
        f"sudo kubeadm {phase} phase certs all --config {cfg}",
        f"sudo kubeadm {phase} phase kubeconfig all --config {cfg}",
        f"sudo kubeadm {phase} phase {control_plane} all --config {cfg}",
        f"sudo kubeadm {phase} phase etcd local --config {cfg}",
    ]


def artifact_assets(artifacts: GeneratedArtifacts) -> List[CopyableFile]:
    """Map rendered artifacts to the files staged on the node."""
    files: List[CopyableFile] = [
        MemoryAsset(artifacts.kubelet_service, constants.KUBELET_SERVICE_FILE, "0640"),
        MemoryAsset(artifacts.kubelet_config, constants.KUBELET_SYSTEMD_CONF_FILE, "0640"),
        MemoryAsset(artifacts.kubeadm_config, constants.KUBEADM_CONFIG_FILE, "0640"),
        MemoryAsset(artifacts.etc_hosts, constants.ETC_HOSTS, "0644"),
    ]
    # Lets kubelet start pods with --network-plugin=cni before any plugin is installed
    if artifacts.cni_config is not None:
        files += [
            MemoryAsset(artifacts.cni_config, constants.DEFAULT_CNI_CONFIG_PATH, "0644"),
            MemoryAsset(artifacts.cni_config, constants.DEFAULT_RKT_NET_CONFIG_PATH, "0644"),
        ]
    return files


class KubeadmBootstrapper:
    """Bootstraps and maintains a kubeadm cluster on a single node.

    The bootstrapper keeps no state between calls: every operation takes the
    cluster configuration it should act on.
    """

    def __init__(
        self,
        runner,
        cluster_actions: Optional[ClusterActions] = None,
        binary_cache: Optional[BinaryCache] = None,
        addons: Optional[AddonManager] = None,
        image_cache_dir: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize the bootstrapper.

        Args:
            runner: CommandRunner for the node
            cluster_actions: Actions against the live cluster API
            binary_cache: Cache of kubelet/kubeadm binaries
            addons: Source of add-on files to stage
            image_cache_dir: Local directory of cached image tarballs
            sleep: Sleep function used between retries
        """
        self.runner = runner
        self.cluster_actions = cluster_actions or ClusterActions()
        self.binary_cache = binary_cache or BinaryCache()
        self.addons = addons or AddonManager(Config.ADDONS_DIR, target_dir=constants.ADDONS_DIR)
        self.image_cache_dir = image_cache_dir or Config.IMAGE_CACHE_DIR
        self.sleep = sleep

    def get_kubelet_status(self) -> LifecycleState:
        return get_kubelet_status(self.runner)

    def get_apiserver_status(self, ip: str, port: int = constants.APISERVER_PORT) -> LifecycleState:
        return get_apiserver_status(ip, port)

    def get_cluster_logs_to(self, follow: bool, out: IO[str]) -> None:
        """Write the kubelet journal to ``out``, following it if requested."""
        flags = ["-f"] if follow else []
        logs_command = f"sudo journalctl {' '.join(flags)} -u kubelet"

        try:
            if follow:
                self.runner.combined_output_to(logs_command, out)
            else:
                out.write(self.runner.combined_output(logs_command))
        except ExecError as e:
            raise ClusterOperationError(f"getting cluster logs: {e}") from e

    def _parse_version(self, cfg: ClusterConfig):
        try:
            return parse_kubernetes_version(cfg.kubernetes_version)
        except InvalidVersion as e:
            raise ClusterOperationError(f"parsing kubernetes version: {e}") from e

    def start_cluster(self, cfg: ClusterConfig) -> None:
        """Run `kubeadm init` and wait for the post-bootstrap fixes to apply.

        Raises:
            ClusterOperationError: If any step fails or a convergence check
                does not succeed within its retry budget
        """
        version = self._parse_version(cfg)
        logger.info(f"Starting cluster {cfg.node_name} at Kubernetes {version}")

        if cfg.container_runtime:
            for cmd, what in (
                (constants.MODPROBE_BR_NETFILTER, constants.MODPROBE_BR_NETFILTER),
                (constants.ENABLE_IP_FORWARD, "creating /proc/sys/net/ipv4/ip_forward"),
            ):
                try:
                    self.runner.combined_output(cmd)
                except ExecError as e:
                    logger.info(e.output)
                    raise ClusterOperationError(f"{what}: {e}") from e

        try:
            init_cmd = kubeadm_init_command(kubeadm_init_options(version, cfg.container_runtime))
        except ConfigurationError as e:
            raise ClusterOperationError(f"rendering kubeadm init command: {e}") from e

        try:
            self.runner.combined_output(init_cmd)
        except ExecError as e:
            raise ClusterOperationError(f"kubeadm init: {init_cmd}\n{e.output}\n") from e

        if version.needs_unmark_master:
            node_name = cfg.node_name
            try:
                retry_after(
                    UNMARK_MASTER_ATTEMPTS,
                    lambda: self.cluster_actions.unmark_master(node_name),
                    UNMARK_MASTER_INTERVAL,
                    sleep=self.sleep,
                )
            except RetryExhaustedError as e:
                raise ClusterOperationError(f"timed out waiting to unmark master: {e}") from e

        try:
            retry_after(
                ELEVATE_PRIVILEGES_ATTEMPTS,
                self.cluster_actions.elevate_kube_system_privileges,
                ELEVATE_PRIVILEGES_INTERVAL,
                sleep=self.sleep,
            )
        except RetryExhaustedError as e:
            raise ClusterOperationError(
                f"timed out waiting to elevate kube-system RBAC privileges: {e}"
            ) from e

        logger.info(f"Cluster {cfg.node_name} started")

    def restart_cluster(self, cfg: ClusterConfig) -> None:
        """Rebuild control-plane state with kubeadm phases after a reboot.

        Phases run one at a time so a failure points at a single command.
        """
        version = self._parse_version(cfg)
        logger.info(f"Restarting cluster {cfg.node_name} at Kubernetes {version}")

        for cmd in restart_phase_commands(version.phase, version.control_plane_phase):
            try:
                self.runner.run(cmd)
            except ExecError as e:
                raise ClusterOperationError(f"running cmd: {cmd}: {e}") from e

        try:
            self.cluster_actions.restart_kube_proxy(cfg)
        except Exception as e:
            raise ClusterOperationError(f"restarting kube-proxy: {e}") from e

        logger.info(f"Cluster {cfg.node_name} restarted")

    def update_cluster(self, cfg: ClusterConfig) -> None:
        """Converge the node's files, binaries and kubelet service to ``cfg``.

        Safe to call repeatedly; a failed call can simply be retried.
        """
        logger.info(f"Updating cluster {cfg.node_name} to Kubernetes {cfg.kubernetes_version}")

        if cfg.should_load_cached_images:
            try:
                load_images(self.runner, kubeadm_cached_images(cfg.kubernetes_version), self.image_cache_dir)
            except (OSError, ExecError, InvalidVersion) as e:
                raise ClusterOperationError(f"loading cached images: {e}") from e

        try:
            artifacts = generate_artifacts(cfg)
        except (InvalidVersion, ConfigurationError) as e:
            raise ClusterOperationError(f"generating configuration: {e}") from e

        files = artifact_assets(artifacts)

        try:
            paths = self.binary_cache.fetch_binaries(BINARIES, cfg.kubernetes_version)
        except DownloadError as e:
            raise ClusterOperationError(f"downloading binaries: {e}") from e

        binaries = [
            FileAsset(paths[binary], constants.BINARY_INSTALL_DIR, binary, "0641")
            for binary in BINARIES
        ]

        try:
            addon_files = self.addons.collect()
        except OSError as e:
            raise ClusterOperationError(f"adding addons to copyable files: {e}") from e

        for f in binaries + files + addon_files:
            try:
                self.runner.copy(f)
            except ExecError as e:
                raise ClusterOperationError(f"transferring kubeadm file: {f!r}: {e}") from e

        try:
            self.runner.run(constants.START_KUBELET_COMMAND)
        except ExecError as e:
            raise ClusterOperationError(f"starting kubelet: {e}") from e

        logger.info(f"Cluster {cfg.node_name} updated")
