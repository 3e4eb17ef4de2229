"""Data models for the kubeadm bootstrapper."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from semver import Version


class LifecycleState(str, Enum):
    """Observable state of the kubelet or API server."""
    RUNNING = 'Running'
    STARTING = 'Starting'
    STOPPED = 'Stopped'
    ERROR = 'Error'


class ConfigSchema(str, Enum):
    """kubeadm configuration API versions."""
    V1ALPHA1 = 'v1alpha1'
    V1ALPHA3 = 'v1alpha3'


@dataclass(frozen=True)
class ResolvedVersion:
    """A parsed Kubernetes version and the kubeadm behaviour valid for it."""
    raw: str
    version: Version
    phase: str
    control_plane_phase: str
    config_schema: ConfigSchema
    no_taint_master: bool
    needs_unmark_master: bool
    skip_preflight_checks: bool

    def __str__(self) -> str:
        return str(self.version)


@dataclass
class ComponentExtraArgs:
    """Extra flags for one control-plane component in the kubeadm config."""
    component: str
    options: Dict[str, str] = field(default_factory=dict)

    def ordered_options(self) -> List[str]:
        """Return ``key: value`` lines sorted by key."""
        return [f"{k}: {self.options[k]}" for k in sorted(self.options)]


@dataclass(frozen=True)
class KubeadmInitOptions:
    """Inputs of the `kubeadm init` command line."""
    config_file: str
    skip_preflight_checks: bool
    preflights: List[str]


@dataclass
class GeneratedArtifacts:
    """Everything rendered for one convergence pass."""
    kubeadm_config: str
    kubelet_config: str
    kubelet_service: str
    etc_hosts: str
    cni_config: Optional[str] = None
