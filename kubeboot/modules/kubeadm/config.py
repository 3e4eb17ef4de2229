"""Cluster configuration for the kubeadm bootstrapper.

Configuration is loaded with the following precedence:
1. Explicitly passed parameters
2. Configuration file
3. Default values
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger("kubeboot.kubeadm.config")

# Default configuration paths
DEFAULT_CONFIG_PATHS = [
    Path("/etc/kubeboot/cluster.yaml"),
    Path("~/.config/kubeboot/cluster.yaml").expanduser(),
    Path("kubeboot-cluster.yaml").absolute(),
]


class ExtraOption(BaseModel):
    """A single ``component.key=value`` flag override."""
    model_config = ConfigDict(frozen=True)

    component: str
    key: str
    value: str

    @classmethod
    def parse(cls, raw: str) -> 'ExtraOption':
        """Parse the ``component.key=value`` form used on the command line."""
        name, sep, value = raw.partition("=")
        if not sep:
            raise ValueError(f"Invalid extra option {raw!r}: expected component.key=value")
        component, dot, key = name.partition(".")
        if not dot or not component or not key:
            raise ValueError(f"Invalid extra option {raw!r}: expected component.key=value")
        return cls(component=component, key=key, value=value)

    def __str__(self) -> str:
        return f"{self.component}.{self.key}={self.value}"


class ClusterConfig(BaseModel):
    """Declarative description of the cluster a call should converge to."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    node_name: str = Field(
        default="minikube",
        description="Name the node registers with"
    )
    node_ip: str = Field(
        default="",
        description="IP address the API server advertises"
    )
    kubernetes_version: str = Field(
        default="v1.13.0",
        description="Kubernetes release to install, e.g. v1.13.0"
    )
    container_runtime: str = Field(
        default="",
        description="Container runtime (empty for docker, containerd, crio)"
    )
    cri_socket: str = Field(
        default="",
        description="Explicit CRI socket path"
    )
    network_plugin: str = Field(
        default="",
        description="Kubelet network plugin, e.g. cni"
    )
    service_cidr: str = Field(
        default="",
        description="Kubernetes service IP range"
    )
    feature_gates: str = Field(
        default="",
        description="Comma separated key=bool feature gates"
    )
    extra_options: List[ExtraOption] = Field(
        default_factory=list,
        description="Per-component flag overrides"
    )
    enable_default_cni: bool = Field(
        default=False,
        description="Install a bridge CNI config so pods can start without a plugin"
    )
    should_load_cached_images: bool = Field(
        default=False,
        description="Load cached control-plane images before starting kubelet"
    )
    node_port: int = Field(
        default=0,
        description="API server port (8443 when unset)"
    )
    kubeconfig: Optional[str] = Field(
        default=None,
        description="Kubeconfig used to reach the cluster once it is up"
    )

    @field_validator('extra_options', mode='before')
    @classmethod
    def parse_extra_options(cls, v: Any) -> Any:
        """Accept ``component.key=value`` strings as well as mappings."""
        if v is None:
            return []
        return [ExtraOption.parse(item) if isinstance(item, str) else item for item in v]

    @field_validator('kubeconfig')
    @classmethod
    def expand_kubeconfig(cls, v: Optional[str]) -> Optional[str]:
        """Expand the user home directory in the kubeconfig path."""
        return str(Path(v).expanduser()) if v else v

    @classmethod
    def load(
        cls,
        config_path: Optional[Union[str, Path]] = None,
        **overrides: Any
    ) -> 'ClusterConfig':
        """Load configuration from a YAML file and apply explicit overrides.

        Overrides whose value is None are ignored so that unset CLI flags do
        not clobber file values.
        """
        config_data: Dict[str, Any] = {}

        if config_path:
            config_path = Path(config_path).expanduser().absolute()
            if not config_path.exists():
                raise FileNotFoundError(f"Cluster config not found: {config_path}")
            config_data = cls._load_config_file(config_path)
        else:
            for path in DEFAULT_CONFIG_PATHS:
                path = path.expanduser().absolute()
                if path.exists():
                    config_data = cls._load_config_file(path)
                    break

        config_data.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**config_data)

    @classmethod
    def _load_config_file(cls, path: Path) -> Dict[str, Any]:
        """Load configuration from a YAML file."""
        logger.debug(f"Loading cluster config from {path}")
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Cluster config {path} must be a mapping")
        return data

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to a file."""
        path = Path(path).expanduser().absolute()
        path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = self.model_dump(exclude_none=True)
        config_dict['extra_options'] = [str(o) for o in self.extra_options]

        with open(path, 'w') as f:
            yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)
