"""
kubeadm Cluster Bootstrapping Module

This package provides functionality for bootstrapping and maintaining a
single-node Kubernetes cluster with kubeadm.

Key Features:
- Kubernetes version resolution with per-version kubeadm behaviour
- kubeadm, kubelet and hosts configuration rendering
- Cluster start, restart and update against a local or SSH node
- Verified download cache for kubelet and kubeadm binaries
- Kubelet and API server health probes
"""

# Core functionality
from .models import (
    ComponentExtraArgs,
    ConfigSchema,
    GeneratedArtifacts,
    KubeadmInitOptions,
    LifecycleState,
    ResolvedVersion,
)
from .bootstrapper import KubeadmBootstrapper
from .cache import BinaryCache, Downloader
from .health import get_apiserver_status, get_kubelet_status
from .kube import ClusterActions
from .versions import parse_kubernetes_version

# Configuration management
from .config import ClusterConfig, ExtraOption, DEFAULT_CONFIG_PATHS
from .configuration import generate_artifacts, generate_config, new_kubelet_config

# Errors
from .errors import (
    ClusterOperationError,
    ConfigurationError,
    DownloadError,
    ExecError,
    FeatureGateParseError,
    InvalidVersion,
    KubebootError,
    ProbeError,
    RetryExhaustedError,
    TemplateRenderError,
)

__all__ = [
    # Core classes
    'KubeadmBootstrapper',
    'BinaryCache',
    'Downloader',
    'ClusterActions',
    'ComponentExtraArgs',
    'ConfigSchema',
    'GeneratedArtifacts',
    'KubeadmInitOptions',
    'LifecycleState',
    'ResolvedVersion',

    # Configuration management
    'ClusterConfig',
    'ExtraOption',
    'DEFAULT_CONFIG_PATHS',
    'generate_artifacts',
    'generate_config',
    'new_kubelet_config',

    # Cluster operations
    'parse_kubernetes_version',
    'get_apiserver_status',
    'get_kubelet_status',

    # Errors
    'KubebootError',
    'InvalidVersion',
    'ConfigurationError',
    'TemplateRenderError',
    'FeatureGateParseError',
    'ExecError',
    'DownloadError',
    'ProbeError',
    'ClusterOperationError',
    'RetryExhaustedError',
]
