"""kubeadm and kubelet configuration rendering.

This module renders every file kubeboot stages onto a node using Jinja2
templates shipped in the ``templates`` directory. Rendering is pure: results
are returned as strings and the caller decides where to write them.

The set of templates is closed and selected through :class:`TemplateKind`:

- bootstrap-config-v1: kubeadm ``MasterConfiguration`` (before 1.12)
- bootstrap-config-v2: kubeadm ``InitConfiguration``/``ClusterConfiguration``
- kubelet-unit: systemd drop-in carrying the kubelet flags
- kubelet-service: the static kubelet unit
- hosts-file: /etc/hosts entries for the node itself
- cni-default: bridge CNI config used when no plugin is installed
- kubeadm-init: the ``kubeadm init`` command line
"""

import logging
import os
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    TemplateNotFound,
    TemplateSyntaxError,
    UndefinedError,
)

from . import constants
from .config import ClusterConfig
from .errors import ConfigurationError, TemplateRenderError
from .models import ConfigSchema, GeneratedArtifacts, KubeadmInitOptions, ResolvedVersion
from .runtime import get_cri_socket, set_container_runtime
from .versions import (
    KUBELET,
    extra_config_for_component,
    new_component_extra_args,
    parse_feature_args,
    parse_kubernetes_version,
)

logger = logging.getLogger("kubeboot.kubeadm.configuration")


class TemplateKind(str, Enum):
    """Templates known to the renderer, mapped to their file names."""
    BOOTSTRAP_CONFIG_V1 = 'kubeadm-v1alpha1.yaml.j2'
    BOOTSTRAP_CONFIG_V2 = 'kubeadm-v1alpha3.yaml.j2'
    KUBELET_UNIT = 'kubelet-dropin.conf.j2'
    KUBELET_SERVICE = 'kubelet.service.j2'
    HOSTS_FILE = 'hosts.j2'
    CNI_DEFAULT = 'cni-default.conf.j2'
    KUBEADM_INIT = 'kubeadm-init.sh.j2'


_SCHEMA_TEMPLATES = {
    ConfigSchema.V1ALPHA1: TemplateKind.BOOTSTRAP_CONFIG_V1,
    ConfigSchema.V1ALPHA3: TemplateKind.BOOTSTRAP_CONFIG_V2,
}


def get_template_path() -> str:
    """Get the absolute path to the templates directory."""
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), 'templates')


@lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(get_template_path()),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
        autoescape=False,
    )


def render_template(kind: TemplateKind, **context: Any) -> str:
    """Render one of the known templates.

    Raises:
        TemplateRenderError: If the template is missing, invalid, or needs an
            undefined variable
    """
    if not isinstance(kind, TemplateKind):
        raise TemplateRenderError(f"Unknown template kind: {kind!r}")
    try:
        template = _environment().get_template(kind.value)
        return template.render(**context)
    except TemplateNotFound as e:
        raise TemplateRenderError(f"Template not found for {kind.name}: {e}") from e
    except TemplateSyntaxError as e:
        raise TemplateRenderError(f"Template syntax error in {kind.name}: {e}") from e
    except UndefinedError as e:
        raise TemplateRenderError(f"Missing required variable in {kind.name}: {e}") from e
    except TemplateError as e:
        raise TemplateRenderError(f"Failed to render {kind.name}: {e}") from e


def convert_to_flags(opts: Dict[str, str]) -> str:
    """Render a flag map as ``--key=value`` pairs sorted by key."""
    return " ".join(f"--{k}={opts[k]}" for k in sorted(opts))


def generate_config(cfg: ClusterConfig) -> str:
    """Render the kubeadm configuration file.

    Args:
        cfg: Cluster configuration

    Returns:
        str: kubeadm config YAML in the schema valid for the requested version

    Raises:
        InvalidVersion: If the Kubernetes version is malformed
        FeatureGateParseError: If the feature gate string is malformed
        ConfigurationError: If component extra args cannot be built
        TemplateRenderError: If the template fails to render
    """
    version = parse_kubernetes_version(cfg.kubernetes_version)
    cri_socket = get_cri_socket(cfg.cri_socket, cfg.container_runtime)

    kubeadm_feature_args, component_feature_args = parse_feature_args(cfg.feature_gates)

    extra_args = new_component_extra_args(
        cfg.extra_options, version.version, component_feature_args
    )

    apiserver_port = cfg.node_port if cfg.node_port > 0 else constants.APISERVER_PORT

    return render_template(
        _SCHEMA_TEMPLATES[version.config_schema],
        cert_dir=constants.DEFAULT_CERT_PATH,
        service_cidr=cfg.service_cidr or constants.DEFAULT_SERVICE_CIDR,
        advertise_address=cfg.node_ip,
        apiserver_port=apiserver_port,
        kubernetes_version=cfg.kubernetes_version,
        etcd_data_dir=constants.DEFAULT_ETCD_DATA_DIR,
        node_name=cfg.node_name,
        cri_socket=cri_socket,
        extra_args=extra_args,
        feature_args=kubeadm_feature_args,
        no_taint_master=version.no_taint_master,
    )


def _kubelet_wants(runtime: str) -> str:
    if runtime in ("crio", "cri-o", "cri"):
        return "crio.service"
    if runtime == "containerd":
        return "containerd.service"
    return "docker.socket"


def new_kubelet_config(cfg: ClusterConfig) -> str:
    """Render the kubelet systemd drop-in for the requested version and runtime."""
    version = parse_kubernetes_version(cfg.kubernetes_version)

    try:
        extra_opts = extra_config_for_component(KUBELET, cfg.extra_options, version.version)
    except ConfigurationError as e:
        raise ConfigurationError(f"generating extra configuration for kubelet: {e}") from e

    extra_opts = set_container_runtime(extra_opts, cfg.container_runtime)

    if cfg.network_plugin:
        extra_opts["network-plugin"] = cfg.network_plugin

    _, kubelet_feature_args = parse_feature_args(cfg.feature_gates)

    return render_template(
        TemplateKind.KUBELET_UNIT,
        wants=_kubelet_wants(cfg.container_runtime),
        extra_options=convert_to_flags(extra_opts),
        feature_gates=kubelet_feature_args,
    )


def generate_hosts(cfg: ClusterConfig) -> str:
    """Render /etc/hosts so the node resolves its own name before DNS is up."""
    return render_template(TemplateKind.HOSTS_FILE, node_name=cfg.node_name, node_ip=cfg.node_ip)


def kubelet_service() -> str:
    return render_template(TemplateKind.KUBELET_SERVICE)


def default_cni_config() -> str:
    return render_template(TemplateKind.CNI_DEFAULT)


def kubeadm_init_options(version: ResolvedVersion, container_runtime: str) -> KubeadmInitOptions:
    """Select the preflight handling for `kubeadm init`."""
    preflights: List[str] = list(
        constants.ALTERNATE_RUNTIME_PREFLIGHTS if container_runtime else constants.PREFLIGHTS
    )
    return KubeadmInitOptions(
        config_file=constants.KUBEADM_CONFIG_FILE,
        skip_preflight_checks=version.skip_preflight_checks,
        preflights=preflights,
    )


def kubeadm_init_command(options: KubeadmInitOptions) -> str:
    """Render the `kubeadm init` command line."""
    return render_template(
        TemplateKind.KUBEADM_INIT,
        config_file=options.config_file,
        skip_preflight_checks=options.skip_preflight_checks,
        preflights=options.preflights,
    ).strip()


def generate_artifacts(cfg: ClusterConfig) -> GeneratedArtifacts:
    """Render every configuration file for one convergence pass."""
    try:
        kubeadm_cfg = generate_config(cfg)
    except ConfigurationError as e:
        raise type(e)(f"generating kubeadm cfg: {e}") from e

    try:
        kubelet_cfg = new_kubelet_config(cfg)
    except ConfigurationError as e:
        raise type(e)(f"generating kubelet config: {e}") from e

    try:
        etc_hosts = generate_hosts(cfg)
    except ConfigurationError as e:
        raise type(e)(f"generating hosts: {e}") from e

    return GeneratedArtifacts(
        kubeadm_config=kubeadm_cfg,
        kubelet_config=kubelet_cfg,
        kubelet_service=kubelet_service(),
        etc_hosts=etc_hosts,
        cni_config=default_cni_config() if cfg.enable_default_cni else None,
    )
