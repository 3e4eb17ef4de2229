"""Kubernetes version resolution.

Every version threshold that changes kubeadm's command line, config schema or
component flags lives in this module. Callers read the derived flags on
:class:`ResolvedVersion` instead of comparing against literal versions.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from semver import Version

from . import constants
from .config import ExtraOption
from .errors import ConfigurationError, FeatureGateParseError, InvalidVersion
from .models import ComponentExtraArgs, ConfigSchema, ResolvedVersion

logger = logging.getLogger("kubeboot.kubeadm.versions")

# Components
APISERVER = "apiserver"
CONTROLLER_MANAGER = "controller-manager"
SCHEDULER = "scheduler"
KUBELET = "kubelet"
KUBEADM = "kubeadm"

# The kubelet is configured through systemd, not through the kubeadm config.
COMPONENT_TO_KUBEADM_CONFIG_KEY = {
    APISERVER: "apiServer",
    CONTROLLER_MANAGER: "controllerManager",
    SCHEDULER: "scheduler",
    KUBEADM: "kubeadm",
    KUBELET: "",
}

# Feature gates understood by kubeadm itself; everything else goes to components.
KUBEADM_FEATURE_GATES = frozenset([
    "SelfHosting",
    "StoreCertsInSecrets",
    "HighAvailability",
    "CoreDNS",
    "DynamicKubeletConfig",
    "Auditing",
])

_TRUE_VALUES = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_VALUES = {"0", "f", "F", "FALSE", "false", "False"}


def parse_semver(raw: str) -> Version:
    """Parse a semantic version, with or without a leading ``v``.

    Build metadata is accepted and ignored for ordering.

    Raises:
        InvalidVersion: If ``raw`` is not a semantic version
    """
    if not isinstance(raw, str):
        raise InvalidVersion(f"Invalid Kubernetes version: {raw!r}")
    text = raw.strip()
    if text.startswith("v"):
        text = text[1:]
    try:
        return Version.parse(text).replace(build=None)
    except ValueError as e:
        raise InvalidVersion(f"Invalid Kubernetes version: {raw!r}") from e


# Thresholds
SKIP_PREFLIGHT_MIN = parse_semver("1.9.0-alpha.0")
NO_TAINT_MASTER_MIN = parse_semver("1.10.0-alpha.0")
CONFIG_V1ALPHA3_MIN = parse_semver("1.12.0")
INIT_PHASE_MIN = parse_semver("1.13.0")


def version_is_between(
    version: Version,
    gte: Optional[Version] = None,
    lte: Optional[Version] = None
) -> bool:
    """Return True if ``gte <= version <= lte``; an unset bound is open."""
    if gte is not None and version < gte:
        return False
    if lte is not None and version > lte:
        return False
    return True


def parse_kubernetes_version(raw: str) -> ResolvedVersion:
    """Parse a Kubernetes version and derive the kubeadm behaviour for it.

    Args:
        raw: Version string such as ``v1.13.0`` or ``1.10.0-alpha.1``

    Returns:
        ResolvedVersion: Parsed version with capability flags

    Raises:
        InvalidVersion: If the version is malformed
    """
    v = parse_semver(raw)
    init_phase = v >= INIT_PHASE_MIN
    no_taint_master = v >= NO_TAINT_MASTER_MIN
    return ResolvedVersion(
        raw=raw,
        version=v,
        phase="init" if init_phase else "alpha",
        control_plane_phase="control-plane" if init_phase else "controlplane",
        config_schema=ConfigSchema.V1ALPHA3 if v >= CONFIG_V1ALPHA3_MIN else ConfigSchema.V1ALPHA1,
        no_taint_master=no_taint_master,
        needs_unmark_master=not no_taint_master,
        skip_preflight_checks=version_is_between(v, SKIP_PREFLIGHT_MIN, None),
    )


@dataclass(frozen=True)
class VersionedExtraOption:
    """A component flag that only applies within a version range."""
    option: ExtraOption
    greater_than_or_equal: Optional[Version] = None
    less_than_or_equal: Optional[Version] = None


def _unversioned(component: str, key: str, value: str) -> VersionedExtraOption:
    return VersionedExtraOption(ExtraOption(component=component, key=key, value=value))


VERSION_SPECIFIC_OPTS: List[VersionedExtraOption] = [
    VersionedExtraOption(
        ExtraOption(component=KUBELET, key="fail-swap-on", value="false"),
        greater_than_or_equal=parse_semver("1.8.0-alpha.0"),
    ),
    # Kubeconfig args
    _unversioned(KUBELET, "kubeconfig", "/etc/kubernetes/kubelet.conf"),
    _unversioned(KUBELET, "bootstrap-kubeconfig", "/etc/kubernetes/bootstrap-kubelet.conf"),
    VersionedExtraOption(
        ExtraOption(component=KUBELET, key="require-kubeconfig", value="true"),
        less_than_or_equal=parse_semver("1.9.10"),
    ),
    _unversioned(KUBELET, "hostname-override", constants.DEFAULT_NODE_NAME),
    # System pods args
    _unversioned(KUBELET, "pod-manifest-path", "/etc/kubernetes/manifests"),
    _unversioned(KUBELET, "allow-privileged", "true"),
    # Network args
    _unversioned(KUBELET, "cluster-dns", constants.DEFAULT_DNS_IP),
    _unversioned(KUBELET, "cluster-domain", constants.DEFAULT_CLUSTER_DOMAIN),
    # Auth args
    _unversioned(KUBELET, "authorization-mode", "Webhook"),
    _unversioned(KUBELET, "client-ca-file", constants.DEFAULT_CERT_PATH + "ca.crt"),
    # Cgroup args
    _unversioned(KUBELET, "cgroup-driver", "cgroupfs"),
    VersionedExtraOption(
        ExtraOption(
            component=APISERVER,
            key="admission-control",
            value=",".join(constants.DEFAULT_LEGACY_ADMISSION_CONTROLLERS),
        ),
        greater_than_or_equal=parse_semver("1.9.0-alpha.0"),
        less_than_or_equal=parse_semver("1.10.1000"),
    ),
    VersionedExtraOption(
        ExtraOption(
            component=APISERVER,
            key="enable-admission-plugins",
            value=",".join(constants.DEFAULT_ADMISSION_CONTROLLERS),
        ),
        greater_than_or_equal=parse_semver("1.11.0"),
    ),
    VersionedExtraOption(
        ExtraOption(component=CONTROLLER_MANAGER, key="leader-elect", value="false"),
        greater_than_or_equal=parse_semver("1.9.0-alpha.0"),
    ),
    VersionedExtraOption(
        ExtraOption(component=SCHEDULER, key="leader-elect", value="false"),
        greater_than_or_equal=parse_semver("1.9.0-alpha.0"),
    ),
]


def default_options_for_component(component: str, version: Version) -> Dict[str, str]:
    """Return the version-specific default flags for a component.

    Raises:
        ConfigurationError: If two defaults set the same flag for this version
    """
    versioned_opts: Dict[str, str] = {}
    for opts in VERSION_SPECIFIC_OPTS:
        if opts.option.component != component:
            continue
        if not version_is_between(version, opts.greater_than_or_equal, opts.less_than_or_equal):
            continue
        key = opts.option.key
        if key in versioned_opts:
            raise ConfigurationError(
                f"Flag {key}={opts.option.value} already set {key}={versioned_opts[key]}"
            )
        versioned_opts[key] = opts.option.value
    return versioned_opts


def extra_config_for_component(
    component: str,
    opts: Iterable[ExtraOption],
    version: Version
) -> Dict[str, str]:
    """Merge user options for a component over its version defaults."""
    versioned_opts = default_options_for_component(component, version)
    for opt in opts:
        if opt.component != component:
            continue
        if opt.key in versioned_opts:
            logger.info(
                "Overwriting default %s=%s with user provided %s=%s for component %s",
                opt.key, versioned_opts[opt.key], opt.key, opt.value, component
            )
        versioned_opts[opt.key] = opt.value
    return versioned_opts


def _parse_bool(value: str) -> bool:
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean {value!r}")


def parse_feature_args(feature_gates: str) -> Tuple[Dict[str, bool], str]:
    """Split a feature gate string between kubeadm and the components.

    Args:
        feature_gates: Comma separated ``Name=bool`` pairs

    Returns:
        tuple: (kubeadm feature gates, component feature gate string)

    Raises:
        FeatureGateParseError: If a pair has no value or a kubeadm gate is not a boolean
    """
    kubeadm_feature_args: Dict[str, bool] = {}
    component_feature_args: List[str] = []
    for pair in (feature_gates or "").split(","):
        if not pair:
            continue
        name, sep, value = pair.partition("=")
        if not sep:
            raise FeatureGateParseError(f'missing value for key "{pair}"')
        name = name.strip()
        value = value.strip()
        if name not in KUBEADM_FEATURE_GATES:
            component_feature_args.append(pair)
            continue
        try:
            kubeadm_feature_args[name] = _parse_bool(value)
        except ValueError as e:
            raise FeatureGateParseError(f'failed to convert bool value "{value}"') from e
    return kubeadm_feature_args, ",".join(component_feature_args)


def new_component_extra_args(
    opts: Iterable[ExtraOption],
    version: Version,
    feature_gates: str
) -> List[ComponentExtraArgs]:
    """Build the per-component extra args section of the kubeadm config.

    Raises:
        ConfigurationError: If an option names an unknown component
    """
    opts = list(opts)
    for opt in opts:
        if opt.component not in COMPONENT_TO_KUBEADM_CONFIG_KEY:
            raise ConfigurationError(
                f"Unknown component {opt.component}. Valid components are "
                f"{sorted(COMPONENT_TO_KUBEADM_CONFIG_KEY)}"
            )

    extra_args: List[ComponentExtraArgs] = []
    for component in sorted(COMPONENT_TO_KUBEADM_CONFIG_KEY):
        config_key = COMPONENT_TO_KUBEADM_CONFIG_KEY[component]
        if not config_key:
            continue
        try:
            extra_config = extra_config_for_component(component, opts, version)
        except ConfigurationError as e:
            raise ConfigurationError(f"getting kubeadm extra args for {component}: {e}") from e
        if feature_gates:
            extra_config["feature-gates"] = feature_gates
        if extra_config:
            extra_args.append(ComponentExtraArgs(component=config_key, options=extra_config))
    return extra_args


def kubeadm_cached_images(kubernetes_version: str) -> List[str]:
    """Return the images kubeadm pulls for a given Kubernetes version."""
    v = parse_semver(kubernetes_version)
    images = [
        f"k8s.gcr.io/kube-proxy-amd64:{kubernetes_version}",
        f"k8s.gcr.io/kube-scheduler-amd64:{kubernetes_version}",
        f"k8s.gcr.io/kube-controller-manager-amd64:{kubernetes_version}",
        f"k8s.gcr.io/kube-apiserver-amd64:{kubernetes_version}",
    ]

    if version_is_between(v, parse_semver("1.12.0-alpha.0"), None):
        images += [
            "k8s.gcr.io/pause:3.1",
            "k8s.gcr.io/etcd-amd64:3.2.24",
            "k8s.gcr.io/coredns:1.2.2",
        ]
    elif version_is_between(v, parse_semver("1.11.0-alpha.0"), parse_semver("1.11.1000")):
        images += [
            "k8s.gcr.io/pause-amd64:3.1",
            "k8s.gcr.io/etcd-amd64:3.2.18",
            "k8s.gcr.io/coredns:1.1.3",
        ]
    elif version_is_between(v, parse_semver("1.10.0-alpha.0"), parse_semver("1.10.1000")):
        images += [
            "k8s.gcr.io/pause-amd64:3.1",
            "k8s.gcr.io/etcd-amd64:3.1.12",
            "k8s.gcr.io/k8s-dns-kube-dns-amd64:1.14.8",
            "k8s.gcr.io/k8s-dns-dnsmasq-nanny-amd64:1.14.8",
            "k8s.gcr.io/k8s-dns-sidecar-amd64:1.14.8",
        ]
    elif version_is_between(v, parse_semver("1.9.0-alpha.0"), parse_semver("1.9.1000")):
        images += [
            "k8s.gcr.io/pause-amd64:3.0",
            "k8s.gcr.io/etcd-amd64:3.1.10",
            "k8s.gcr.io/k8s-dns-kube-dns-amd64:1.14.7",
            "k8s.gcr.io/k8s-dns-dnsmasq-nanny-amd64:1.14.7",
            "k8s.gcr.io/k8s-dns-sidecar-amd64:1.14.7",
        ]
    elif version_is_between(v, parse_semver("1.8.0-alpha.0"), parse_semver("1.8.1000")):
        images += [
            "k8s.gcr.io/pause-amd64:3.0",
            "k8s.gcr.io/etcd-amd64:3.0.17",
            "k8s.gcr.io/k8s-dns-kube-dns-amd64:1.14.5",
            "k8s.gcr.io/k8s-dns-dnsmasq-nanny-amd64:1.14.5",
            "k8s.gcr.io/k8s-dns-sidecar-amd64:1.14.5",
        ]

    images += [
        "k8s.gcr.io/kubernetes-dashboard-amd64:v1.10.0",
        "k8s.gcr.io/kube-addon-manager:v8.6",
        "gcr.io/k8s-minikube/storage-provisioner:v1.8.1",
    ]
    return images
