"""Well-known paths, ports and command strings used on the target host."""
import platform

# Files staged onto the node
KUBEADM_CONFIG_FILE = "/var/lib/kubeadm.yaml"
KUBELET_SERVICE_FILE = "/lib/systemd/system/kubelet.service"
KUBELET_SYSTEMD_CONF_FILE = "/etc/systemd/system/kubelet.service.d/10-kubeadm.conf"
ETC_HOSTS = "/etc/hosts"
DEFAULT_CNI_CONFIG_PATH = "/etc/cni/net.d/k8s.conf"
DEFAULT_RKT_NET_CONFIG_PATH = "/etc/rkt/net.d/k8s.conf"
BINARY_INSTALL_DIR = "/usr/bin"
ADDONS_DIR = "/etc/kubernetes/addons"
TEMP_LOAD_DIR = "/tmp"

# Cluster defaults
APISERVER_PORT = 8443
DEFAULT_CERT_PATH = "/var/lib/minikube/certs/"
DEFAULT_SERVICE_CIDR = "10.96.0.0/12"
DEFAULT_DNS_IP = "10.96.0.10"
DEFAULT_ETCD_DATA_DIR = "/data/minikube"
DEFAULT_NODE_NAME = "minikube"
DEFAULT_CLUSTER_DOMAIN = "cluster.local"

# Preflight checks ignored by `kubeadm init`
PREFLIGHTS = [
    "DirAvailable--etc-kubernetes-manifests",
    "DirAvailable--data-minikube",
    "Port-10250",
    "FileAvailable--etc-kubernetes-manifests-kube-scheduler.yaml",
    "FileAvailable--etc-kubernetes-manifests-kube-apiserver.yaml",
    "FileAvailable--etc-kubernetes-manifests-kube-controller-manager.yaml",
    "FileAvailable--etc-kubernetes-manifests-etcd.yaml",
    "Swap",
    "CRI",
]

# Additional checks skipped for any container runtime other than Docker
ALTERNATE_RUNTIME_PREFLIGHTS = PREFLIGHTS + [
    "Service-Docker",
    "Port-8443",
    "Port-10251",
    "Port-10252",
    "Port-2379",
]

DEFAULT_LEGACY_ADMISSION_CONTROLLERS = [
    "NamespaceLifecycle",
    "LimitRanger",
    "ServiceAccount",
    "Initializers",
    "DefaultStorageClass",
    "DefaultTolerationSeconds",
    "NodeRestriction",
    "MutatingAdmissionWebhook",
    "ValidatingAdmissionWebhook",
    "ResourceQuota",
]

DEFAULT_ADMISSION_CONTROLLERS = [
    "Initializers",
    "NamespaceLifecycle",
    "LimitRanger",
    "ServiceAccount",
    "DefaultStorageClass",
    "DefaultTolerationSeconds",
    "NodeRestriction",
    "MutatingAdmissionWebhook",
    "ValidatingAdmissionWebhook",
    "ResourceQuota",
]

# Host commands
MODPROBE_BR_NETFILTER = "sudo modprobe br_netfilter"
ENABLE_IP_FORWARD = "sudo sh -c \"echo '1' > /proc/sys/net/ipv4/ip_forward\""
KUBELET_STATUS_COMMAND = "sudo systemctl is-active kubelet"
START_KUBELET_COMMAND = """
sudo systemctl daemon-reload &&
sudo systemctl enable kubelet &&
sudo systemctl start kubelet
"""

# Live cluster objects
MASTER_TAINT = "node-role.kubernetes.io/master"
RBAC_NAME = "minikube-rbac"
KUBE_SYSTEM_NAMESPACE = "kube-system"
KUBE_PROXY_LABEL = "k8s-app=kube-proxy"

RELEASE_BASE_URL = "https://storage.googleapis.com/kubernetes-release/release"

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
}


def host_arch() -> str:
    """Return the release architecture name for the current machine."""
    machine = platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine)


def kubernetes_release_url(binary: str, version: str, arch: str = None) -> str:
    """Return the download URL of a Kubernetes release binary."""
    return f"{RELEASE_BASE_URL}/{version}/bin/linux/{arch or host_arch()}/{binary}"


def kubernetes_release_sha1_url(binary: str, version: str, arch: str = None) -> str:
    """Return the URL of the SHA-1 checksum published next to a release binary."""
    return kubernetes_release_url(binary, version, arch) + ".sha1"
