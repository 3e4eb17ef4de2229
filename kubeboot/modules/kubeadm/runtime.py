"""Container runtime flag and CRI socket resolution."""
import logging
from typing import Dict

logger = logging.getLogger("kubeboot.kubeadm.runtime")

CRIO_SOCKET = "/var/run/crio/crio.sock"
CONTAINERD_SOCKET = "/run/containerd/containerd.sock"

_RUNTIME_DEFAULTS = {
    "crio": {
        "container-runtime": "remote",
        "container-runtime-endpoint": CRIO_SOCKET,
        "image-service-endpoint": CRIO_SOCKET,
        "runtime-request-timeout": "15m",
    },
    "containerd": {
        "container-runtime": "remote",
        "container-runtime-endpoint": f"unix://{CONTAINERD_SOCKET}",
        "image-service-endpoint": f"unix://{CONTAINERD_SOCKET}",
        "runtime-request-timeout": "15m",
    },
}
_RUNTIME_DEFAULTS["cri-o"] = _RUNTIME_DEFAULTS["crio"]

_CRI_SOCKETS = {
    "crio": CRIO_SOCKET,
    "cri-o": CRIO_SOCKET,
    "containerd": CONTAINERD_SOCKET,
}


def set_container_runtime(extra_options: Dict[str, str], runtime: str) -> Dict[str, str]:
    """Add container runtime flags unless the user already chose one.

    Args:
        extra_options: Kubelet flags gathered so far
        runtime: Runtime selector (``crio``, ``cri-o``, ``containerd`` or any other name)

    Returns:
        dict: A new flag map; ``extra_options`` itself is left untouched
    """
    opts = dict(extra_options)
    if "container-runtime" in opts:
        logger.info("Container runtime already set through extra options, ignoring --container-runtime flag.")
        return opts

    if not runtime:
        logger.info("Container runtime flag provided with no value, using defaults.")
        return opts

    defaults = _RUNTIME_DEFAULTS.get(runtime)
    if defaults:
        opts.update(defaults)
    else:
        opts["container-runtime"] = runtime
    return opts


def get_cri_socket(path: str, runtime: str) -> str:
    """Return the CRI socket for kubeadm: the explicit path, else the runtime default."""
    if path:
        logger.info("Container runtime interface socket provided, using path.")
        return path
    return _CRI_SOCKETS.get(runtime, "")
