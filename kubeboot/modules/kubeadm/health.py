"""Kubelet and API server status probes."""
import logging
import warnings
from typing import Optional

import requests
import urllib3

from kubeboot.config import Config

from . import constants
from .errors import ExecError, ProbeError
from .models import LifecycleState

logger = logging.getLogger("kubeboot.kubeadm.health")

_KUBELET_STATES = {
    "active": LifecycleState.RUNNING,
    "inactive": LifecycleState.STOPPED,
    "activating": LifecycleState.STARTING,
}


def kubelet_state_from_output(output: str) -> LifecycleState:
    """Map `systemctl is-active` output to a lifecycle state."""
    return _KUBELET_STATES.get(output.strip(), LifecycleState.ERROR)


def get_kubelet_status(runner) -> LifecycleState:
    """Get the state of the kubelet service on the node.

    Args:
        runner: CommandRunner for the node

    Returns:
        LifecycleState: Running, Stopped, Starting or Error

    Raises:
        ProbeError: If the status query could not be run at all
    """
    try:
        output = runner.combined_output(constants.KUBELET_STATUS_COMMAND)
    except ExecError as e:
        # systemctl exits non-zero for every state but active
        if e.exit_status is None:
            raise ProbeError(f"getting kubelet status: {e}") from e
        output = e.output
    return kubelet_state_from_output(output)


def get_apiserver_status(
    ip: str,
    port: int = constants.APISERVER_PORT,
    timeout: Optional[float] = None,
    session: Optional[requests.Session] = None
) -> LifecycleState:
    """Get the state of the API server from its /healthz endpoint.

    The cluster CA is not trusted by the caller yet, so certificate
    verification is disabled. An unreachable server is reported as Stopped.
    """
    url = f"https://{ip}:{port}/healthz"
    http = session or requests
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", urllib3.exceptions.InsecureRequestWarning)
            response = http.get(url, verify=False, timeout=timeout or Config.HEALTH_TIMEOUT)
    except requests.RequestException as e:
        logger.info(f"{url} unreachable: {e}")
        return LifecycleState.STOPPED

    logger.info(f"{url} response: {response.status_code}")
    if response.status_code != 200:
        return LifecycleState.ERROR
    return LifecycleState.RUNNING
