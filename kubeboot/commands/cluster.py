"""Cluster Lifecycle Commands.

This module provides commands for bootstrapping and maintaining a single-node
kubeadm cluster, either on this machine or on a node reached over SSH.

Options shared by every command (configuration and connection) are given to
the ``cluster`` group itself:

    kubeboot cluster --config cluster.yaml --ssh-host 10.0.0.5 update
    kubeboot cluster --config cluster.yaml --ssh-host 10.0.0.5 start
"""

import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from kubeboot.config import Config
from kubeboot.modules.kubeadm import ClusterActions, ClusterConfig, KubeadmBootstrapper, KubebootError
from kubeboot.modules.kubeadm.constants import APISERVER_PORT
from kubeboot.modules.kubeadm.models import LifecycleState
from kubeboot.modules.runner import CommandRunner, ExecRunner, SSHRunner

logger = logging.getLogger("kubeboot.commands.cluster")

app = typer.Typer(help="Single-node kubeadm cluster lifecycle commands")

console = Console()


@dataclass
class ClusterContext:
    """Options collected by the group callback for the subcommands."""
    config_path: Optional[str] = None
    overrides: Dict[str, Any] = field(default_factory=dict)
    ssh_host: Optional[str] = None
    ssh_user: str = "docker"
    ssh_key: Optional[str] = None
    ssh_port: int = 22


def _fail(message: str) -> None:
    typer.echo(f"❌ {message}", err=True)
    raise typer.Exit(1)


def load_cluster_config(ctx: ClusterContext) -> ClusterConfig:
    """Build the cluster configuration from the config file and CLI flags."""
    try:
        return ClusterConfig.load(ctx.config_path, **ctx.overrides)
    except FileNotFoundError as e:
        _fail(str(e))
    except (ValidationError, ValueError) as e:
        _fail(f"Invalid cluster configuration: {e}")


def create_runner(ctx: ClusterContext) -> CommandRunner:
    """Return a runner for the target node: SSH when a host is given, else local."""
    if ctx.ssh_host:
        return SSHRunner.connect(
            ctx.ssh_host,
            ctx.ssh_user,
            key_path=ctx.ssh_key,
            port=ctx.ssh_port,
            timeout=Config.SSH_TIMEOUT,
            command_timeout=Config.COMMAND_TIMEOUT,
        )
    logger.debug("No SSH host given, running commands locally")
    return ExecRunner(timeout=Config.COMMAND_TIMEOUT)


def create_bootstrapper(runner: CommandRunner, cfg: ClusterConfig) -> KubeadmBootstrapper:
    return KubeadmBootstrapper(runner, cluster_actions=ClusterActions(kubeconfig=cfg.kubeconfig))


@app.callback()
def cluster(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to cluster config YAML"),
    kubernetes_version: Optional[str] = typer.Option(
        None, "--kubernetes-version", help="Kubernetes version, e.g. v1.13.0"
    ),
    node_name: Optional[str] = typer.Option(None, "--node-name", help="Node name"),
    node_ip: Optional[str] = typer.Option(None, "--node-ip", help="IP the API server advertises"),
    container_runtime: Optional[str] = typer.Option(
        None, "--container-runtime", help="Container runtime (docker, containerd, crio)"
    ),
    extra_config: Optional[List[str]] = typer.Option(
        None, "--extra-config", help="Component flag as component.key=value (repeatable)"
    ),
    feature_gates: Optional[str] = typer.Option(
        None, "--feature-gates", help="Comma separated Name=bool feature gates"
    ),
    ssh_host: Optional[str] = typer.Option(None, "--ssh-host", help="Run against this host over SSH"),
    ssh_user: str = typer.Option("docker", "--ssh-user", help="SSH user"),
    ssh_key: Optional[str] = typer.Option(None, "--ssh-key", help="Path to SSH private key"),
    ssh_port: int = typer.Option(22, "--ssh-port", help="SSH port"),
):
    """Manage a single-node kubeadm cluster."""
    ctx.obj = ClusterContext(
        config_path=config,
        overrides={
            "kubernetes_version": kubernetes_version,
            "node_name": node_name,
            "node_ip": node_ip,
            "container_runtime": container_runtime,
            "extra_options": extra_config or None,
            "feature_gates": feature_gates,
        },
        ssh_host=ssh_host,
        ssh_user=ssh_user,
        ssh_key=ssh_key,
        ssh_port=ssh_port,
    )


@app.command("start")
def start_cluster(ctx: typer.Context):
    """Bootstrap the cluster with kubeadm init."""
    cfg = load_cluster_config(ctx.obj)
    typer.echo(f"🚀 Starting cluster {cfg.node_name} (Kubernetes {cfg.kubernetes_version})...")
    try:
        with create_runner(ctx.obj) as runner:
            create_bootstrapper(runner, cfg).start_cluster(cfg)
    except KubebootError as e:
        _fail(f"Error starting cluster: {e}")
    typer.echo(f"✅ Cluster {cfg.node_name} started")


@app.command("restart")
def restart_cluster(ctx: typer.Context):
    """Rebuild control-plane state on a node that was bootstrapped before."""
    cfg = load_cluster_config(ctx.obj)
    typer.echo(f"🔄 Restarting cluster {cfg.node_name}...")
    try:
        with create_runner(ctx.obj) as runner:
            create_bootstrapper(runner, cfg).restart_cluster(cfg)
    except KubebootError as e:
        _fail(f"Error restarting cluster: {e}")
    typer.echo(f"✅ Cluster {cfg.node_name} restarted")


@app.command("update")
def update_cluster(ctx: typer.Context):
    """Stage binaries and configuration on the node and start the kubelet."""
    cfg = load_cluster_config(ctx.obj)
    typer.echo(f"🔧 Updating cluster {cfg.node_name} to Kubernetes {cfg.kubernetes_version}...")
    try:
        with create_runner(ctx.obj) as runner:
            create_bootstrapper(runner, cfg).update_cluster(cfg)
    except KubebootError as e:
        _fail(f"Error updating cluster: {e}")
    typer.echo(f"✅ Cluster {cfg.node_name} updated")


@app.command("status")
def cluster_status(
    ctx: typer.Context,
    port: Optional[int] = typer.Option(None, "--port", help="API server port"),
):
    """Show kubelet and API server state."""
    cfg = load_cluster_config(ctx.obj)
    try:
        with create_runner(ctx.obj) as runner:
            bootstrapper = create_bootstrapper(runner, cfg)
            kubelet = bootstrapper.get_kubelet_status()
            apiserver = LifecycleState.STOPPED
            if cfg.node_ip:
                apiserver = bootstrapper.get_apiserver_status(cfg.node_ip, port or cfg.node_port or APISERVER_PORT)
    except KubebootError as e:
        _fail(f"Error getting cluster status: {e}")

    table = Table(title=f"Cluster {cfg.node_name}")
    table.add_column("Component")
    table.add_column("State")
    table.add_row("kubelet", kubelet.value)
    table.add_row("apiserver", apiserver.value)
    console.print(table)


@app.command("logs")
def cluster_logs(
    ctx: typer.Context,
    follow: bool = typer.Option(False, "--follow", "-f", help="Follow the kubelet journal"),
):
    """Print the kubelet journal."""
    cfg = load_cluster_config(ctx.obj)
    try:
        with create_runner(ctx.obj) as runner:
            create_bootstrapper(runner, cfg).get_cluster_logs_to(follow, sys.stdout)
    except KubebootError as e:
        _fail(f"Error getting cluster logs: {e}")
