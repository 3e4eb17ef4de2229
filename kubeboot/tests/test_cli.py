import pytest
from typer.testing import CliRunner

from kubeboot.cli import app
from kubeboot.commands import cluster as cluster_commands
from kubeboot.modules.kubeadm import constants
from kubeboot.modules.kubeadm.errors import ClusterOperationError

from conftest import FakeCommandRunner

cli = CliRunner()


class RecordingBootstrapper:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def _record(self, name, cfg):
        self.calls.append((name, cfg))
        if self.error:
            raise self.error

    def start_cluster(self, cfg):
        self._record("start", cfg)

    def restart_cluster(self, cfg):
        self._record("restart", cfg)

    def update_cluster(self, cfg):
        self._record("update", cfg)


@pytest.fixture
def fake_node(monkeypatch):
    runner = FakeCommandRunner(outputs={constants.KUBELET_STATUS_COMMAND: "active\n"})
    monkeypatch.setattr(cluster_commands, "create_runner", lambda ctx: runner)
    return runner


@pytest.fixture
def recorder(monkeypatch, fake_node):
    bootstrapper = RecordingBootstrapper()
    monkeypatch.setattr(cluster_commands, "create_bootstrapper", lambda runner, cfg: bootstrapper)
    return bootstrapper


def test_help():
    result = cli.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "cluster" in result.output


def test_cluster_commands_exist():
    result = cli.invoke(app, ["cluster", "--help"])
    for command in ("start", "restart", "update", "status", "logs"):
        assert command in result.output


def test_logs_help():
    result = cli.invoke(app, ["cluster", "logs", "--help"])
    assert "--follow" in result.output


def test_start_passes_flags_through(recorder, tmp_path):
    config = tmp_path / "cluster.yaml"
    config.write_text("node_ip: 10.0.0.5\nkubernetes_version: v1.12.0\n")

    result = cli.invoke(app, [
        "cluster", "--config", str(config),
        "--kubernetes-version", "v1.13.0",
        "--extra-config", "kubelet.max-pods=50",
        "--extra-config", "apiserver.v=2",
        "start",
    ])

    assert result.exit_code == 0, result.output
    name, cfg = recorder.calls[0]
    assert name == "start"
    assert cfg.node_ip == "10.0.0.5"
    assert cfg.kubernetes_version == "v1.13.0"
    assert [str(o) for o in cfg.extra_options] == ["kubelet.max-pods=50", "apiserver.v=2"]
    assert "started" in result.output


@pytest.mark.parametrize("command", ["restart", "update"])
def test_lifecycle_commands(recorder, command):
    result = cli.invoke(app, ["cluster", command])
    assert result.exit_code == 0, result.output
    assert recorder.calls[0][0] == command


def test_operation_error_exits_1(monkeypatch, fake_node):
    bootstrapper = RecordingBootstrapper(error=ClusterOperationError("kubeadm init: boom"))
    monkeypatch.setattr(cluster_commands, "create_bootstrapper", lambda runner, cfg: bootstrapper)

    result = cli.invoke(app, ["cluster", "start"])

    assert result.exit_code == 1
    assert "kubeadm init: boom" in result.output


def test_missing_config_file_exits_1(tmp_path):
    result = cli.invoke(app, ["cluster", "--config", str(tmp_path / "nope.yaml"), "update"])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_invalid_extra_config_exits_1(recorder):
    result = cli.invoke(app, ["cluster", "--extra-config", "bogus", "update"])
    assert result.exit_code == 1
    assert "Invalid cluster configuration" in result.output
    assert recorder.calls == []


def test_status_without_node_ip(fake_node):
    result = cli.invoke(app, ["cluster", "status"])
    assert result.exit_code == 0, result.output
    assert "Running" in result.output
    assert "Stopped" in result.output
    assert fake_node.commands == [constants.KUBELET_STATUS_COMMAND]


def test_logs(monkeypatch):
    runner = FakeCommandRunner(outputs={"sudo journalctl -f -u kubelet": "kubelet log line\n"})
    monkeypatch.setattr(cluster_commands, "create_runner", lambda ctx: runner)

    result = cli.invoke(app, ["cluster", "logs", "--follow"])

    assert result.exit_code == 0, result.output
    assert "kubelet log line" in result.output
