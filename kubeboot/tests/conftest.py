import io

import pytest

from kubeboot.modules.kubeadm.errors import ExecError
from kubeboot.modules.runner import CommandRunner


class FakeCommandRunner(CommandRunner):
    """Records commands and copies instead of touching a host.

    ``outputs`` maps a command to the output it returns; ``failures`` maps a
    command to the ExecError it raises.
    """

    def __init__(self, outputs=None, failures=None):
        self.commands = []
        self.copied = []
        self.outputs = dict(outputs or {})
        self.failures = dict(failures or {})

    def combined_output(self, cmd):
        self.commands.append(cmd)
        if cmd in self.failures:
            raise self.failures[cmd]
        return self.outputs.get(cmd, "")

    def combined_output_to(self, cmd, out):
        out.write(self.combined_output(cmd))

    def copy(self, f):
        self.copied.append((f.target_path, f.permissions, f.read()))

    def copied_paths(self):
        return [path for path, _, _ in self.copied]


class FakeClusterActions:
    """Cluster actions that can be told to fail a number of times first."""

    def __init__(self, unmark_failures=0, elevate_failures=0, restart_error=None):
        self.calls = []
        self.unmark_failures = unmark_failures
        self.elevate_failures = elevate_failures
        self.restart_error = restart_error

    def unmark_master(self, node_name):
        self.calls.append(("unmark_master", node_name))
        if self.unmark_failures:
            self.unmark_failures -= 1
            raise RuntimeError("node not registered yet")

    def elevate_kube_system_privileges(self):
        self.calls.append(("elevate_kube_system_privileges",))
        if self.elevate_failures:
            self.elevate_failures -= 1
            raise RuntimeError("apiserver not ready")

    def restart_kube_proxy(self, cfg):
        self.calls.append(("restart_kube_proxy", cfg.node_ip))
        if self.restart_error:
            raise self.restart_error


class FakeBinaryCache:
    """Binary cache backed by files written to a temporary directory."""

    def __init__(self, root, error=None):
        self.root = root
        self.error = error
        self.requests = []

    def fetch_binaries(self, binaries, version):
        self.requests.append((tuple(binaries), version))
        if self.error:
            raise self.error
        paths = {}
        for binary in binaries:
            path = self.root / version / binary
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(f"{binary}-{version}".encode())
            paths[binary] = str(path)
        return paths


def exec_error(cmd, output="", exit_status=1):
    return ExecError(f"command failed: {cmd}", command=cmd, output=output, exit_status=exit_status)


@pytest.fixture
def runner():
    return FakeCommandRunner()


@pytest.fixture
def actions():
    return FakeClusterActions()


@pytest.fixture
def binary_cache(tmp_path):
    return FakeBinaryCache(tmp_path / "cache")


@pytest.fixture
def out():
    return io.StringIO()
