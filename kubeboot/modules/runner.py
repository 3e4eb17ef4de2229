"""
Command execution on the node, either locally or over SSH.
"""
import logging
import os
import shlex
import subprocess
from typing import IO, Optional

import paramiko

from kubeboot.modules.kubeadm.assets import CopyableFile
from kubeboot.modules.kubeadm.errors import ExecError

logger = logging.getLogger("kubeboot.runner")


class CommandRunner:
    """Runs shell commands and copies files on the node.

    Every method raises :class:`ExecError` on failure. ``ExecError.exit_status``
    is set when the command ran and exited non-zero, and left as None when it
    could not be run at all.
    """

    def run(self, cmd: str) -> None:
        """Run a command, discarding its output."""
        self.combined_output(cmd)

    def combined_output(self, cmd: str) -> str:
        """Run a command and return its interleaved stdout and stderr."""
        raise NotImplementedError

    def combined_output_to(self, cmd: str, out: IO[str]) -> None:
        """Run a command, streaming its output to ``out`` as it arrives."""
        raise NotImplementedError

    def copy(self, f: CopyableFile) -> None:
        """Copy a file onto the node."""
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def copy_command(f: CopyableFile) -> str:
    """Shell command that writes stdin to the file's target with its permissions."""
    target_dir = shlex.quote(f.target_dir)
    target_path = shlex.quote(f.target_path)
    return (
        f"sudo mkdir -p {target_dir} && "
        f"sudo tee {target_path} > /dev/null && "
        f"sudo chmod {f.permissions} {target_path}"
    )


def _failed(cmd: str, output: str, exit_status: int) -> ExecError:
    return ExecError(
        f"command failed with exit status {exit_status}: {cmd.strip()}",
        command=cmd,
        output=output,
        exit_status=exit_status,
    )


class ExecRunner(CommandRunner):
    """Runs commands on the local host, for nodes that are the machine itself."""

    def __init__(self, timeout: Optional[int] = None):
        self.timeout = timeout

    def combined_output(self, cmd: str) -> str:
        logger.debug(f"Run: {cmd.strip()}")
        try:
            result = subprocess.run(
                ["/bin/bash", "-c", cmd],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired as e:
            raise ExecError(f"command timed out after {self.timeout}s: {cmd.strip()}", command=cmd) from e
        except OSError as e:
            raise ExecError(f"unable to run {cmd.strip()}: {e}", command=cmd) from e

        if result.returncode != 0:
            raise _failed(cmd, result.stdout, result.returncode)
        return result.stdout

    def combined_output_to(self, cmd: str, out: IO[str]) -> None:
        logger.debug(f"Run (streaming): {cmd.strip()}")
        try:
            proc = subprocess.Popen(
                ["/bin/bash", "-c", cmd],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True
            )
        except OSError as e:
            raise ExecError(f"unable to run {cmd.strip()}: {e}", command=cmd) from e

        with proc:
            for line in proc.stdout:
                out.write(line)
            returncode = proc.wait()
        if returncode != 0:
            raise _failed(cmd, "", returncode)

    def copy(self, f: CopyableFile) -> None:
        logger.debug(f"Copying {f!r}")
        cmd = copy_command(f)
        try:
            result = subprocess.run(
                ["/bin/bash", "-c", cmd],
                input=f.read(),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.timeout
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            raise ExecError(f"copying {f.target_path}: {e}", command=cmd) from e

        if result.returncode != 0:
            raise _failed(cmd, result.stdout.decode('utf-8', 'replace'), result.returncode)


class SSHRunner(CommandRunner):
    """Runs commands on a remote node through a paramiko SSH client."""

    def __init__(self, client: paramiko.SSHClient, timeout: Optional[int] = None):
        self.client = client
        self.timeout = timeout

    @classmethod
    def connect(
        cls,
        host: str,
        username: str,
        key_path: Optional[str] = None,
        port: int = 22,
        timeout: int = 30,
        command_timeout: Optional[int] = None
    ) -> 'SSHRunner':
        """Open an SSH connection to the node.

        Raises:
            ExecError: If the connection cannot be established
        """
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        logger.info(f"Connecting to {username}@{host}:{port}")
        try:
            client.connect(
                hostname=host,
                port=port,
                username=username,
                key_filename=os.path.expanduser(key_path) if key_path else None,
                timeout=timeout,
                look_for_keys=key_path is None,
            )
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise ExecError(f"connecting to {username}@{host}:{port}: {e}") from e
        return cls(client, timeout=command_timeout)

    def _open_channel(self, cmd: str) -> paramiko.Channel:
        transport = self.client.get_transport()
        if transport is None or not transport.is_active():
            raise ExecError("SSH transport is not active", command=cmd)
        channel = transport.open_session(timeout=self.timeout)
        try:
            channel.set_combine_stderr(True)
            if self.timeout:
                channel.settimeout(self.timeout)
            channel.exec_command(cmd)
        except Exception:
            channel.close()
            raise
        return channel

    def combined_output(self, cmd: str) -> str:
        logger.debug(f"Run: {cmd.strip()}")
        try:
            channel = self._open_channel(cmd)
            with channel:
                output = channel.makefile('rb').read().decode('utf-8', 'replace')
                exit_status = channel.recv_exit_status()
        except (paramiko.SSHException, OSError) as e:
            raise ExecError(f"running {cmd.strip()} over ssh: {e}", command=cmd) from e

        if exit_status != 0:
            raise _failed(cmd, output, exit_status)
        return output

    def combined_output_to(self, cmd: str, out: IO[str]) -> None:
        logger.debug(f"Run (streaming): {cmd.strip()}")
        try:
            channel = self._open_channel(cmd)
            with channel:
                for line in channel.makefile('rb'):
                    out.write(line.decode('utf-8', 'replace'))
                exit_status = channel.recv_exit_status()
        except (paramiko.SSHException, OSError) as e:
            raise ExecError(f"running {cmd.strip()} over ssh: {e}", command=cmd) from e

        if exit_status != 0:
            raise _failed(cmd, "", exit_status)

    def copy(self, f: CopyableFile) -> None:
        logger.debug(f"Copying {f!r}")
        cmd = copy_command(f)
        try:
            channel = self._open_channel(cmd)
            with channel:
                channel.sendall(f.read())
                channel.shutdown_write()
                output = channel.makefile('rb').read().decode('utf-8', 'replace')
                exit_status = channel.recv_exit_status()
        except (paramiko.SSHException, OSError) as e:
            raise ExecError(f"copying {f.target_path} over ssh: {e}", command=cmd) from e

        if exit_status != 0:
            raise _failed(cmd, output, exit_status)

    def close(self) -> None:
        self.client.close()
