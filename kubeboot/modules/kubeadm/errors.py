"""Exceptions raised by the kubeadm bootstrapper."""
from typing import Optional


class KubebootError(Exception):
    """Base class for all kubeboot errors."""
    pass


class InvalidVersion(KubebootError, ValueError):
    """Raised when a Kubernetes version string cannot be parsed."""
    pass


class ConfigurationError(KubebootError):
    """Raised when there is an error generating the configuration."""
    pass


class TemplateRenderError(ConfigurationError):
    """Raised when a configuration template fails to render."""
    pass


class FeatureGateParseError(ConfigurationError):
    """Raised when a feature gate string is malformed."""
    pass


class ExecError(KubebootError):
    """Raised when a command fails or cannot be run on the target host.

    ``exit_status`` is None when the command never produced one, i.e. the
    transport itself failed.
    """

    def __init__(self, message: str, command: str = "", output: str = "",
                 exit_status: Optional[int] = None):
        super().__init__(message)
        self.command = command
        self.output = output
        self.exit_status = exit_status


class DownloadError(KubebootError):
    """Raised when a binary cannot be downloaded or fails verification."""

    def __init__(self, message: str, binary: str = "", version: str = ""):
        super().__init__(message)
        self.binary = binary
        self.version = version


class ProbeError(KubebootError):
    """Raised when a status probe cannot reach the host."""
    pass


class ClusterOperationError(KubebootError):
    """Raised when a lifecycle operation fails at a given stage."""
    pass


class RetryExhaustedError(KubebootError):
    """Raised when an action has not succeeded within its attempt budget."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts
