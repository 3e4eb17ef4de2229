"""kubeboot - single-node Kubernetes bootstrapping with kubeadm."""

__version__ = "0.1.0"
