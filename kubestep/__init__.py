"""KubeStep: Kubernetes-aware wrappers around deployment scripts."""

__version__ = "0.3.0"
