"""Pipeline manifests, policies, image helpers and secret masking for a Kubernetes build runner."""

__version__ = "0.1.0"