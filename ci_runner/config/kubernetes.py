"""Kubernetes-specific configuration.

This module provides configuration for running jobs as build pods,
including cluster connection settings and resource limits.
"""

from dataclasses import dataclass


@dataclass
class KubernetesConfig:
    """Kubernetes executor configuration."""

    # Cluster API endpoint (empty: in-cluster auto-discovery)
    host: str = ""

    # File based auth: all three must be set together
    cert_file: str = ""
    key_file: str = ""
    ca_file: str = ""

    # Namespace for build pods (empty: service account namespace, then POD_NAMESPACE)
    namespace: str = ""

    # Build container image used when the job does not name one
    image: str = ""

    # Resource limits for the build container, quantity notation ("500m", "1Gi").
    # Empty means no limit.
    cpus: str = ""
    memory: str = ""

    # Image pull policy (Always, IfNotPresent, Never)
    image_pull_policy: str = "IfNotPresent"

    # Interval between pod status polls
    poll_interval_seconds: float = 1.0

    # Deadline for a build pod to reach Running (0 disables the deadline)
    poll_timeout_seconds: float = 180.0

    @property
    def uses_file_auth(self) -> bool:
        """Whether client certificate based auth is configured."""
        return bool(self.cert_file)
