"""Kubernetes-based build services.

This module provides cluster connection resolution, build pod resources
and the pod lifecycle waiter.
"""

from .client import create_build_pod_manifest, get_kube_client, get_kube_client_config
from .manager import KubernetesManager
from .resources import limits, to_env_vars
from .waiter import wait_for_pod_running

__all__ = [
    "get_kube_client_config",
    "get_kube_client",
    "create_build_pod_manifest",
    "limits",
    "to_env_vars",
    "wait_for_pod_running",
    "KubernetesManager",
]
