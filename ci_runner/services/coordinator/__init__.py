"""Coordinator API services.

JSON over HTTP(S) client with trust-on-first-use TLS, and the coordinator
operations built on it.
"""

from .client import CoordinatorClient, fix_ci_url
from .network import CoordinatorNetwork, persist_ca_chain

__all__ = [
    "CoordinatorClient",
    "CoordinatorNetwork",
    "fix_ci_url",
    "persist_ca_chain",
]
