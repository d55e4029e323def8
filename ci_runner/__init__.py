"""CI runner core: coordinator API client and Kubernetes workload helpers."""

import platform

__version__ = "0.4.0"

NAME = "ci-runner"


def user_agent() -> str:
    """User-Agent sent with every coordinator request that carries a body."""
    return f"{NAME} {__version__} ({platform.system().lower()}; {platform.machine()})"
