"""Data models for Kubernetes build pods."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class PodPhase(str, Enum):
    """Lifecycle phase of a pod as reported by the cluster."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def from_api(cls, value: str | None) -> "PodPhase":
        """Map the API phase string, treating unrecognized values as Unknown."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class PodHandle:
    """Handle to a pod that has been submitted to the cluster.

    ``phase`` is only ever written from the cluster's answers.
    """

    name: str
    namespace: str
    phase: PodPhase = PodPhase.UNKNOWN


@dataclass(frozen=True)
class Quantity:
    """A parsed resource quantity, keeping the text it was parsed from."""

    raw: str
    value: Decimal

    def __str__(self) -> str:
        return self.raw


@dataclass(frozen=True)
class ResourceLimits:
    """CPU and memory limits for a build container.

    ``None`` means no limit was requested for that dimension.
    """

    cpu: Quantity | None = None
    memory: Quantity | None = None

    def to_dict(self) -> dict[str, str]:
        """Limits keyed by resource name, containing only the present ones."""
        result = {}
        if self.cpu is not None:
            result["cpu"] = self.cpu.raw
        if self.memory is not None:
            result["memory"] = self.memory.raw
        return result

    def __bool__(self) -> bool:
        return self.cpu is not None or self.memory is not None
