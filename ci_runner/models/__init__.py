"""Data models for the runner core."""

from .coordinator import (
    CallResult,
    DeleteRunnerRequest,
    JobRequest,
    JobResponse,
    JobState,
    RegisterRunnerRequest,
    RegisterRunnerResponse,
    RunnerCredentials,
    RunnerInfo,
    TLSConnectionState,
    UpdateJobRequest,
    UpdateState,
    VerifyRunnerRequest,
)
from .errors import (
    ConfigError,
    DecodeError,
    EncodeError,
    PodFailedError,
    PodSucceededEarlyError,
    ProtocolError,
    RequestError,
    ResourceParseError,
    RunnerError,
    TransportError,
    WorkloadLifecycleError,
)
from .job import JobVariable
from .pod import PodHandle, PodPhase, Quantity, ResourceLimits

__all__ = [
    # Coordinator models
    "RunnerCredentials",
    "TLSConnectionState",
    "CallResult",
    "UpdateState",
    "JobState",
    "RunnerInfo",
    "RegisterRunnerRequest",
    "RegisterRunnerResponse",
    "VerifyRunnerRequest",
    "DeleteRunnerRequest",
    "JobRequest",
    "JobResponse",
    "UpdateJobRequest",
    # Job models
    "JobVariable",
    # Pod models
    "PodPhase",
    "PodHandle",
    "Quantity",
    "ResourceLimits",
    # Errors
    "RunnerError",
    "ConfigError",
    "RequestError",
    "TransportError",
    "ProtocolError",
    "EncodeError",
    "DecodeError",
    "ResourceParseError",
    "WorkloadLifecycleError",
    "PodSucceededEarlyError",
    "PodFailedError",
]
