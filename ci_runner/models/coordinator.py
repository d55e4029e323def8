"""Data models for the coordinator API.

Transport-level types are plain dataclasses; request and response payloads
are pydantic models so they can be serialized and validated directly from
the wire.
"""

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .job import JobVariable


@dataclass(frozen=True)
class RunnerCredentials:
    """Credentials used to reach the coordinator."""

    url: str
    token: str
    tls_ca_file: str | None = None


@dataclass
class TLSConnectionState:
    """Certificate chains verified for one TLS connection.

    Each chain is a list of DER encoded certificates, leaf first.
    """

    verified_chains: list[list[bytes]] = field(default_factory=list)


@dataclass
class CallResult:
    """Outcome of a coordinator call.

    A negative ``status_code`` denotes a client-side failure; ``status_text``
    then holds the message and ``error`` the categorized exception. Any other
    code is the HTTP status actually received from the server.
    """

    status_code: int
    status_text: str
    ca_chain: str = ""
    payload: BaseModel | None = None
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.status_code < 0

    def __iter__(self):
        # Allows ``code, text, chain = client.do_json(...)``
        return iter((self.status_code, self.status_text, self.ca_chain))


class UpdateState(str, Enum):
    """Result of reporting job state to the coordinator."""

    SUCCEEDED = "succeeded"
    ABORT = "abort"
    FAILED = "failed"


class JobState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    FAILED = "failed"
    SUCCESS = "success"


class RunnerInfo(BaseModel):
    """Details about the agent sent along with job requests."""

    name: str | None = None
    version: str | None = None
    platform: str | None = None
    architecture: str | None = None
    executor: str | None = None


class RegisterRunnerRequest(BaseModel):
    token: str
    description: str = ""
    tag_list: str = ""


class RegisterRunnerResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    token: str


class VerifyRunnerRequest(BaseModel):
    token: str


class DeleteRunnerRequest(BaseModel):
    token: str


class JobRequest(BaseModel):
    token: str
    info: RunnerInfo | None = None


class JobResponse(BaseModel):
    """Job assigned by the coordinator."""

    model_config = ConfigDict(extra="ignore")

    id: int
    project_id: int | None = None
    commands: str = ""
    repo_url: str = ""
    sha: str = ""
    ref: str = ""
    before_sha: str = ""
    allow_git_fetch: bool = False
    timeout: int = 0
    variables: list[JobVariable] = Field(default_factory=list)

    # Filled locally from the trust chain of the response
    tls_ca_chain: str = ""


class UpdateJobRequest(BaseModel):
    token: str
    state: JobState
    trace: str | None = None
