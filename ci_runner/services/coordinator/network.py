"""Coordinator API operations.

Registers the agent, asks for jobs and reports their state. Each call maps
the coordinator's status codes to an outcome and logs it; nothing here
raises on network or protocol trouble.
"""

import os
import tempfile

import structlog

from ...config.coordinator import CoordinatorConfig
from ...models.coordinator import (
    CallResult,
    DeleteRunnerRequest,
    JobRequest,
    JobResponse,
    JobState,
    RegisterRunnerRequest,
    RegisterRunnerResponse,
    RunnerCredentials,
    RunnerInfo,
    UpdateJobRequest,
    UpdateState,
    VerifyRunnerRequest,
)
from ...models.errors import ConfigError
from .client import DEFAULT_CONNECT_TIMEOUT, DEFAULT_KEEPALIVE_EXPIRY, CoordinatorClient

logger = structlog.get_logger(__name__)


def _write_atomically(path: str, content: str) -> None:
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".ca-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="ascii") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        os.unlink(tmp_path)
        raise


def persist_ca_chain(path: str, ca_chain: str) -> bool:
    """Store a trust chain as the CA file used by later connections.

    Writes atomically and only when the chain is non-empty and differs from
    the current file content.

    Returns:
        True if the file was written.
    """
    if not path or not ca_chain:
        return False

    try:
        with open(path, encoding="ascii") as f:
            if f.read() == ca_chain:
                return False
    except FileNotFoundError:
        pass
    except (OSError, ValueError) as e:
        logger.error("Failed to read CA file", path=path, error=str(e))
        return False

    try:
        _write_atomically(path, ca_chain)
    except (OSError, ValueError) as e:
        logger.error("Failed to store coordinator CA chain", path=path, error=str(e))
        return False

    logger.info("Stored coordinator CA chain", path=path)
    return True


class CoordinatorNetwork:
    """Coordinator operations over a cache of per-credentials clients.

    Args:
        certificate_directory: Directory with per-host CA bundles
        skip_verify: Disable TLS verification for all clients
        runner_info: Agent details sent with job requests
        connect_timeout: Connection budget of every client
        keepalive_expiry: Idle expiry of pooled connections
    """

    def __init__(
        self,
        certificate_directory: str | None = None,
        skip_verify: bool = True,
        runner_info: RunnerInfo | None = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        keepalive_expiry: float = DEFAULT_KEEPALIVE_EXPIRY,
    ):
        self.certificate_directory = certificate_directory
        self.skip_verify = skip_verify
        self.runner_info = runner_info
        self.connect_timeout = connect_timeout
        self.keepalive_expiry = keepalive_expiry
        self._clients: dict[RunnerCredentials, CoordinatorClient] = {}

    @classmethod
    def from_config(cls, config: CoordinatorConfig, runner_info: RunnerInfo | None = None) -> "CoordinatorNetwork":
        return cls(
            certificate_directory=config.certificate_directory,
            skip_verify=config.tls_skip_verify,
            runner_info=runner_info,
            connect_timeout=config.connect_timeout,
            keepalive_expiry=config.keepalive_expiry,
        )

    def get_client(self, credentials: RunnerCredentials) -> CoordinatorClient:
        """Return the cached client for ``credentials``, creating it on first use.

        Raises:
            ConfigError: The credentials carry an unusable URL.
        """
        client = self._clients.get(credentials)
        if client is None:
            client = CoordinatorClient(
                credentials,
                certificate_directory=self.certificate_directory,
                skip_verify=self.skip_verify,
                connect_timeout=self.connect_timeout,
                keepalive_expiry=self.keepalive_expiry,
            )
            self._clients[credentials] = client
        return client

    def close(self) -> None:
        for client in self._clients.values():
            client.close()
        self._clients.clear()

    def _do_json(
        self,
        credentials: RunnerCredentials,
        uri: str,
        method: str,
        status_code: int,
        request=None,
        response=None,
    ) -> CallResult:
        try:
            client = self.get_client(credentials)
        except ConfigError as e:
            return CallResult(-1, str(e), error=e)
        return client.do_json(uri, method, status_code, request, response)

    def register_runner(
        self,
        credentials: RunnerCredentials,
        description: str = "",
        tags: list[str] | None = None,
    ) -> RegisterRunnerResponse | None:
        """Exchange a registration token for a runner token."""
        request = RegisterRunnerRequest(
            token=credentials.token,
            description=description,
            tag_list=",".join(tags or []),
        )

        result = self._do_json(credentials, "runners/register.json", "POST", 201, request, RegisterRunnerResponse)
        log = logger.bind(url=credentials.url, status=result.status_text)

        if result.status_code == 201:
            log.info("Registering runner... succeeded")
            return result.payload
        if result.status_code == 403:
            log.error("Registering runner... forbidden (check registration token)")
        else:
            log.error("Registering runner... failed")
        return None

    def verify_runner(self, credentials: RunnerCredentials) -> bool:
        """Check that the runner token is still valid.

        Only an explicit 403 reports the runner as invalid; connectivity
        problems must not make the caller forget its registration.
        """
        request = VerifyRunnerRequest(token=credentials.token)
        result = self._do_json(credentials, "runners/verify", "POST", 200, request)
        log = logger.bind(url=credentials.url, status=result.status_text)

        if result.status_code == 200:
            log.info("Verifying runner... is alive")
            return True
        if result.status_code == 403:
            log.error("Verifying runner... is removed")
            return False
        log.error("Verifying runner... failed")
        return True

    def unregister_runner(self, credentials: RunnerCredentials) -> bool:
        request = DeleteRunnerRequest(token=credentials.token)
        result = self._do_json(credentials, "runners/delete", "DELETE", 200, request)
        log = logger.bind(url=credentials.url, status=result.status_text)

        if result.status_code == 200:
            log.info("Unregistering runner from coordinator succeeded")
            return True
        if result.status_code == 403:
            log.error("Unregistering runner from coordinator forbidden")
        else:
            log.error("Unregistering runner from coordinator failed")
        return False

    def request_job(self, credentials: RunnerCredentials) -> JobResponse | None:
        """Ask the coordinator for a job.

        The trust chain of the response is attached to the job so the build
        can reach the coordinator with the same trust.
        """
        request = JobRequest(token=credentials.token, info=self.runner_info)
        result = self._do_json(credentials, "builds/register.json", "POST", 201, request, JobResponse)
        log = logger.bind(url=credentials.url, status=result.status_text)

        if result.status_code == 201:
            job = result.payload
            job.tls_ca_chain = result.ca_chain
            log.info("Checking for jobs... received", job=job.id)
            return job
        if result.status_code == 204:
            log.debug("Checking for jobs... nothing")
        elif result.status_code == 403:
            log.error("Checking for jobs... forbidden")
        elif result.failed:
            log.error("Checking for jobs... client error")
        else:
            log.warning("Checking for jobs... failed")
        return None

    def update_job(
        self,
        credentials: RunnerCredentials,
        job_id: int,
        state: JobState,
        trace: str | None = None,
    ) -> UpdateState:
        """Report job state (and optionally the full trace)."""
        request = UpdateJobRequest(token=credentials.token, state=state, trace=trace)
        result = self._do_json(credentials, f"builds/{job_id}.json", "PUT", 200, request)
        log = logger.bind(url=credentials.url, job=job_id, state=state.value, status=result.status_text)

        if result.status_code == 200:
            log.debug("Submitting job to coordinator... ok")
            return UpdateState.SUCCEEDED
        if result.status_code == 404:
            log.warning("Submitting job to coordinator... aborted")
            return UpdateState.ABORT
        if result.status_code == 403:
            log.error("Submitting job to coordinator... forbidden")
            return UpdateState.ABORT
        log.error("Submitting job to coordinator... failed")
        return UpdateState.FAILED

    def store_ca_chain(self, credentials: RunnerCredentials, ca_chain: str) -> bool:
        """Persist ``ca_chain`` as the CA file of ``credentials``' client."""
        try:
            client = self.get_client(credentials)
        except ConfigError as e:
            logger.error("Cannot store CA chain", url=credentials.url, error=str(e))
            return False
        return persist_ca_chain(client.ca_file, ca_chain)
