"""Build pod lifecycle manager.

Creates build pods from the executor configuration, waits for them to run
and removes them afterwards. The synchronous Kubernetes client is driven
from worker threads so the event loop stays free for cancellation.
"""

import asyncio
from typing import TextIO

import structlog
from kubernetes.client import ApiException, CoreV1Api

from ...config.kubernetes import KubernetesConfig
from ...models.job import JobVariable
from ...models.pod import PodHandle, PodPhase
from ...utils.cancel import CancellationToken
from .client import create_build_pod_manifest, get_current_namespace, get_kube_client
from .resources import limits
from .waiter import wait_for_pod_running

logger = structlog.get_logger(__name__)


class KubernetesManager:
    """Manages build pods for one executor configuration.

    Args:
        kube_config: Executor configuration
        core_api: Pre-built API client; resolved from ``kube_config`` when omitted
    """

    def __init__(self, kube_config: KubernetesConfig, core_api: CoreV1Api | None = None):
        self.config = kube_config
        self._core_api = core_api
        self.namespace = get_current_namespace(kube_config)

    @property
    def core_api(self) -> CoreV1Api:
        """API client, resolved on first use.

        Raises:
            ConfigError: Incomplete certificate configuration.
        """
        if self._core_api is None:
            self._core_api = get_kube_client(self.config)
        return self._core_api

    async def create_pod(
        self,
        name: str,
        command: list[str],
        variables: list[JobVariable] | None = None,
        image: str | None = None,
        labels: dict[str, str] | None = None,
    ) -> PodHandle:
        """Submit a build pod.

        Raises:
            ResourceParseError: The configured CPU or memory limit is malformed.
            ApiException: The cluster rejected the pod.
        """
        manifest = create_build_pod_manifest(
            name=name,
            namespace=self.namespace,
            image=image or self.config.image,
            command=command,
            resource_limits=limits(self.config.cpus, self.config.memory),
            variables=variables,
            labels=labels,
            image_pull_policy=self.config.image_pull_policy,
        )

        created = await asyncio.to_thread(self.core_api.create_namespaced_pod, self.namespace, manifest)
        logger.info("Created build pod", pod=created.metadata.name, namespace=self.namespace)
        return PodHandle(name=created.metadata.name, namespace=self.namespace, phase=PodPhase.PENDING)

    async def wait_running(
        self,
        pod: PodHandle,
        out: TextIO,
        cancel: CancellationToken | None = None,
    ) -> tuple[PodPhase, Exception | None]:
        """Wait for ``pod`` to run.

        Without a token, the wait is bounded by the configured poll timeout.
        """
        if cancel is None:
            cancel = CancellationToken()
            if self.config.poll_timeout_seconds > 0:
                cancel.cancel_after(self.config.poll_timeout_seconds)

        phase, error = await wait_for_pod_running(
            cancel,
            self.core_api,
            pod,
            out,
            poll_interval=self.config.poll_interval_seconds,
        )
        if error is not None:
            logger.warning("Build pod did not start", pod=pod.name, phase=phase.value, error=str(error))
        return phase, error

    async def delete_pod(self, pod: PodHandle, grace_period: int = 0) -> None:
        """Delete a build pod. A pod that is already gone is not an error."""
        try:
            await asyncio.to_thread(
                self.core_api.delete_namespaced_pod,
                pod.name,
                pod.namespace,
                grace_period_seconds=grace_period,
            )
            logger.info("Deleted build pod", pod=pod.name)
        except ApiException as e:
            if e.status == 404:
                logger.debug("Build pod already deleted", pod=pod.name)
            else:
                raise
