"""Unit tests for the build pod manager."""

import io
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from kubernetes.client import ApiException, V1Pod

from ci_runner.config.kubernetes import KubernetesConfig
from ci_runner.models.errors import ResourceParseError
from ci_runner.models.job import JobVariable
from ci_runner.models.pod import PodHandle, PodPhase
from ci_runner.services.kubernetes.manager import KubernetesManager
from ci_runner.utils.cancel import DeadlineExceededError


def make_manager(api: MagicMock, **overrides) -> KubernetesManager:
    settings = {
        "namespace": "ci",
        "image": "alpine:3.20",
        "cpus": "500m",
        "memory": "50Mi",
        "poll_interval_seconds": 0.01,
        "poll_timeout_seconds": 0.1,
    }
    settings.update(overrides)
    return KubernetesManager(KubernetesConfig(**settings), core_api=api)


@pytest.mark.asyncio
async def test_create_pod_submits_manifest():
    api = MagicMock()
    api.create_namespaced_pod.return_value = SimpleNamespace(metadata=SimpleNamespace(name="build-42"))
    manager = make_manager(api)

    handle = await manager.create_pod("build-42", ["make"], [JobVariable(key="CI", value="true")])

    assert handle == PodHandle(name="build-42", namespace="ci", phase=PodPhase.PENDING)
    namespace, body = api.create_namespaced_pod.call_args.args
    assert namespace == "ci"
    assert isinstance(body, V1Pod)
    container = body.spec.containers[0]
    assert container.image == "alpine:3.20"
    assert container.resources.limits == {"cpu": "500m", "memory": "50Mi"}
    assert container.env[0].name == "CI"


@pytest.mark.asyncio
async def test_create_pod_rejects_malformed_limits():
    api = MagicMock()
    manager = make_manager(api, memory="fifty")

    with pytest.raises(ResourceParseError, match="memory"):
        await manager.create_pod("build-1", ["true"])
    api.create_namespaced_pod.assert_not_called()


@pytest.mark.asyncio
async def test_wait_running_bounded_by_poll_timeout():
    api = MagicMock()
    api.read_namespaced_pod.return_value = SimpleNamespace(status=SimpleNamespace(phase="Pending"))
    manager = make_manager(api)

    phase, error = await manager.wait_running(PodHandle(name="build-1", namespace="ci"), io.StringIO())

    assert phase == PodPhase.UNKNOWN
    assert isinstance(error, DeadlineExceededError)


@pytest.mark.asyncio
async def test_wait_running_success():
    api = MagicMock()
    api.read_namespaced_pod.return_value = SimpleNamespace(status=SimpleNamespace(phase="Running"))
    manager = make_manager(api)

    assert await manager.wait_running(PodHandle(name="build-1", namespace="ci"), io.StringIO()) == (
        PodPhase.RUNNING,
        None,
    )


@pytest.mark.asyncio
async def test_delete_ignores_missing_pod():
    api = MagicMock()
    api.delete_namespaced_pod.side_effect = ApiException(status=404, reason="Not Found")
    manager = make_manager(api)

    await manager.delete_pod(PodHandle(name="build-1", namespace="ci"))

    api.delete_namespaced_pod.assert_called_once_with("build-1", "ci", grace_period_seconds=0)


@pytest.mark.asyncio
async def test_delete_raises_other_errors():
    api = MagicMock()
    api.delete_namespaced_pod.side_effect = ApiException(status=500, reason="Internal Server Error")
    manager = make_manager(api)

    with pytest.raises(ApiException):
        await manager.delete_pod(PodHandle(name="build-1", namespace="ci"))


def test_namespace_discovered_when_not_configured(monkeypatch):
    monkeypatch.setattr("ci_runner.services.kubernetes.client.SERVICE_ACCOUNT_NAMESPACE_FILE", "/nonexistent/namespace")
    monkeypatch.setenv("POD_NAMESPACE", "ci")

    manager = KubernetesManager(KubernetesConfig(), core_api=MagicMock())

    assert manager.namespace == "ci"
