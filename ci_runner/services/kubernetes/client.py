"""Kubernetes client factory.

Resolves the cluster connection from the executor configuration and builds
build pod manifests. Three mutually exclusive connection strategies are
supported, in order of precedence:

- client certificate auth (cert, key and CA files plus host),
- an explicit host with no transport security supplied here,
- in-cluster auto-discovery from the mounted service account.
"""

import os

import structlog
from kubernetes import client, config
from kubernetes.client import CoreV1Api

from ...config.kubernetes import KubernetesConfig
from ...models.errors import ConfigError
from ...models.job import JobVariable
from ...models.pod import ResourceLimits
from .resources import to_env_vars

logger = structlog.get_logger(__name__)

SERVICE_ACCOUNT_NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"


def _server_url(host: str, secure: bool) -> str:
    """Add a scheme to a bare ``host[:port]``."""
    if "://" in host:
        return host
    scheme = "https" if secure else "http"
    return f"{scheme}://{host}"


def get_kube_client_config(kube_config: KubernetesConfig) -> client.Configuration:
    """Build the API client configuration for the cluster.

    Raises:
        ConfigError: A certificate file is set without its key or CA file.
        kubernetes.config.ConfigException: In-cluster discovery failed.
    """
    configuration = client.Configuration()

    if kube_config.uses_file_auth:
        missing = [
            field
            for field, value in (("key_file", kube_config.key_file), ("ca_file", kube_config.ca_file))
            if not value
        ]
        if missing:
            raise ConfigError(
                "ca file, cert file and key file must be specified when using file based auth "
                f"(missing: {', '.join(missing)})"
            )

        if kube_config.host:
            configuration.host = _server_url(kube_config.host, secure=True)
        configuration.cert_file = kube_config.cert_file
        configuration.key_file = kube_config.key_file
        configuration.ssl_ca_cert = kube_config.ca_file
        logger.debug("Using file based Kubernetes auth", host=configuration.host)
        return configuration

    if kube_config.host:
        configuration.host = _server_url(kube_config.host, secure=False)
        logger.debug("Using explicit Kubernetes host", host=configuration.host)
        return configuration

    config.load_incluster_config(client_configuration=configuration)
    logger.debug("Loaded in-cluster Kubernetes configuration", host=configuration.host)
    return configuration


def get_kube_client(kube_config: KubernetesConfig) -> CoreV1Api:
    """Get a Core V1 API client for pod operations."""
    configuration = get_kube_client_config(kube_config)
    return CoreV1Api(client.ApiClient(configuration))


def get_current_namespace(kube_config: KubernetesConfig) -> str:
    """Namespace for build pods.

    Uses the configured namespace, then the service account namespace when
    running in-cluster, then ``default``.
    """
    if kube_config.namespace:
        return kube_config.namespace

    try:
        with open(SERVICE_ACCOUNT_NAMESPACE_FILE) as f:
            namespace = f.read().strip()
    except OSError:
        namespace = ""

    return namespace or os.getenv("POD_NAMESPACE") or "default"


def create_build_pod_manifest(
    name: str,
    namespace: str,
    image: str,
    command: list[str],
    resource_limits: ResourceLimits,
    variables: list[JobVariable] | None = None,
    labels: dict[str, str] | None = None,
    image_pull_policy: str = "IfNotPresent",
) -> client.V1Pod:
    """Create a Pod manifest for a build.

    Args:
        name: Pod name
        namespace: Kubernetes namespace
        image: Build container image
        command: Command run in the build container
        resource_limits: Limits of the build container; absent dimensions are
            left unlimited
        variables: Job variables exposed as environment, in order
        labels: Pod labels
        image_pull_policy: Image pull policy of the build container

    Returns:
        V1Pod manifest ready for creation.
    """
    resources = None
    if resource_limits:
        resources = client.V1ResourceRequirements(limits=resource_limits.to_dict())

    build_container = client.V1Container(
        name="build",
        image=image,
        image_pull_policy=image_pull_policy,
        command=command,
        env=to_env_vars(variables or []),
        resources=resources,
    )

    return client.V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            labels=labels or {},
        ),
        spec=client.V1PodSpec(
            containers=[build_container],
            restart_policy="Never",
        ),
    )
