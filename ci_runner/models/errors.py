"""Error taxonomy for the runner core.

Coordinator calls never raise these to their callers: they are attached to
the returned ``CallResult``. The pod waiter returns them next to the phase.
Constructors and parsers raise them directly.
"""


class RunnerError(Exception):
    """Base class for all runner core errors."""

    pass


class ConfigError(RunnerError):
    """Invalid configuration: bad scheme, malformed URL, incomplete cert triple."""

    pass


class RequestError(RunnerError):
    """A request could not be built (path resolution failed)."""

    pass


class TransportError(RunnerError):
    """Dial, TLS handshake or other transport level failure."""

    def __init__(self, method: str, url: str, cause: Exception):
        self.method = method
        self.url = url
        self.cause = cause
        super().__init__(f"couldn't execute {method} against {url}: {cause}")


class ProtocolError(RunnerError):
    """The server answered with an unexpected content type."""

    pass


class EncodeError(RunnerError):
    """The request object could not be serialized to JSON."""

    pass


class DecodeError(RunnerError):
    """The response body was not valid JSON for the requested model."""

    pass


class ResourceParseError(RunnerError):
    """A resource quantity string could not be parsed."""

    def __init__(self, resource: str, value: str, cause: Exception):
        self.resource = resource
        self.value = value
        super().__init__(f"error parsing {resource} limit {value!r}: {cause}")


class WorkloadLifecycleError(RunnerError):
    """The pod reached a state other than Running."""

    pass


class PodSucceededEarlyError(WorkloadLifecycleError):
    def __init__(self) -> None:
        super().__init__("pod already succeeded before it begins running")


class PodFailedError(WorkloadLifecycleError):
    def __init__(self) -> None:
        super().__init__("pod status is failed")
