"""Resource specifications for build pods.

Turns user supplied quantity strings ("500m", "50Mi", ...) into resource
limits and job variables into container environment variables.
"""

from collections.abc import Iterable

from kubernetes.client import V1EnvVar
from kubernetes.utils import parse_quantity

from ...models.errors import ResourceParseError
from ...models.job import JobVariable
from ...models.pod import Quantity, ResourceLimits


def parse_limit(resource: str, value: str) -> Quantity | None:
    """Parse one quantity string. Empty input means no limit.

    Raises:
        ResourceParseError: ``value`` is not a valid quantity.
    """
    value = value.strip()
    if not value:
        return None

    try:
        parsed = parse_quantity(value)
    except (ValueError, ArithmeticError) as e:
        raise ResourceParseError(resource, value, e) from e

    if not parsed.is_finite():
        raise ResourceParseError(resource, value, ValueError("quantity must be finite"))

    return Quantity(raw=value, value=parsed)


def limits(cpu: str, memory: str) -> ResourceLimits:
    """Build resource limits from CPU and memory quantity strings.

    This allows users to write "500m" for CPU and "50Mi" for memory. An empty
    string leaves that dimension unlimited.

    Raises:
        ResourceParseError: Either string is malformed. The error names the
            dimension that failed.
    """
    return ResourceLimits(
        cpu=parse_limit("cpu", cpu),
        memory=parse_limit("memory", memory),
    )


def to_env_vars(variables: Iterable[JobVariable | tuple[str, str]]) -> list[V1EnvVar]:
    """Project job variables onto container env vars, one to one.

    Order is preserved and duplicate keys are all kept.
    """
    env = []
    for variable in variables:
        if isinstance(variable, tuple):
            key, value = variable
        else:
            key, value = variable.key, variable.value
        env.append(V1EnvVar(name=key, value=value))
    return env
