"""Wait for a build pod to start running.

Each poll reads the pod once in a worker thread and races that read against
the caller's cancellation token. When the token fires first the read is
abandoned: the awaiting task is cancelled, but the worker thread finishes
its HTTP call in the background and its result is dropped.
"""

import asyncio
from dataclasses import dataclass
from typing import TextIO

from kubernetes.client import CoreV1Api

from ...models.errors import PodFailedError, PodSucceededEarlyError
from ...models.pod import PodHandle, PodPhase
from ...utils.cancel import CancellationToken

POLL_INTERVAL = 1.0


@dataclass
class _PollResult:
    done: bool
    phase: PodPhase
    error: Exception | None = None


async def _poll_pod(core_api: CoreV1Api, pod: PodHandle, out: TextIO, poll_interval: float) -> _PollResult:
    try:
        current = await asyncio.to_thread(core_api.read_namespaced_pod, pod.name, pod.namespace)
    except Exception as e:
        return _PollResult(True, PodPhase.UNKNOWN, e)

    raw_phase = current.status.phase if current.status else None
    phase = PodPhase.from_api(raw_phase)

    if phase == PodPhase.RUNNING:
        return _PollResult(True, phase)
    if phase == PodPhase.SUCCEEDED:
        return _PollResult(True, phase, PodSucceededEarlyError())
    if phase == PodPhase.FAILED:
        return _PollResult(True, phase, PodFailedError())

    try:
        out.write(f"Waiting for pod {pod.namespace}/{pod.name} to be running, status is {raw_phase}\n")
    except Exception as e:
        return _PollResult(True, phase, e)
    await asyncio.sleep(poll_interval)
    return _PollResult(False, phase)


async def wait_for_pod_running(
    cancel: CancellationToken,
    core_api: CoreV1Api,
    pod: PodHandle,
    out: TextIO,
    poll_interval: float = POLL_INTERVAL,
) -> tuple[PodPhase, Exception | None]:
    """Poll ``pod`` until it is Running, has finished, or ``cancel`` fires.

    Pending (and any other non-terminal phase) is reported to ``out`` and
    polled again after ``poll_interval`` seconds. There is no limit on the
    number of polls; bound the wait with the token.

    Returns:
        ``(RUNNING, None)`` once the pod runs. ``(SUCCEEDED, error)`` or
        ``(FAILED, error)`` if it finished first. ``(UNKNOWN, error)`` when
        reading the pod failed or the token fired. A failing write to ``out``
        ends the wait with the current phase and that error.
    """
    while True:
        if cancel.cancelled:
            return PodPhase.UNKNOWN, cancel.error

        fetch = asyncio.create_task(_poll_pod(core_api, pod, out, poll_interval))
        cancelled = asyncio.create_task(cancel.wait())

        try:
            done, _ = await asyncio.wait({fetch, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            fetch.cancel()
            cancelled.cancel()
            raise

        if cancelled in done:
            fetch.cancel()
            return PodPhase.UNKNOWN, cancel.error

        cancelled.cancel()
        result = fetch.result()
        if result.done:
            return result.phase, result.error
