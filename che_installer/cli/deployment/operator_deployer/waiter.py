"""Bounded waits for cluster convergence.

All waits are built on ``wait_until``, which polls a predicate at a fixed
interval and gives up after a maximum number of attempts or a deadline.
Nothing here blocks forever.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

from loguru import logger

from che_installer.infra.constants import DEFAULT_CONSTANTS, InstallerConstants
from che_installer.infra.k8s.controller import KubernetesController, ResourceKind

from .errors import ConvergenceTimeoutError, PreconditionError


async def wait_until(
    predicate: Callable[[], Awaitable[bool]],
    *,
    interval: float,
    max_attempts: int | None = None,
    timeout: float | None = None,
    description: str = "condition",
) -> int:
    """Poll ``predicate`` until it returns True.

    The predicate is evaluated at least once. Between evaluations the
    waiter sleeps ``interval`` seconds.

    Args:
        predicate: Async callable evaluated on each attempt
        interval: Seconds between attempts
        max_attempts: Give up after this many evaluations
        timeout: Give up once this many seconds have elapsed

    Returns:
        Number of attempts it took

    Raises:
        ValueError: If neither bound is given
        ConvergenceTimeoutError: If the bound is exhausted
    """
    if max_attempts is None and timeout is None:
        raise ValueError("wait_until needs max_attempts or timeout")

    deadline = time.monotonic() + timeout if timeout is not None else None
    attempt = 0
    while True:
        attempt += 1
        if await predicate():
            return attempt

        if max_attempts is not None and attempt >= max_attempts:
            raise ConvergenceTimeoutError(
                f"Timed out waiting for {description} after {attempt} attempt(s)"
            )
        if deadline is not None and time.monotonic() + interval > deadline:
            raise ConvergenceTimeoutError(
                f"Timed out waiting for {description} after {timeout:g}s"
            )

        logger.debug(f"Waiting for {description} (attempt {attempt})")
        await asyncio.sleep(interval)


class ConvergenceWaiter:
    """Waits used between installer steps.

    Attributes:
        controller: Kubernetes API backend
        constants: Installer constants holding the intervals and bounds
    """

    def __init__(
        self,
        controller: KubernetesController,
        constants: InstallerConstants | None = None,
    ) -> None:
        self.controller = controller
        self.constants = constants or DEFAULT_CONSTANTS

    async def flush_delay(self) -> None:
        """Give the API server time to register newly created objects."""
        await asyncio.sleep(self.constants.FLUSH_DELAY)

    async def wait_for_pod_ready(self, label_selector: str, namespace: str) -> int:
        """Wait for at least one matching pod to be running and ready."""

        async def _pod_ready() -> bool:
            pods = await self.controller.get_pods(namespace, label_selector)
            return any(pod.status == "Running" and pod.ready for pod in pods)

        return await wait_until(
            _pod_ready,
            interval=self.constants.POD_READY_INTERVAL,
            timeout=self.constants.POD_READY_TIMEOUT,
            description=f"pod '{label_selector}' in namespace {namespace} to be ready",
        )

    async def wait_for_latest_replica(self, deployment_name: str, namespace: str) -> int:
        """Wait for the newest ReplicaSet of a deployment to be fully available.

        Raises:
            PreconditionError: If the deployment disappears while waiting
            ConvergenceTimeoutError: If the rollout does not finish in time
        """
        await asyncio.sleep(self.constants.REPLICA_SETTLE_DELAY)

        async def _latest_available() -> bool:
            deployment = await self.controller.get_resource(
                ResourceKind.DEPLOYMENT, deployment_name, namespace
            )
            if deployment is None:
                raise PreconditionError(
                    f"Deployment {namespace}/{deployment_name} is not found"
                )
            if (deployment.get("status") or {}).get("unavailableReplicas"):
                return False

            owned = [
                rs
                for rs in await self.controller.get_replicasets(namespace)
                if rs.owner_deployment == deployment_name
            ]
            if not owned:
                return False
            latest = max(owned, key=lambda rs: rs.revision_number)
            return latest.available_replicas >= latest.replicas

        return await wait_until(
            _latest_available,
            interval=self.constants.REPLICA_INTERVAL,
            timeout=self.constants.REPLICA_TIMEOUT,
            description=f"latest replica of deployment {namespace}/{deployment_name}",
        )
