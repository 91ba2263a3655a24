"""Removal of the operator and everything it was installed with.

Teardown runs in a fixed order:

1. OAuth client authorizations referenced by the CheCluster
2. The CheCluster itself, clearing its finalizers if it will not go away
3. The CheCluster CRD, unless another namespace still has a CheCluster
4. Roles and role bindings in the namespace
5. Prefixed cluster roles and bindings, falling back to the legacy
   unprefixed pair when no prefixed binding was found
6. The operator service account and its persistent volume claim
"""

from __future__ import annotations

import asyncio

from loguru import logger

from che_installer.infra.constants import DEFAULT_CONSTANTS, InstallerConstants
from che_installer.infra.k8s.controller import (
    KubernetesApiError,
    KubernetesController,
    ResourceKind,
)

from .context import RunContext
from .crd import crd_kind_for_cluster
from .custom_resource import CheClusterManager
from .errors import ConvergenceTimeoutError
from .naming import cluster_object_prefix
from .pipeline import StepOutcome
from .waiter import wait_until


class TeardownCoordinator:
    """Deletes installer-managed resources of one namespace.

    Attributes:
        controller: Kubernetes API backend
        constants: Installer constants
        che_clusters: CheCluster lookups
    """

    def __init__(
        self,
        controller: KubernetesController,
        constants: InstallerConstants | None = None,
    ) -> None:
        """Initialize the teardown coordinator.

        Args:
            controller: Kubernetes API backend
            constants: Optional installer constants
        """
        self.controller = controller
        self.constants = constants or DEFAULT_CONSTANTS
        self.che_clusters = CheClusterManager(controller)

    # =========================================================================
    # Custom Resource
    # =========================================================================

    async def delete_oauth_client_authorizations(self, ctx: RunContext) -> StepOutcome:
        """Delete authorizations granted to the CheCluster's OAuth client."""
        che_cluster = await self.che_clusters.get(ctx.namespace)
        auth = ((che_cluster or {}).get("spec") or {}).get("auth") or {}
        client_name = auth.get("oAuthClientName")
        if not client_name:
            return StepOutcome.done()

        authorizations = [
            item
            for item in await self.controller.list_resources(
                ResourceKind.OAUTH_CLIENT_AUTHORIZATION
            )
            if item.get("clientName") == client_name
        ]
        for authorization in authorizations:
            await self.controller.delete_resource(
                ResourceKind.OAUTH_CLIENT_AUTHORIZATION,
                authorization["metadata"]["name"],
            )
        logger.info(
            f"Deleted {len(authorizations)} authorization(s) of OAuth client {client_name}"
        )
        return StepOutcome.done()

    async def delete_che_cluster(self, ctx: RunContext) -> StepOutcome:
        """Delete the CheCluster and make sure it is gone.

        When the CheCluster outlives the polling bound its finalizers are
        cleared. If that patch fails because the object vanished in the
        meantime, the deletion counts as successful.
        """
        namespace = ctx.namespace
        for che_cluster in await self.controller.list_resources(
            ResourceKind.CHE_CLUSTER, namespace
        ):
            await self.controller.delete_resource(
                ResourceKind.CHE_CLUSTER, che_cluster["metadata"]["name"], namespace
            )

        async def _gone() -> bool:
            return await self.che_clusters.get(namespace) is None

        try:
            await wait_until(
                _gone,
                interval=self.constants.CR_DELETE_INTERVAL,
                max_attempts=self.constants.CR_DELETE_ATTEMPTS,
                description=f"CheCluster in namespace {namespace} to be deleted",
            )
            return StepOutcome.done()
        except ConvergenceTimeoutError:
            logger.warning(f"CheCluster in {namespace} still present, removing finalizers")

        remaining = await self.che_clusters.get(namespace)
        if remaining is not None:
            name = remaining["metadata"]["name"]
            try:
                await self.controller.patch_resource(
                    ResourceKind.CHE_CLUSTER,
                    name,
                    {"metadata": {"finalizers": None}},
                    namespace,
                )
            except KubernetesApiError:
                # TODO: only this path re-checks presence after a failed call;
                # the plain deletes just treat 404 as absent. Decide whether
                # they should share this handling.
                if await _gone():
                    return StepOutcome.done()
                raise

            await asyncio.sleep(self.constants.CR_FINALIZER_GRACE)

        if await _gone():
            return StepOutcome.done()
        return StepOutcome.failed(f"CheCluster in namespace {namespace} is still present")

    async def delete_crd(self, ctx: RunContext) -> StepOutcome:
        """Delete the CheCluster CRD unless another CheCluster still uses it."""
        remaining = await self.che_clusters.list_all()
        if remaining:
            namespaces = sorted(
                {(item.get("metadata") or {}).get("namespace", "") for item in remaining}
            )
            logger.info(f"CheCluster still present in: {', '.join(namespaces)}")
            return StepOutcome.skipped("another Eclipse Che deployment found.")

        kind = crd_kind_for_cluster(bool(ctx.api_extensions_v1))
        await self.controller.delete_resource(kind, self.constants.CHE_CLUSTER_CRD)
        return StepOutcome.done()

    # =========================================================================
    # RBAC
    # =========================================================================

    async def delete_roles_and_bindings(self, ctx: RunContext) -> StepOutcome:
        """Delete namespaced and installation-owned cluster RBAC objects.

        Cluster objects are matched by name prefix only, so teardown in
        namespace ``che`` also removes those of an install in ``che-dev``.
        """
        namespace = ctx.namespace

        for binding in await self.controller.list_resources(
            ResourceKind.ROLE_BINDING, namespace
        ):
            await self.controller.delete_resource(
                ResourceKind.ROLE_BINDING, binding["metadata"]["name"], namespace
            )
        for role in await self.controller.list_resources(ResourceKind.ROLE, namespace):
            await self.controller.delete_resource(
                ResourceKind.ROLE, role["metadata"]["name"], namespace
            )

        prefixes = (
            cluster_object_prefix(namespace),
            self.constants.DEVWORKSPACE_CHE_NAME_PREFIX,
        )

        pairs = 0
        for binding in await self.controller.list_resources(
            ResourceKind.CLUSTER_ROLE_BINDING
        ):
            name = (binding.get("metadata") or {}).get("name") or ""
            if name.startswith(prefixes):
                if await self.controller.delete_resource(
                    ResourceKind.CLUSTER_ROLE_BINDING, name
                ):
                    pairs += 1

        for cluster_role in await self.controller.list_resources(ResourceKind.CLUSTER_ROLE):
            name = (cluster_role.get("metadata") or {}).get("name") or ""
            if name.startswith(prefixes):
                await self.controller.delete_resource(ResourceKind.CLUSTER_ROLE, name)

        # Installations predating the prefix scheme used one fixed pair
        if pairs == 0:
            legacy = self.constants.LEGACY_CLUSTER_RESOURCES_NAME
            logger.info(f"No prefixed cluster role bindings found, deleting legacy '{legacy}'")
            await self.controller.delete_resource(ResourceKind.CLUSTER_ROLE_BINDING, legacy)
            await self.controller.delete_resource(ResourceKind.CLUSTER_ROLE, legacy)

        return StepOutcome.done()

    # =========================================================================
    # Operator Leftovers
    # =========================================================================

    async def delete_service_account(self, ctx: RunContext) -> StepOutcome:
        await self.controller.delete_resource(
            ResourceKind.SERVICE_ACCOUNT,
            self.constants.OPERATOR_SERVICE_ACCOUNT,
            ctx.namespace,
        )
        return StepOutcome.done()

    async def delete_operator_pvc(self, ctx: RunContext) -> StepOutcome:
        await self.controller.delete_resource(
            ResourceKind.PERSISTENT_VOLUME_CLAIM,
            self.constants.OPERATOR_PVC_NAME,
            ctx.namespace,
        )
        return StepOutcome.done()
