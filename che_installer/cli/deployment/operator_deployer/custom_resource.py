"""CheCluster custom resource: lookup, staging, creation and patching."""

from __future__ import annotations

import copy
from typing import Any

from loguru import logger

from che_installer.infra.constants import ManifestPaths
from che_installer.infra.k8s.controller import KubernetesController, ResourceKind

from .applier import ApplyAction
from .compatibility import is_dev_workspace_requested
from .context import RunContext
from .errors import PreconditionError
from .manifests import load_manifest_body


def merge_patch(target: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Apply a JSON merge patch (RFC 7386) to a copy of ``target``."""
    result = copy.deepcopy(target)
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        elif isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_patch(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


class CheClusterManager:
    """Manages the singleton CheCluster of a namespace.

    Attributes:
        controller: Kubernetes API backend
    """

    def __init__(self, controller: KubernetesController) -> None:
        self.controller = controller

    async def get(self, namespace: str) -> dict[str, Any] | None:
        """The CheCluster in a namespace, or None."""
        clusters = await self.controller.list_resources(ResourceKind.CHE_CLUSTER, namespace)
        return clusters[0] if clusters else None

    async def list_all(self) -> list[dict[str, Any]]:
        """Every CheCluster in the cluster, across namespaces."""
        return await self.controller.list_resources(
            ResourceKind.CHE_CLUSTER, all_namespaces=True
        )

    async def stage_default(self, ctx: RunContext, paths: ManifestPaths) -> ApplyAction | None:
        """Load the default CheCluster when no custom one was supplied.

        Returns:
            EXISTING when a CheCluster is already deployed, otherwise None
        """
        if await self.get(ctx.namespace) is not None:
            return ApplyAction.EXISTING

        if ctx.custom_cr is None:
            ctx.default_cr = load_manifest_body(paths.default_cr)
        return None

    def build(self, ctx: RunContext) -> dict[str, Any]:
        """The CheCluster body to create for this run.

        The custom CheCluster is used as-is; the default one gets the
        dev-workspace engine switched on when requested. The CR patch is
        merged on top of either.
        """
        if ctx.custom_cr is not None:
            body = copy.deepcopy(ctx.custom_cr)
        elif ctx.default_cr is not None:
            body = copy.deepcopy(ctx.default_cr)
            if is_dev_workspace_requested(ctx):
                spec = body.setdefault("spec", {})
                spec.setdefault("devWorkspace", {})["enable"] = True
        else:
            raise PreconditionError(
                f"No CheCluster to create in namespace {ctx.namespace}: "
                "neither a custom nor a default custom resource was loaded"
            )

        if ctx.cr_patch:
            body = merge_patch(body, ctx.cr_patch)

        body.setdefault("metadata", {})["namespace"] = ctx.namespace
        return body

    async def create(self, ctx: RunContext) -> ApplyAction:
        """Create the CheCluster unless one is already deployed."""
        if await self.get(ctx.namespace) is not None:
            return ApplyAction.EXISTING

        body = self.build(ctx)
        await self.controller.create_resource(ResourceKind.CHE_CLUSTER, body, ctx.namespace)
        logger.info(
            f"Created CheCluster {ctx.namespace}/{body['metadata'].get('name', '')}"
        )
        return ApplyAction.CREATED

    async def patch(self, ctx: RunContext) -> str:
        """Merge the run's CR patch into the deployed CheCluster.

        Returns:
            Name of the patched CheCluster

        Raises:
            PreconditionError: If no CheCluster is deployed in the namespace
        """
        che_cluster = await self.get(ctx.namespace)
        if che_cluster is None:
            raise PreconditionError(
                f"Eclipse Che cluster CR is not found in the namespace '{ctx.namespace}'"
            )

        name = che_cluster["metadata"]["name"]
        await self.controller.patch_resource(
            ResourceKind.CHE_CLUSTER, name, ctx.cr_patch or {}, ctx.namespace
        )
        logger.info(f"Patched CheCluster {ctx.namespace}/{name}")
        return name
