"""Idempotent create-or-replace of manifest objects.

For every object the applier probes the cluster by name and then:

- creates the object when it is absent;
- replaces it (full overwrite, matched by name) when present and the
  caller asked for update mode;
- leaves it untouched when present and not in update mode.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from loguru import logger

from che_installer.infra.k8s.controller import KubernetesController, ResourceKind

from .context import ResourceBuckets
from .errors import PipelineStateError
from .naming import namespaced_cluster_role, namespaced_cluster_role_binding


class ApplyAction(Enum):
    """What the applier did with one object."""

    CREATED = "created"
    REPLACED = "replaced"
    EXISTING = "existing"


@dataclass
class ApplySummary:
    """Per-object actions of one apply pass, in application order."""

    actions: list[tuple[ResourceKind, str, ApplyAction]] = field(default_factory=list)

    def record(self, kind: ResourceKind, name: str, action: ApplyAction) -> None:
        self.actions.append((kind, name, action))

    def count(self, action: ApplyAction) -> int:
        return sum(1 for _, _, done in self.actions if done is action)

    def describe(self) -> str:
        counts = Counter(action for _, _, action in self.actions)
        if not counts:
            return "nothing to apply"
        return ", ".join(
            f"{counts[action]} {action.value}" for action in ApplyAction if counts[action]
        )


class ResourceApplier:
    """Applies manifest objects with exists-then-create/replace/skip semantics.

    Attributes:
        controller: Kubernetes API backend
    """

    def __init__(self, controller: KubernetesController) -> None:
        """Initialize the applier.

        Args:
            controller: Kubernetes API backend
        """
        self.controller = controller

    async def apply_object(
        self,
        kind: ResourceKind,
        body: dict[str, Any],
        namespace: str | None,
        *,
        update: bool,
    ) -> ApplyAction:
        """Apply one object.

        Args:
            kind: Resource kind
            body: Object body carrying its final on-cluster name
            namespace: Target namespace (ignored for cluster-scoped kinds)
            update: Replace the object when it already exists

        Returns:
            The action taken
        """
        name = body.get("metadata", {}).get("name", "")
        target_namespace = namespace if kind.namespaced else None

        if not await self.controller.resource_exists(kind, name, target_namespace):
            await self.controller.create_resource(kind, body, target_namespace)
            logger.info(f"Created {kind.describe(name, target_namespace)}")
            return ApplyAction.CREATED

        if update:
            await self.controller.replace_resource(kind, body, target_namespace)
            logger.info(f"Replaced {kind.describe(name, target_namespace)}")
            return ApplyAction.REPLACED

        logger.info(f"{kind.describe(name, target_namespace)} already exists")
        return ApplyAction.EXISTING

    async def apply_rbac(
        self,
        buckets: ResourceBuckets | None,
        namespace: str,
        *,
        update: bool = False,
    ) -> ApplySummary:
        """Apply roles, role bindings, cluster roles and cluster role bindings.

        Kinds are applied in that order. Cluster-scoped objects are renamed
        with the namespace prefix; cluster role bindings also get their role
        reference prefixed and every subject moved into ``namespace``.

        Args:
            buckets: Scanned RBAC manifests
            namespace: Target namespace
            update: Replace objects that already exist

        Raises:
            PipelineStateError: If the buckets were never populated
        """
        if buckets is None:
            raise PipelineStateError(
                "Role and binding buckets not initialized: "
                "scan the resources directory before applying RBAC"
            )

        summary = ApplySummary()

        for role in buckets.roles:
            action = await self.apply_object(
                ResourceKind.ROLE, role.copy_body(), namespace, update=update
            )
            summary.record(ResourceKind.ROLE, role.name, action)

        for binding in buckets.role_bindings:
            action = await self.apply_object(
                ResourceKind.ROLE_BINDING, binding.copy_body(), namespace, update=update
            )
            summary.record(ResourceKind.ROLE_BINDING, binding.name, action)

        for cluster_role in buckets.cluster_roles:
            body = namespaced_cluster_role(cluster_role, namespace)
            action = await self.apply_object(
                ResourceKind.CLUSTER_ROLE, body, None, update=update
            )
            summary.record(ResourceKind.CLUSTER_ROLE, body["metadata"]["name"], action)

        for cluster_binding in buckets.cluster_role_bindings:
            body = namespaced_cluster_role_binding(cluster_binding, namespace)
            action = await self.apply_object(
                ResourceKind.CLUSTER_ROLE_BINDING, body, None, update=update
            )
            summary.record(
                ResourceKind.CLUSTER_ROLE_BINDING, body["metadata"]["name"], action
            )

        return summary
