"""Kr8s-based implementation of KubernetesController.

Uses the kr8s library for native async Kubernetes operations.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

import kr8s
from kr8s.asyncio.objects import (
    APIObject,
    ClusterRole,
    ClusterRoleBinding,
    CustomResourceDefinition,
    Deployment,
    PersistentVolumeClaim,
    Pod,
    ReplicaSet,
    Role,
    RoleBinding,
    ServiceAccount,
    new_class,
)
from loguru import logger

from .controller import (
    KubernetesApiError,
    KubernetesController,
    PodInfo,
    ReplicaSetInfo,
    ResourceKind,
)

CheCluster = new_class(
    kind="CheCluster",
    version="org.eclipse.che/v1",
    namespaced=True,
    plural="checlusters",
)
OAuthClientAuthorization = new_class(
    kind="OAuthClientAuthorization",
    version="oauth.openshift.io/v1",
    namespaced=False,
    plural="oauthclientauthorizations",
)
CustomResourceDefinitionV1Beta1 = new_class(
    kind="CustomResourceDefinition",
    version="apiextensions.k8s.io/v1beta1",
    namespaced=False,
    plural="customresourcedefinitions",
)

_OBJECT_CLASSES: dict[ResourceKind, type[APIObject]] = {
    ResourceKind.SERVICE_ACCOUNT: ServiceAccount,
    ResourceKind.ROLE: Role,
    ResourceKind.ROLE_BINDING: RoleBinding,
    ResourceKind.CLUSTER_ROLE: ClusterRole,
    ResourceKind.CLUSTER_ROLE_BINDING: ClusterRoleBinding,
    ResourceKind.CRD: CustomResourceDefinition,
    ResourceKind.CRD_V1BETA1: CustomResourceDefinitionV1Beta1,
    ResourceKind.DEPLOYMENT: Deployment,
    ResourceKind.REPLICA_SET: ReplicaSet,
    ResourceKind.POD: Pod,
    ResourceKind.PERSISTENT_VOLUME_CLAIM: PersistentVolumeClaim,
    ResourceKind.CHE_CLUSTER: CheCluster,
    ResourceKind.OAUTH_CLIENT_AUTHORIZATION: OAuthClientAuthorization,
}


def _status_of(error: Exception) -> int | None:
    response = getattr(error, "response", None)
    return getattr(response, "status_code", None)


class Kr8sController(KubernetesController):
    """Kubernetes controller using kr8s library.

    All methods are natively async, leveraging kr8s's async API.

    Note: The kr8s API client is NOT cached because it's tied to the event loop
    that was running when created. When using run_sync() which calls asyncio.run(),
    each call creates a new event loop, making the cached API unusable.
    """

    async def _get_api(self) -> Any:  # Returns kr8s._api.Api
        """Get a kr8s API client bound to the running event loop."""
        return await kr8s.asyncio.api()

    def _object_class(self, kind: ResourceKind) -> type[APIObject]:
        return _OBJECT_CLASSES[kind]

    def _body_for(
        self, kind: ResourceKind, body: dict[str, Any], namespace: str | None
    ) -> dict[str, Any]:
        """Stamp apiVersion/kind and the target namespace onto a body copy."""
        resource = json.loads(json.dumps(body))
        resource["apiVersion"] = kind.api_version
        resource["kind"] = kind.kind
        metadata = resource.setdefault("metadata", {})
        if kind.namespaced:
            if namespace:
                metadata["namespace"] = namespace
        else:
            metadata.pop("namespace", None)
        return resource

    # =========================================================================
    # Generic Resource Operations
    # =========================================================================

    async def get_resource(
        self,
        kind: ResourceKind,
        name: str,
        namespace: str | None = None,
    ) -> dict[str, Any] | None:
        """Fetch a resource by name, returning None when absent."""
        api = await self._get_api()
        cls = self._object_class(kind)
        try:
            obj = await cls.get(
                name, namespace=namespace if kind.namespaced else None, api=api
            )
        except kr8s.NotFoundError:
            return None
        except kr8s.ServerError as e:
            if _status_of(e) == 404:
                return None
            raise KubernetesApiError(kind, name, namespace, str(e), _status_of(e)) from e
        return dict(obj.raw)

    async def create_resource(
        self,
        kind: ResourceKind,
        body: dict[str, Any],
        namespace: str | None = None,
    ) -> dict[str, Any]:
        """Create a resource from a full body."""
        api = await self._get_api()
        resource = self._body_for(kind, body, namespace)
        name = resource["metadata"].get("name", "")
        obj = self._object_class(kind)(resource, api=api)
        try:
            await obj.create()
        except kr8s.ServerError as e:
            raise KubernetesApiError(
                kind, name, namespace, f"create failed: {e}", _status_of(e)
            ) from e
        logger.debug(f"Created {kind.describe(name, namespace)}")
        return dict(obj.raw)

    async def replace_resource(
        self,
        kind: ResourceKind,
        body: dict[str, Any],
        namespace: str | None = None,
    ) -> dict[str, Any]:
        """Replace (PUT) an existing resource.

        Note: kr8s has no replace helper, so the PUT is issued through the
        API session using the object's own endpoint.
        """
        api = await self._get_api()
        resource = self._body_for(kind, body, namespace)
        name = resource["metadata"].get("name", "")
        obj = self._object_class(kind)(resource, api=api)
        try:
            async with api.call_api(
                "PUT",
                version=obj.version,
                url=f"{obj.endpoint}/{name}",
                namespace=obj.namespace if kind.namespaced else None,
                data=json.dumps(resource),
            ) as response:
                replaced: dict[str, Any] = response.json()
        except kr8s.ServerError as e:
            raise KubernetesApiError(
                kind, name, namespace, f"replace failed: {e}", _status_of(e)
            ) from e
        logger.debug(f"Replaced {kind.describe(name, namespace)}")
        return replaced

    async def delete_resource(
        self,
        kind: ResourceKind,
        name: str,
        namespace: str | None = None,
    ) -> bool:
        """Delete a resource; absent resources are reported as False."""
        api = await self._get_api()
        cls = self._object_class(kind)
        try:
            obj = await cls.get(
                name, namespace=namespace if kind.namespaced else None, api=api
            )
            await obj.delete()
        except kr8s.NotFoundError:
            return False
        except kr8s.ServerError as e:
            if _status_of(e) == 404:
                return False
            raise KubernetesApiError(
                kind, name, namespace, f"delete failed: {e}", _status_of(e)
            ) from e
        logger.debug(f"Deleted {kind.describe(name, namespace)}")
        return True

    async def list_resources(
        self,
        kind: ResourceKind,
        namespace: str | None = None,
        *,
        all_namespaces: bool = False,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        """List resources of a kind."""
        api = await self._get_api()
        cls = self._object_class(kind)
        if not kind.namespaced:
            target_namespace = None
        elif all_namespaces:
            target_namespace = kr8s.ALL
        else:
            target_namespace = namespace

        kwargs: dict[str, Any] = {"namespace": target_namespace, "api": api}
        if label_selector:
            kwargs["label_selector"] = label_selector
        try:
            return [dict(obj.raw) async for obj in cls.list(**kwargs)]
        except kr8s.NotFoundError:
            # The resource type itself is not served (e.g. CRD not installed)
            return []
        except kr8s.ServerError as e:
            if _status_of(e) == 404:
                return []
            raise KubernetesApiError(
                kind, "*", namespace, f"list failed: {e}", _status_of(e)
            ) from e

    async def patch_resource(
        self,
        kind: ResourceKind,
        name: str,
        patch: dict[str, Any],
        namespace: str | None = None,
    ) -> dict[str, Any]:
        """Apply a JSON merge patch to a resource."""
        api = await self._get_api()
        cls = self._object_class(kind)
        try:
            obj = await cls.get(
                name, namespace=namespace if kind.namespaced else None, api=api
            )
            await obj.patch(patch, type="merge")
        except kr8s.NotFoundError as e:
            raise KubernetesApiError(
                kind, name, namespace, "patch failed: not found", 404
            ) from e
        except kr8s.ServerError as e:
            raise KubernetesApiError(
                kind, name, namespace, f"patch failed: {e}", _status_of(e)
            ) from e
        return dict(obj.raw)

    # =========================================================================
    # Capability Probes
    # =========================================================================

    async def _api_versions(self) -> set[str]:
        api = await self._get_api()
        return {version async for version in api.api_versions()}

    async def is_api_extension_supported(self, version: str) -> bool:
        """Check whether apiextensions.k8s.io/<version> is served."""
        versions = await self._api_versions()
        supported = f"apiextensions.k8s.io/{version}" in versions
        logger.debug(f"apiextensions.k8s.io/{version} supported: {supported}")
        return supported

    async def is_legacy_platform(self) -> bool:
        """OpenShift without the 4.x config API group is treated as 3.x."""
        versions = await self._api_versions()
        is_openshift = "route.openshift.io/v1" in versions
        is_openshift4 = "config.openshift.io/v1" in versions
        return is_openshift and not is_openshift4

    # =========================================================================
    # Workload Status
    # =========================================================================

    async def get_pods(
        self,
        namespace: str,
        label_selector: str | None = None,
    ) -> list[PodInfo]:
        """Get pods in a namespace with their readiness."""
        result = []
        for pod in await self.list_resources(
            ResourceKind.POD, namespace, label_selector=label_selector
        ):
            metadata = pod.get("metadata", {})
            status = pod.get("status", {})

            phase = status.get("phase", "Unknown")
            ready = any(
                condition.get("type") == "Ready"
                and condition.get("status") == "True"
                for condition in status.get("conditions", [])
            )

            pod_status = phase
            restarts = 0
            for cs in status.get("containerStatuses", []):
                restarts += cs.get("restartCount", 0)
                state = cs.get("state", {})
                if "waiting" in state:
                    reason = state["waiting"].get("reason", "")
                    if reason:
                        pod_status = reason

            result.append(
                PodInfo(
                    name=metadata.get("name", ""),
                    status=pod_status,
                    ready=ready,
                    restarts=restarts,
                    creation_timestamp=metadata.get("creationTimestamp", ""),
                )
            )

        return result

    async def get_replicasets(self, namespace: str) -> list[ReplicaSetInfo]:
        """Get all ReplicaSets in a namespace."""
        result = []

        for rs in await self.list_resources(ResourceKind.REPLICA_SET, namespace):
            metadata = rs.get("metadata", {})
            annotations = metadata.get("annotations", {})
            owner_refs = metadata.get("ownerReferences", [])

            created_at = None
            if creation_ts := metadata.get("creationTimestamp"):
                try:
                    created_at = datetime.fromisoformat(
                        creation_ts.replace("Z", "+00:00")
                    )
                except ValueError:
                    pass

            result.append(
                ReplicaSetInfo(
                    name=metadata.get("name", ""),
                    replicas=rs.get("spec", {}).get("replicas", 0),
                    available_replicas=rs.get("status", {}).get(
                        "availableReplicas", 0
                    ),
                    revision=annotations.get("deployment.kubernetes.io/revision", ""),
                    created_at=created_at,
                    owner_deployment=owner_refs[0].get("name") if owner_refs else None,
                )
            )

        return result
