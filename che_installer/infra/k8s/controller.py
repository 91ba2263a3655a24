"""Abstract Kubernetes controller interface.

Defines the contract for the Kubernetes operations the installer needs.
The installer pipeline only talks to this interface; the kr8s backend
implements it against a live cluster and tests use an in-memory fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

# =============================================================================
# Resource Kinds
# =============================================================================


class ResourceKind(Enum):
    """Kubernetes resource kinds the installer manages.

    Each member carries ``(kind, api_version, plural, namespaced)``.
    """

    SERVICE_ACCOUNT = ("ServiceAccount", "v1", "serviceaccounts", True)
    ROLE = ("Role", "rbac.authorization.k8s.io/v1", "roles", True)
    ROLE_BINDING = (
        "RoleBinding",
        "rbac.authorization.k8s.io/v1",
        "rolebindings",
        True,
    )
    CLUSTER_ROLE = (
        "ClusterRole",
        "rbac.authorization.k8s.io/v1",
        "clusterroles",
        False,
    )
    CLUSTER_ROLE_BINDING = (
        "ClusterRoleBinding",
        "rbac.authorization.k8s.io/v1",
        "clusterrolebindings",
        False,
    )
    CRD = (
        "CustomResourceDefinition",
        "apiextensions.k8s.io/v1",
        "customresourcedefinitions",
        False,
    )
    CRD_V1BETA1 = (
        "CustomResourceDefinition",
        "apiextensions.k8s.io/v1beta1",
        "customresourcedefinitions",
        False,
    )
    DEPLOYMENT = ("Deployment", "apps/v1", "deployments", True)
    REPLICA_SET = ("ReplicaSet", "apps/v1", "replicasets", True)
    POD = ("Pod", "v1", "pods", True)
    PERSISTENT_VOLUME_CLAIM = (
        "PersistentVolumeClaim",
        "v1",
        "persistentvolumeclaims",
        True,
    )
    CHE_CLUSTER = ("CheCluster", "org.eclipse.che/v1", "checlusters", True)
    OAUTH_CLIENT_AUTHORIZATION = (
        "OAuthClientAuthorization",
        "oauth.openshift.io/v1",
        "oauthclientauthorizations",
        False,
    )

    def __init__(
        self, kind: str, api_version: str, plural: str, namespaced: bool
    ) -> None:
        self.kind = kind
        self.api_version = api_version
        self.plural = plural
        self.namespaced = namespaced

    def describe(self, name: str, namespace: str | None = None) -> str:
        """Human readable identity used in messages, e.g. ``Role che/admin``."""
        if self.namespaced and namespace:
            return f"{self.kind} {namespace}/{name}"
        return f"{self.kind} {name}"


# =============================================================================
# Data Types
# =============================================================================


class KubernetesApiError(Exception):
    """Raised when a call against the cluster API fails."""

    def __init__(
        self,
        kind: ResourceKind,
        name: str,
        namespace: str | None,
        message: str,
        status: int | None = None,
    ):
        self.kind = kind
        self.name = name
        self.namespace = namespace
        self.status = status
        self.message = f"{kind.describe(name, namespace)}: {message}"
        super().__init__(self.message)

    @property
    def not_found(self) -> bool:
        return self.status == 404


@dataclass
class PodInfo:
    """Information about a Kubernetes pod."""

    name: str
    status: str
    ready: bool = False
    restarts: int = 0
    creation_timestamp: str = ""


@dataclass
class ReplicaSetInfo:
    """Information about a Kubernetes ReplicaSet."""

    name: str
    replicas: int
    available_replicas: int = 0
    revision: str = ""
    created_at: datetime | None = None
    owner_deployment: str | None = None

    @property
    def revision_number(self) -> int:
        try:
            return int(self.revision)
        except ValueError:
            return -1


# =============================================================================
# Abstract Controller
# =============================================================================


class KubernetesController(ABC):
    """Abstract base class for Kubernetes operations.

    All methods are async; the installer pipeline awaits them one at a time.
    Use `run_sync()` to drive a coroutine from synchronous code.

    Resource bodies are plain dictionaries in the shape of the Kubernetes
    API objects (``apiVersion``, ``kind``, ``metadata``, ...).
    """

    # =========================================================================
    # Generic Resource Operations
    # =========================================================================

    @abstractmethod
    async def get_resource(
        self,
        kind: ResourceKind,
        name: str,
        namespace: str | None = None,
    ) -> dict[str, Any] | None:
        """Fetch a resource by name.

        Args:
            kind: Resource kind
            name: Resource name
            namespace: Namespace for namespaced kinds

        Returns:
            The resource body, or None if it does not exist

        Raises:
            KubernetesApiError: On any failure other than not-found
        """
        ...

    async def resource_exists(
        self,
        kind: ResourceKind,
        name: str,
        namespace: str | None = None,
    ) -> bool:
        """Check whether a resource exists."""
        return await self.get_resource(kind, name, namespace) is not None

    @abstractmethod
    async def create_resource(
        self,
        kind: ResourceKind,
        body: dict[str, Any],
        namespace: str | None = None,
    ) -> dict[str, Any]:
        """Create a resource from a full body.

        Args:
            kind: Resource kind
            body: Resource body; ``metadata.name`` must be set
            namespace: Target namespace for namespaced kinds (overrides
                       ``metadata.namespace``)

        Returns:
            The created resource as returned by the API server
        """
        ...

    @abstractmethod
    async def replace_resource(
        self,
        kind: ResourceKind,
        body: dict[str, Any],
        namespace: str | None = None,
    ) -> dict[str, Any]:
        """Replace (PUT) an existing resource, matched by ``metadata.name``.

        Args:
            kind: Resource kind
            body: Full replacement body
            namespace: Target namespace for namespaced kinds

        Returns:
            The replaced resource as returned by the API server
        """
        ...

    @abstractmethod
    async def delete_resource(
        self,
        kind: ResourceKind,
        name: str,
        namespace: str | None = None,
    ) -> bool:
        """Delete a resource.

        Deleting an absent resource is not an error.

        Returns:
            True if a delete call was accepted, False if the resource was absent

        Raises:
            KubernetesApiError: On any failure other than not-found
        """
        ...

    @abstractmethod
    async def list_resources(
        self,
        kind: ResourceKind,
        namespace: str | None = None,
        *,
        all_namespaces: bool = False,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        """List resources of a kind.

        Args:
            kind: Resource kind
            namespace: Namespace to list in (namespaced kinds)
            all_namespaces: List across every namespace
            label_selector: Optional label selector

        Returns:
            List of resource bodies
        """
        ...

    @abstractmethod
    async def patch_resource(
        self,
        kind: ResourceKind,
        name: str,
        patch: dict[str, Any],
        namespace: str | None = None,
    ) -> dict[str, Any]:
        """Apply a JSON merge patch to a resource.

        Returns:
            The patched resource as returned by the API server
        """
        ...

    # =========================================================================
    # Capability Probes
    # =========================================================================

    @abstractmethod
    async def is_api_extension_supported(self, version: str) -> bool:
        """Check whether ``apiextensions.k8s.io/<version>`` is served.

        Args:
            version: API version, e.g. "v1"

        Returns:
            True if the cluster serves that API-extensions version
        """
        ...

    @abstractmethod
    async def is_legacy_platform(self) -> bool:
        """Check whether the cluster is a legacy OpenShift 3.x platform."""
        ...

    # =========================================================================
    # Workload Status
    # =========================================================================

    @abstractmethod
    async def get_pods(
        self,
        namespace: str,
        label_selector: str | None = None,
    ) -> list[PodInfo]:
        """Get pods in a namespace, optionally filtered by label selector."""
        ...

    @abstractmethod
    async def get_replicasets(self, namespace: str) -> list[ReplicaSetInfo]:
        """Get all ReplicaSets in a namespace."""
        ...
