"""Shared pytest fixtures for installer tests.

The centrepiece is ``FakeKubernetesController``, an in-memory stand-in for
the cluster API that records every call so tests can assert on exactly
which objects were created, replaced, patched or deleted.
"""

from __future__ import annotations

import copy
import io
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest
import yaml
from rich.console import Console

from che_installer.cli.deployment.operator_deployer.custom_resource import merge_patch
from che_installer.cli.deployment.operator_deployer.flags import InstallerFlags
from che_installer.cli.shared.console import CLIConsole
from che_installer.infra.constants import InstallerConstants
from che_installer.infra.k8s.controller import (
    KubernetesApiError,
    KubernetesController,
    PodInfo,
    ReplicaSetInfo,
    ResourceKind,
)

__all__ = [
    "FakeCall",
    "FakeKubernetesController",
    "NO_WAIT_CONSTANTS",
    "OPERATOR_IMAGE",
    "fake_controller",
    "no_wait_constants",
    "quiet_console",
    "templates_dir",
    "make_flags",
]

# Constants with every delay collapsed so pipelines run instantly
NO_WAIT_CONSTANTS = InstallerConstants(
    FLUSH_DELAY=0,
    POD_READY_INTERVAL=0,
    POD_READY_TIMEOUT=0.2,
    REPLICA_SETTLE_DELAY=0,
    REPLICA_INTERVAL=0,
    REPLICA_TIMEOUT=0.2,
    CR_DELETE_INTERVAL=0,
    CR_DELETE_ATTEMPTS=3,
    CR_FINALIZER_GRACE=0,
)

OPERATOR_IMAGE = "quay.io/eclipse/che-operator:7.30.0"

MUTATING_OPERATIONS = frozenset({"create", "replace", "patch", "delete"})


# =============================================================================
# Fake Kubernetes Controller
# =============================================================================


@dataclass(frozen=True)
class FakeCall:
    """One recorded controller call."""

    operation: str
    kind: ResourceKind
    name: str
    namespace: str | None = None


def _key(kind: ResourceKind, name: str, namespace: str | None) -> tuple[str, str | None, str]:
    # Both CRD flavours address the same stored object
    return (kind.plural, namespace if kind.namespaced else None, name)


def _matches_selector(body: dict[str, Any], label_selector: str | None) -> bool:
    if not label_selector:
        return True
    labels = (body.get("metadata") or {}).get("labels") or {}
    for term in label_selector.split(","):
        key, _, value = term.partition("=")
        if labels.get(key.strip()) != value.strip():
            return False
    return True


class FakeKubernetesController(KubernetesController):
    """In-memory KubernetesController that records every call.

    Attributes:
        objects: Stored resource bodies keyed by (plural, namespace, name)
        calls: Every create/replace/patch/delete/get/list call, in order
        pods: Pods reported per namespace
        replicasets: ReplicaSets reported per namespace
        finalized: Keys whose deletion is held back until finalizers are
            cleared with a patch
    """

    def __init__(
        self,
        *,
        api_extensions_v1: bool = True,
        legacy_platform: bool = False,
        simulate_rollout: bool = True,
    ) -> None:
        self.api_extensions_v1 = api_extensions_v1
        self.legacy_platform = legacy_platform
        self.simulate_rollout = simulate_rollout

        self.objects: dict[tuple[str, str | None, str], dict[str, Any]] = {}
        self.calls: list[FakeCall] = []
        self.pods: dict[str, list[PodInfo]] = {}
        self.replicasets: dict[str, list[ReplicaSetInfo]] = {}
        self.finalized: set[tuple[str, str | None, str]] = set()

        self._failures: dict[tuple[str, str, str], tuple[Exception, bool]] = {}
        self._resource_version = 0
        self._revision = 0

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    def seed(
        self,
        kind: ResourceKind,
        body: dict[str, Any],
        namespace: str | None = None,
    ) -> dict[str, Any]:
        """Store an object without recording a call."""
        stored = self._store(kind, copy.deepcopy(body), namespace)
        return copy.deepcopy(stored)

    def stored(
        self, kind: ResourceKind, name: str, namespace: str | None = None
    ) -> dict[str, Any] | None:
        return self.objects.get(_key(kind, name, namespace))

    def hold_deletion(self, kind: ResourceKind, name: str, namespace: str | None = None) -> None:
        """Keep an object alive on delete until its finalizers are cleared."""
        self.finalized.add(_key(kind, name, namespace))

    def fail_on(
        self,
        operation: str,
        kind: ResourceKind,
        name: str,
        error: Exception,
        *,
        remove: bool = False,
    ) -> None:
        """Make the next matching call raise ``error``.

        With ``remove`` the object disappears before the error is raised,
        as if something else deleted it concurrently.
        """
        self._failures[(operation, kind.plural, name)] = (error, remove)

    def calls_for(
        self, operation: str, kind: ResourceKind | None = None
    ) -> list[FakeCall]:
        return [
            call
            for call in self.calls
            if call.operation == operation and (kind is None or call.kind is kind)
        ]

    def names_for(self, operation: str, kind: ResourceKind) -> list[str]:
        return [call.name for call in self.calls_for(operation, kind)]

    def mutating_calls(self) -> list[FakeCall]:
        return [call for call in self.calls if call.operation in MUTATING_OPERATIONS]

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _next_resource_version(self) -> str:
        self._resource_version += 1
        return str(self._resource_version)

    def _store(
        self, kind: ResourceKind, body: dict[str, Any], namespace: str | None
    ) -> dict[str, Any]:
        metadata = body.setdefault("metadata", {})
        target_namespace = (namespace or metadata.get("namespace")) if kind.namespaced else None
        if target_namespace:
            metadata["namespace"] = target_namespace
        metadata["resourceVersion"] = self._next_resource_version()
        body.setdefault("apiVersion", kind.api_version)
        body.setdefault("kind", kind.kind)
        self.objects[_key(kind, metadata["name"], target_namespace)] = body
        return body

    def _record(
        self, operation: str, kind: ResourceKind, name: str, namespace: str | None
    ) -> None:
        self.calls.append(
            FakeCall(operation, kind, name, namespace if kind.namespaced else None)
        )
        failure = self._failures.pop((operation, kind.plural, name), None)
        if failure is not None:
            error, remove = failure
            if remove:
                self.objects.pop(_key(kind, name, namespace), None)
            raise error

    def _rollout(self, name: str, namespace: str | None) -> None:
        if not self.simulate_rollout or namespace is None:
            return
        self._revision += 1
        self.replicasets.setdefault(namespace, []).append(
            ReplicaSetInfo(
                name=f"{name}-{self._revision}",
                replicas=1,
                available_replicas=1,
                revision=str(self._revision),
                owner_deployment=name,
            )
        )
        self.pods[namespace] = [
            PodInfo(name=f"{name}-{self._revision}-pod", status="Running", ready=True)
        ]

    # -------------------------------------------------------------------------
    # KubernetesController
    # -------------------------------------------------------------------------

    async def get_resource(
        self,
        kind: ResourceKind,
        name: str,
        namespace: str | None = None,
    ) -> dict[str, Any] | None:
        self._record("get", kind, name, namespace)
        body = self.objects.get(_key(kind, name, namespace))
        return copy.deepcopy(body) if body is not None else None

    async def create_resource(
        self,
        kind: ResourceKind,
        body: dict[str, Any],
        namespace: str | None = None,
    ) -> dict[str, Any]:
        name = body["metadata"]["name"]
        self._record("create", kind, name, namespace)
        if _key(kind, name, namespace) in self.objects:
            raise KubernetesApiError(kind, name, namespace, "already exists", status=409)
        stored = self._store(kind, copy.deepcopy(body), namespace)
        if kind is ResourceKind.DEPLOYMENT:
            self._rollout(name, namespace)
        return copy.deepcopy(stored)

    async def replace_resource(
        self,
        kind: ResourceKind,
        body: dict[str, Any],
        namespace: str | None = None,
    ) -> dict[str, Any]:
        name = body["metadata"]["name"]
        self._record("replace", kind, name, namespace)
        existing = self.objects.get(_key(kind, name, namespace))
        if existing is None:
            raise KubernetesApiError(kind, name, namespace, "not found", status=404)

        expected = (body.get("metadata") or {}).get("resourceVersion")
        if expected and expected != existing["metadata"]["resourceVersion"]:
            raise KubernetesApiError(kind, name, namespace, "conflict", status=409)

        stored = self._store(kind, copy.deepcopy(body), namespace)
        if kind is ResourceKind.DEPLOYMENT:
            self._rollout(name, namespace)
        return copy.deepcopy(stored)

    async def delete_resource(
        self,
        kind: ResourceKind,
        name: str,
        namespace: str | None = None,
    ) -> bool:
        self._record("delete", kind, name, namespace)
        key = _key(kind, name, namespace)
        if key not in self.objects:
            return False
        if key not in self.finalized:
            del self.objects[key]
        return True

    async def list_resources(
        self,
        kind: ResourceKind,
        namespace: str | None = None,
        *,
        all_namespaces: bool = False,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        self._record("list", kind, "", namespace)
        items = []
        for (plural, item_namespace, _), body in self.objects.items():
            if plural != kind.plural:
                continue
            if kind.namespaced and not all_namespaces and item_namespace != namespace:
                continue
            if _matches_selector(body, label_selector):
                items.append(copy.deepcopy(body))
        return items

    async def patch_resource(
        self,
        kind: ResourceKind,
        name: str,
        patch: dict[str, Any],
        namespace: str | None = None,
    ) -> dict[str, Any]:
        self._record("patch", kind, name, namespace)
        key = _key(kind, name, namespace)
        existing = self.objects.get(key)
        if existing is None:
            raise KubernetesApiError(kind, name, namespace, "not found", status=404)

        patched = merge_patch(existing, patch)
        if key in self.finalized and not (patched.get("metadata") or {}).get("finalizers"):
            # Finalizers cleared: a pending deletion completes
            self.finalized.discard(key)
            del self.objects[key]
            return patched

        self.objects[key] = patched
        return copy.deepcopy(patched)

    async def is_api_extension_supported(self, version: str) -> bool:
        return version == "v1" and self.api_extensions_v1

    async def is_legacy_platform(self) -> bool:
        return self.legacy_platform

    async def get_pods(
        self, namespace: str, label_selector: str | None = None
    ) -> list[PodInfo]:
        return list(self.pods.get(namespace, []))

    async def get_replicasets(self, namespace: str) -> list[ReplicaSetInfo]:
        return list(self.replicasets.get(namespace, []))


# =============================================================================
# Manifests
# =============================================================================

SERVICE_ACCOUNT = {
    "apiVersion": "v1",
    "kind": "ServiceAccount",
    "metadata": {"name": "che-operator"},
}

OPERATOR_DEPLOYMENT = {
    "apiVersion": "apps/v1",
    "kind": "Deployment",
    "metadata": {"name": "che-operator", "namespace": "default"},
    "spec": {
        "replicas": 1,
        "selector": {"matchLabels": {"app": "che-operator"}},
        "template": {
            "metadata": {"labels": {"app": "che-operator"}},
            "spec": {
                "serviceAccountName": "che-operator",
                "containers": [
                    {"name": "che-operator", "image": OPERATOR_IMAGE},
                    {
                        "name": "devworkspace-controller",
                        "image": "quay.io/devfile/devworkspace-controller:next",
                    },
                ],
            },
        },
    },
}

RBAC_MANIFESTS = {
    "role.yaml": {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "Role",
        "metadata": {"name": "che-operator"},
        "rules": [{"apiGroups": [""], "resources": ["pods"], "verbs": ["get"]}],
    },
    "role_binding.yaml": {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "RoleBinding",
        "metadata": {"name": "che-operator"},
        "roleRef": {"apiGroup": "rbac.authorization.k8s.io", "kind": "Role", "name": "che-operator"},
        "subjects": [{"kind": "ServiceAccount", "name": "che-operator"}],
    },
    "cluster_role.yaml": {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "ClusterRole",
        "metadata": {"name": "che-operator"},
        "rules": [{"apiGroups": [""], "resources": ["namespaces"], "verbs": ["get"]}],
    },
    "cluster_role_binding.yaml": {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "ClusterRoleBinding",
        "metadata": {"name": "che-operator"},
        "roleRef": {
            "apiGroup": "rbac.authorization.k8s.io",
            "kind": "ClusterRole",
            "name": "che-operator",
        },
        "subjects": [
            {"kind": "ServiceAccount", "name": "che-operator", "namespace": "default"}
        ],
    },
}

CRD_V1 = {
    "apiVersion": "apiextensions.k8s.io/v1",
    "kind": "CustomResourceDefinition",
    "metadata": {"name": "checlusters.org.eclipse.che"},
    "spec": {"group": "org.eclipse.che", "names": {"kind": "CheCluster"}},
}

CRD_V1BETA1 = {
    "apiVersion": "apiextensions.k8s.io/v1beta1",
    "kind": "CustomResourceDefinition",
    "metadata": {"name": "checlusters.org.eclipse.che"},
    "spec": {"group": "org.eclipse.che", "names": {"kind": "CheCluster"}},
}

DEFAULT_CHE_CLUSTER = {
    "apiVersion": "org.eclipse.che/v1",
    "kind": "CheCluster",
    "metadata": {"name": "eclipse-che"},
    "spec": {"server": {"cheFlavor": "che"}, "devWorkspace": {"enable": False}},
}


def write_yaml(path: Path, content: dict[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(content))
    return path


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_controller() -> FakeKubernetesController:
    """In-memory cluster serving apiextensions v1, not OpenShift 3."""
    return FakeKubernetesController()


@pytest.fixture
def no_wait_constants() -> InstallerConstants:
    return NO_WAIT_CONSTANTS


@pytest.fixture
def quiet_console() -> CLIConsole:
    """CLIConsole writing into a buffer instead of the terminal."""
    return CLIConsole(Console(file=io.StringIO(), force_terminal=False, width=200))


@pytest.fixture
def templates_dir(tmp_path: Path) -> Path:
    """Templates directory with a complete che-operator manifest set."""
    root = tmp_path / "templates"
    resources = root / "che-operator"

    write_yaml(resources / "service_account.yaml", SERVICE_ACCOUNT)
    write_yaml(resources / "operator.yaml", OPERATOR_DEPLOYMENT)
    for filename, manifest in RBAC_MANIFESTS.items():
        write_yaml(resources / filename, manifest)

    write_yaml(resources / "crds" / "org_v1_che_crd.yaml", CRD_V1)
    write_yaml(resources / "crds" / "org_v1_che_crd-v1beta1.yaml", CRD_V1BETA1)
    write_yaml(resources / "crds" / "org_v1_che_cr.yaml", DEFAULT_CHE_CLUSTER)
    return root


@pytest.fixture
def make_flags(templates_dir: Path) -> Callable[..., InstallerFlags]:
    """Factory for InstallerFlags pointing at the test templates."""

    def _make(**overrides: Any) -> InstallerFlags:
        values: dict[str, Any] = {"namespace": "che", "templates": templates_dir}
        values.update(overrides)
        return InstallerFlags(**values)

    return _make
