"""Tests for namespace prefixing of cluster-scoped objects."""

from che_installer.cli.deployment.operator_deployer.manifests import ManifestObject
from che_installer.cli.deployment.operator_deployer.naming import (
    cluster_object_name,
    cluster_object_prefix,
    namespaced_cluster_role,
    namespaced_cluster_role_binding,
)
from tests.fixtures import RBAC_MANIFESTS


def test_cluster_object_name_joins_with_dash():
    assert cluster_object_prefix("che") == "che-"
    assert cluster_object_name("che", "admin") == "che-admin"


def test_namespaced_cluster_role_renames_copy():
    """The manifest itself must stay untouched."""
    manifest = ManifestObject.from_dict(RBAC_MANIFESTS["cluster_role.yaml"])

    body = namespaced_cluster_role(manifest, "che")

    assert body["metadata"]["name"] == "che-che-operator"
    assert manifest.body["metadata"]["name"] == "che-operator"


def test_namespaced_cluster_role_binding_rewrites_ref_and_subjects():
    """Binding name, role reference and subject namespaces follow the namespace."""
    manifest = ManifestObject.from_dict(
        {
            "kind": "ClusterRoleBinding",
            "metadata": {"name": "admin"},
            "roleRef": {"kind": "ClusterRole", "name": "admin"},
            "subjects": [
                {"kind": "ServiceAccount", "name": "a", "namespace": "default"},
                {"kind": "ServiceAccount", "name": "b"},
            ],
        }
    )

    body = namespaced_cluster_role_binding(manifest, "che")

    assert body["metadata"]["name"] == "che-admin"
    assert body["roleRef"]["name"] == "che-admin"
    assert [s["namespace"] for s in body["subjects"]] == ["che", "che"]
    assert manifest.body["subjects"][0]["namespace"] == "default"


def test_namespaced_cluster_role_binding_without_subjects():
    manifest = ManifestObject.from_dict(
        {"kind": "ClusterRoleBinding", "metadata": {"name": "view"}, "roleRef": {"name": "view"}}
    )

    body = namespaced_cluster_role_binding(manifest, "eclipse-che")

    assert body["metadata"]["name"] == "eclipse-che-view"
    assert "subjects" not in body
