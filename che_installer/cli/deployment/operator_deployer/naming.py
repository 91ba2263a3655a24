"""Collision-safe names for cluster-scoped objects.

Cluster roles and cluster role bindings are shared by every installation
in a cluster, so each installation prefixes them with its namespace.
"""

from __future__ import annotations

from typing import Any

from .manifests import ManifestObject


def cluster_object_prefix(namespace: str) -> str:
    return f"{namespace}-"


def cluster_object_name(namespace: str, name: str) -> str:
    """On-cluster name of a cluster-scoped object, ``<namespace>-<name>``."""
    return cluster_object_prefix(namespace) + name


def namespaced_cluster_role(manifest: ManifestObject, namespace: str) -> dict[str, Any]:
    """Copy of a ClusterRole manifest carrying its prefixed name."""
    body = manifest.copy_body()
    body.setdefault("metadata", {})["name"] = cluster_object_name(namespace, manifest.name)
    return body


def namespaced_cluster_role_binding(
    manifest: ManifestObject, namespace: str
) -> dict[str, Any]:
    """Copy of a ClusterRoleBinding manifest rewritten for one installation.

    The binding name and its role reference get the namespace prefix and
    every subject is moved into the namespace.
    """
    body = manifest.copy_body()
    body.setdefault("metadata", {})["name"] = cluster_object_name(namespace, manifest.name)

    role_ref = body.setdefault("roleRef", {})
    role_ref["name"] = cluster_object_name(namespace, role_ref.get("name", ""))

    for subject in body.get("subjects") or []:
        subject["namespace"] = namespace
    return body
