"""Classification of RBAC manifests found in the resources directory."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from .context import ResourceBuckets
from .manifests import YAML_SUFFIXES, ManifestObject, load_yaml_file


def scan_resources(resources_path: Path) -> tuple[ResourceBuckets, list[str]]:
    """Read every YAML manifest in a directory and bucket RBAC objects by kind.

    Only the top level of the directory is scanned. Files that are not YAML,
    documents without a ``kind``, and kinds other than Role, RoleBinding,
    ClusterRole and ClusterRoleBinding are skipped.

    Args:
        resources_path: Directory holding the operator manifests

    Returns:
        The populated buckets and a list of consistency warnings. A role
        count that differs from the role-binding count (or likewise for the
        cluster-scoped pair) yields a warning, never an error.
    """
    buckets = ResourceBuckets()
    targets = {
        "Role": buckets.roles,
        "RoleBinding": buckets.role_bindings,
        "ClusterRole": buckets.cluster_roles,
        "ClusterRoleBinding": buckets.cluster_role_bindings,
    }

    for path in sorted(resources_path.iterdir()):
        if not path.is_file() or path.suffix not in YAML_SUFFIXES:
            continue

        content = load_yaml_file(path)
        if not isinstance(content, dict) or not content.get("kind"):
            logger.debug(f"Skipping {path.name}: no object kind")
            continue

        bucket = targets.get(content["kind"])
        if bucket is None:
            continue
        bucket.append(ManifestObject.from_dict(content, source=path))

    warnings = []
    if len(buckets.roles) != len(buckets.role_bindings):
        warnings.append("Number of Roles and Role Bindings is different")
    if len(buckets.cluster_roles) != len(buckets.cluster_role_bindings):
        warnings.append("Number of Cluster Roles and Cluster Role Bindings is different")

    for warning in warnings:
        logger.warning(warning)

    logger.info(
        f"Found {len(buckets.roles)} Role(s), {len(buckets.role_bindings)} RoleBinding(s), "
        f"{len(buckets.cluster_roles)} ClusterRole(s), "
        f"{len(buckets.cluster_role_bindings)} ClusterRoleBinding(s) in {resources_path}"
    )
    return buckets, warnings
