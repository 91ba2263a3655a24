"""Per-run state shared by the steps of one installer pipeline.

A ``RunContext`` is created once per pipeline invocation and passed by
reference to every step. Fields start out unset (None) and are written by
the step that owns them; later steps declare the fields they read and the
pipeline runner refuses to start a step whose inputs are still unset.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .flags import InstallerFlags
from .manifests import ManifestObject


@dataclass
class ResourceBuckets:
    """RBAC manifests classified by kind, in the order they were scanned."""

    roles: list[ManifestObject] = field(default_factory=list)
    role_bindings: list[ManifestObject] = field(default_factory=list)
    cluster_roles: list[ManifestObject] = field(default_factory=list)
    cluster_role_bindings: list[ManifestObject] = field(default_factory=list)

    def total(self) -> int:
        return (
            len(self.roles)
            + len(self.role_bindings)
            + len(self.cluster_roles)
            + len(self.cluster_role_bindings)
        )


@dataclass
class RunContext:
    """Mutable state for a single deploy, update or delete run.

    Attributes:
        flags: Validated installer inputs
        resources_path: Directory holding the operator manifests
        api_extensions_v1: Cached probe result, apiextensions.k8s.io/v1 served
        legacy_platform: Cached probe result, cluster is OpenShift 3.x
        buckets: RBAC manifests found by the scanner
        custom_cr: CheCluster supplied by the user
        cr_patch: Merge patch applied to the CheCluster on update
        default_cr: CheCluster loaded from the templates when no custom one
        deployed_operator_deployment: Operator deployment found before update
        deployed_image_name: Image name of the running operator
        deployed_image_tag: Image tag of the running operator
        new_image_name: Image name the update installs
        new_image_tag: Image tag the update installs
        warnings: Non-fatal conditions collected during the run
    """

    flags: InstallerFlags
    resources_path: Path
    api_extensions_v1: bool | None = None
    legacy_platform: bool | None = None
    buckets: ResourceBuckets | None = None
    custom_cr: dict[str, Any] | None = None
    cr_patch: dict[str, Any] | None = None
    default_cr: dict[str, Any] | None = None
    deployed_operator_deployment: dict[str, Any] | None = None
    deployed_image_name: str | None = None
    deployed_image_tag: str | None = None
    new_image_name: str | None = None
    new_image_tag: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def namespace(self) -> str:
        return self.flags.namespace

    @classmethod
    def field_names(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls))

    def initialized_fields(self) -> frozenset[str]:
        """Names of fields that currently hold a value."""
        return frozenset(f.name for f in fields(self) if getattr(self, f.name) is not None)
