"""CheCluster custom resource definition: file selection and apply."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from loguru import logger

from che_installer.infra.constants import DEFAULT_CONSTANTS, InstallerConstants, ManifestPaths
from che_installer.infra.k8s.controller import KubernetesController, ResourceKind

from .applier import ApplyAction
from .errors import ConsistencyError
from .manifests import load_manifest_body


def select_crd_path(paths: ManifestPaths, api_extensions_v1: bool) -> Path:
    """Pick the CRD manifest matching the cluster's API-extensions support.

    Clusters without ``apiextensions.k8s.io/v1`` get the v1beta1 flavour
    when that file ships with the templates; every other case uses the
    default v1 file.
    """
    if not api_extensions_v1 and paths.crd_v1beta1.exists():
        return paths.crd_v1beta1
    return paths.crd


def crd_kind_for(body: dict[str, Any]) -> ResourceKind:
    if body.get("apiVersion") == ResourceKind.CRD_V1BETA1.api_version:
        return ResourceKind.CRD_V1BETA1
    return ResourceKind.CRD


def crd_kind_for_cluster(api_extensions_v1: bool) -> ResourceKind:
    return ResourceKind.CRD if api_extensions_v1 else ResourceKind.CRD_V1BETA1


class CrdManager:
    """Creates and replaces the CheCluster CRD.

    Attributes:
        controller: Kubernetes API backend
        constants: Installer constants
    """

    def __init__(
        self,
        controller: KubernetesController,
        constants: InstallerConstants | None = None,
    ) -> None:
        self.controller = controller
        self.constants = constants or DEFAULT_CONSTANTS

    async def apply(self, crd_path: Path, *, update: bool) -> ApplyAction:
        """Create the CRD, or replace it in update mode.

        A replace carries the existing object's resourceVersion so the API
        server rejects it if the CRD changed in between.

        Raises:
            ConsistencyError: If the existing CRD has no resourceVersion
        """
        body = load_manifest_body(crd_path)
        kind = crd_kind_for(body)
        name = self.constants.CHE_CLUSTER_CRD
        body.setdefault("metadata", {})["name"] = name

        existing = await self.controller.get_resource(kind, name)
        if existing is None:
            await self.controller.create_resource(kind, body)
            logger.info(f"Created CRD {name} from {crd_path.name}")
            return ApplyAction.CREATED

        if not update:
            return ApplyAction.EXISTING

        resource_version = (existing.get("metadata") or {}).get("resourceVersion")
        if not resource_version:
            raise ConsistencyError(
                f"Fetched CRD {name} without resource version",
                details="Refusing to replace a CustomResourceDefinition whose "
                "current version cannot be verified.",
            )

        body["metadata"]["resourceVersion"] = resource_version
        await self.controller.replace_resource(kind, body)
        logger.info(f"Replaced CRD {name} at resourceVersion {resource_version}")
        return ApplyAction.REPLACED
