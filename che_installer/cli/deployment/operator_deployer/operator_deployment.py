"""Operator deployment: load, patch and apply.

The deployment manifest ships with the templates. Before it is sent to the
cluster it is patched for the run:

- the ``che-operator`` container image is replaced when an image override
  is requested;
- the deployment is moved into the target namespace;
- on clusters without ``apiextensions.k8s.io/v1`` every container other
  than ``che-operator`` is dropped, since the sidecars need APIs those
  clusters do not serve.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from loguru import logger

from che_installer.infra.constants import DEFAULT_CONSTANTS, InstallerConstants
from che_installer.infra.k8s.controller import KubernetesController, ResourceKind

from .applier import ApplyAction
from .errors import CapabilityError
from .manifests import load_manifest_body


def _containers(deployment: dict[str, Any]) -> list[dict[str, Any]]:
    spec = deployment.get("spec") or {}
    template = spec.get("template") or {}
    pod_spec = template.get("spec") or {}
    return pod_spec.get("containers") or []


class OperatorDeploymentManager:
    """Builds and applies the operator deployment.

    Attributes:
        controller: Kubernetes API backend
        constants: Installer constants
    """

    def __init__(
        self,
        controller: KubernetesController,
        constants: InstallerConstants | None = None,
    ) -> None:
        """Initialize the deployment manager.

        Args:
            controller: Kubernetes API backend
            constants: Optional installer constants
        """
        self.controller = controller
        self.constants = constants or DEFAULT_CONSTANTS

    def read_operator_deployment(
        self,
        path: Path,
        *,
        namespace: str | None,
        operator_image: str | None,
        api_extensions_v1: bool,
    ) -> dict[str, Any]:
        """Load the deployment manifest and patch it for this run.

        Args:
            path: Path to the deployment manifest
            namespace: Namespace to move the deployment into
            operator_image: Image override for the operator container
            api_extensions_v1: Whether the cluster serves apiextensions v1

        Returns:
            The patched deployment body

        Raises:
            CapabilityError: If the manifest has no name, or the image
                override targets a container the manifest does not have
        """
        deployment = load_manifest_body(path)
        metadata = deployment.get("metadata") or {}
        name = metadata.get("name")
        if not name:
            raise CapabilityError(f"Deployment read from {path} must have name specified")

        container_name = self.constants.OPERATOR_CONTAINER_NAME
        if operator_image:
            container = next(
                (c for c in _containers(deployment) if c.get("name") == container_name),
                None,
            )
            if container is None:
                raise CapabilityError(
                    f"Container '{container_name}' not found in deployment '{name}'",
                    details=f"Cannot apply image override '{operator_image}'.",
                )
            container["image"] = operator_image

        if namespace:
            metadata["namespace"] = namespace
            deployment["metadata"] = metadata

        if not api_extensions_v1:
            pod_spec = (
                deployment.setdefault("spec", {})
                .setdefault("template", {})
                .setdefault("spec", {})
            )
            pod_spec["containers"] = [
                c for c in _containers(deployment) if c.get("name") == container_name
            ]
            logger.debug(f"Trimmed deployment '{name}' to container '{container_name}'")

        return deployment

    def retrieve_container_image(self, deployment: dict[str, Any]) -> str:
        """Image of the operator container in a deployment.

        Raises:
            CapabilityError: If the container is missing or has no image
        """
        metadata = deployment.get("metadata") or {}
        identity = f"{metadata.get('namespace')}/{metadata.get('name')}"
        container_name = self.constants.OPERATOR_CONTAINER_NAME

        container = next(
            (c for c in _containers(deployment) if c.get("name") == container_name),
            None,
        )
        if container is None:
            raise CapabilityError(
                f"Can not evaluate image of {identity} deployment: "
                f"container '{container_name}' not found"
            )
        if not container.get("image"):
            raise CapabilityError(
                f"Container {container_name} in deployment {identity} must have image specified"
            )
        return str(container["image"])

    async def create(self, deployment: dict[str, Any], namespace: str) -> ApplyAction:
        """Create the deployment unless it already exists."""
        name = deployment["metadata"]["name"]
        if await self.controller.resource_exists(ResourceKind.DEPLOYMENT, name, namespace):
            return ApplyAction.EXISTING

        await self.controller.create_resource(ResourceKind.DEPLOYMENT, deployment, namespace)
        logger.info(f"Created deployment {namespace}/{name}")
        return ApplyAction.CREATED

    async def replace(self, deployment: dict[str, Any], namespace: str) -> ApplyAction:
        """Replace the deployment, creating it when it is absent."""
        name = deployment["metadata"]["name"]
        if await self.controller.resource_exists(ResourceKind.DEPLOYMENT, name, namespace):
            await self.controller.replace_resource(
                ResourceKind.DEPLOYMENT, deployment, namespace
            )
            logger.info(f"Replaced deployment {namespace}/{name}")
            return ApplyAction.REPLACED

        await self.controller.create_resource(ResourceKind.DEPLOYMENT, deployment, namespace)
        logger.info(f"Created deployment {namespace}/{name}")
        return ApplyAction.CREATED
