"""Installer constants and configuration.

This module centralizes all magic strings, paths, and timing values
used throughout the operator install, update and delete processes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class InstallerConstants:
    """Constants for the operator installer.

    This class provides a centralized location for all installer-related
    constants, making them easy to find, update, and test.

    All attributes are class-level and immutable.
    """

    # Defaults for configuration
    DEFAULT_NAMESPACE: str = "che"
    DEFAULT_TEMPLATES_DIR: str = "templates"

    # Manifest directory layout
    OPERATOR_TEMPLATE_DIR: str = "che-operator"
    SERVICE_ACCOUNT_FILE: str = "service_account.yaml"
    OPERATOR_DEPLOYMENT_FILE: str = "operator.yaml"
    CRDS_DIR: str = "crds"
    CRD_FILE: str = "org_v1_che_crd.yaml"
    CRD_V1BETA1_FILE: str = "org_v1_che_crd-v1beta1.yaml"
    DEFAULT_CR_FILE: str = "org_v1_che_cr.yaml"

    # Kubernetes identifiers
    OPERATOR_SERVICE_ACCOUNT: str = "che-operator"
    OPERATOR_DEPLOYMENT_NAME: str = "che-operator"
    OPERATOR_CONTAINER_NAME: str = "che-operator"
    OPERATOR_SELECTOR: str = "app=che-operator"
    OPERATOR_PVC_NAME: str = "che-operator"
    CHE_CLUSTER_CRD: str = "checlusters.org.eclipse.che"

    # Cluster-scoped RBAC naming
    LEGACY_CLUSTER_RESOURCES_NAME: str = "che-operator"
    DEVWORKSPACE_CHE_NAME_PREFIX: str = "devworkspace-che"

    # Workspace engine switch on the CheCluster spec
    DEV_WORKSPACE_ENGINE: str = "dev-workspace"

    # Timeouts (seconds)
    FLUSH_DELAY: float = 5.0
    POD_READY_INTERVAL: float = 1.0
    POD_READY_TIMEOUT: float = 300.0
    REPLICA_SETTLE_DELAY: float = 1.0
    REPLICA_INTERVAL: float = 0.5
    REPLICA_TIMEOUT: float = 60.0
    CR_DELETE_INTERVAL: float = 1.0
    CR_DELETE_ATTEMPTS: int = 20
    CR_FINALIZER_GRACE: float = 2.0

    # RFC 1123 label, the rule Kubernetes applies to namespace names
    NAMESPACE_PATTERN: re.Pattern[str] = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")


DEFAULT_CONSTANTS = InstallerConstants()


class ManifestPaths:
    """Path resolver for the operator manifest directory.

    This class constructs and provides access to all manifest files the
    installer reads, derived from the templates root directory.
    """

    def __init__(
        self,
        templates_dir: Path,
        constants: InstallerConstants | None = None,
    ) -> None:
        """Initialize manifest paths.

        Args:
            templates_dir: Root directory holding installer templates
            constants: Optional installer constants
        """
        self._constants = constants or DEFAULT_CONSTANTS
        self.templates_dir = templates_dir
        self.resources = templates_dir / self._constants.OPERATOR_TEMPLATE_DIR
        self.crds = self.resources / self._constants.CRDS_DIR

    @property
    def service_account(self) -> Path:
        """Get path to the operator service account manifest."""
        return self.resources / self._constants.SERVICE_ACCOUNT_FILE

    @property
    def operator_deployment(self) -> Path:
        """Get path to the operator deployment manifest."""
        return self.resources / self._constants.OPERATOR_DEPLOYMENT_FILE

    @property
    def crd(self) -> Path:
        """Get path to the default (v1) CRD manifest."""
        return self.crds / self._constants.CRD_FILE

    @property
    def crd_v1beta1(self) -> Path:
        """Get path to the v1beta1 CRD manifest."""
        return self.crds / self._constants.CRD_V1BETA1_FILE

    @property
    def default_cr(self) -> Path:
        """Get path to the default CheCluster manifest."""
        return self.crds / self._constants.DEFAULT_CR_FILE
