"""Operator deployer package for Che installations.

This package provides a modular approach to operator deployment, with
each concern separated into its own module:

- scanner: Classification of RBAC manifests by kind
- naming: Namespace prefixing of cluster-scoped objects
- applier: Idempotent create, replace or skip of single objects
- crd: CRD version selection and apply
- operator_deployment: Operator deployment patching and apply
- waiter: Bounded waits for pods and replica sets
- compatibility: Refusal of unsupported feature-flag transitions
- custom_resource: CheCluster staging, creation and patching
- teardown: Ordered removal of installed resources
- pipeline: Sequential step runner over a shared context

The OperatorDeployer class in deployer.py orchestrates these components to
provide the deploy, update and delete workflows.

Usage:
    from che_installer.cli.deployment.operator_deployer import (
        InstallerFlags,
        OperatorDeployer,
    )

    deployer = OperatorDeployer(console, controller)
    deployer.deploy(InstallerFlags(namespace="eclipse-che"))
"""

from .applier import ApplyAction, ResourceApplier
from .crd import CrdManager
from .custom_resource import CheClusterManager
from .deployer import OperatorDeployer
from .errors import (
    CapabilityError,
    CompatibilityError,
    ConsistencyError,
    ConvergenceTimeoutError,
    DeploymentError,
    ManifestError,
    PipelineStateError,
    PreconditionError,
)
from .flags import InstallerFlags
from .operator_deployment import OperatorDeploymentManager
from .pipeline import PipelineRunner, Step, StepOutcome, StepStatus
from .teardown import TeardownCoordinator
from .waiter import ConvergenceWaiter

__all__ = [
    "OperatorDeployer",
    "InstallerFlags",
    # Errors
    "DeploymentError",
    "PreconditionError",
    "ConsistencyError",
    "CapabilityError",
    "CompatibilityError",
    "ConvergenceTimeoutError",
    "PipelineStateError",
    "ManifestError",
    # Component classes for testing/extension
    "ResourceApplier",
    "ApplyAction",
    "CrdManager",
    "OperatorDeploymentManager",
    "ConvergenceWaiter",
    "CheClusterManager",
    "TeardownCoordinator",
    "PipelineRunner",
    "Step",
    "StepOutcome",
    "StepStatus",
]
