"""Che operator deployer.

This module provides the OperatorDeployer class which orchestrates the
installation, upgrade and removal of the Che operator. It coordinates
specialized components for:
- RBAC manifest scanning and idempotent apply
- CRD selection and apply
- Operator deployment patching and apply
- Convergence waits
- CheCluster staging, creation and patching
- Teardown

Each operation is expressed as an ordered list of pipeline steps executed
by a PipelineRunner over one RunContext.
"""

from __future__ import annotations

from typing import Any

from rich.table import Table

from che_installer.cli.shared.console import CLIConsole
from che_installer.infra.constants import DEFAULT_CONSTANTS, InstallerConstants, ManifestPaths
from che_installer.infra.k8s.controller import KubernetesController, ResourceKind
from che_installer.infra.k8s.utils import run_sync
from che_installer.utils.images import get_image_name_and_tag

from ..base import BaseDeployer
from .applier import ApplyAction, ResourceApplier
from .compatibility import check_workspace_engine_compatibility
from .context import RunContext
from .crd import CrdManager, select_crd_path
from .custom_resource import CheClusterManager
from .errors import PipelineStateError, PreconditionError
from .flags import InstallerFlags
from .manifests import load_manifest_body
from .operator_deployment import OperatorDeploymentManager
from .pipeline import PipelineRunner, Step, StepOutcome, StepRecord, StepStatus
from .scanner import scan_resources
from .teardown import TeardownCoordinator
from .waiter import ConvergenceWaiter

_OUTCOMES = {
    ApplyAction.CREATED: StepOutcome.created,
    ApplyAction.REPLACED: StepOutcome.updated,
    ApplyAction.EXISTING: StepOutcome.exists,
}

_STATUS_STYLES = {
    StepStatus.DONE: "green",
    StepStatus.CREATED: "green",
    StepStatus.UPDATED: "green",
    StepStatus.EXISTS: "cyan",
    StepStatus.SKIPPED: "dim",
    StepStatus.FAILED: "yellow",
}

CAPABILITIES = frozenset({"api_extensions_v1", "legacy_platform"})


def _outcome(action: ApplyAction, detail: str = "") -> StepOutcome:
    return _OUTCOMES[action](detail)


class OperatorDeployer(BaseDeployer):
    """Deployer for the Che operator.

    The deploy workflow consists of:
    1. Probe cluster capabilities
    2. Create the operator service account
    3. Read RBAC manifests and create roles and bindings
    4. Create the CheCluster CRD and let the API server flush it
    5. Create the operator deployment and wait for its pod
    6. Stage and create the CheCluster

    Attributes:
        controller: Kubernetes API backend
        constants: Installer constants
        runner: Sequential step runner
        applier: Idempotent object applier
        crds: CRD manager
        operator_deployment: Operator deployment manager
        waiter: Convergence waits
        che_clusters: CheCluster manager
        teardown_coordinator: Teardown steps
    """

    def __init__(
        self,
        console: CLIConsole,
        controller: KubernetesController,
        constants: InstallerConstants | None = None,
    ):
        """Initialize the operator deployer.

        Args:
            console: CLI console for output
            controller: Kubernetes API backend
            constants: Optional installer constants
        """
        super().__init__(console)
        self.controller = controller
        self.constants = constants or DEFAULT_CONSTANTS

        self.runner = PipelineRunner(console)
        self.applier = ResourceApplier(controller)
        self.crds = CrdManager(controller, self.constants)
        self.operator_deployment = OperatorDeploymentManager(controller, self.constants)
        self.waiter = ConvergenceWaiter(controller, self.constants)
        self.che_clusters = CheClusterManager(controller)
        self.teardown_coordinator = TeardownCoordinator(controller, self.constants)

    # =========================================================================
    # Context
    # =========================================================================

    def new_context(self, flags: InstallerFlags) -> RunContext:
        """Create the context for one run."""
        paths = self.paths_for(flags)
        return RunContext(
            flags=flags,
            resources_path=paths.resources,
            custom_cr=flags.load_custom_cr(),
            cr_patch=flags.load_cr_patch(),
        )

    def paths_for(self, flags: InstallerFlags) -> ManifestPaths:
        return ManifestPaths(flags.templates, self.constants)

    # =========================================================================
    # Shared Steps
    # =========================================================================

    def _capabilities_step(self) -> Step:
        async def run(ctx: RunContext) -> StepOutcome:
            ctx.api_extensions_v1 = await self.controller.is_api_extension_supported("v1")
            ctx.legacy_platform = await self.controller.is_legacy_platform()
            return StepOutcome.done(
                f"(apiextensions v1: {'yes' if ctx.api_extensions_v1 else 'no'}, "
                f"legacy platform: {'yes' if ctx.legacy_platform else 'no'})"
            )

        return Step("Check cluster capabilities", run, provides=CAPABILITIES)

    def _service_account_step(self, flags: InstallerFlags, *, update: bool) -> Step:
        name = self.constants.OPERATOR_SERVICE_ACCOUNT
        verb = "Updating" if update else "Create"

        async def run(ctx: RunContext) -> StepOutcome:
            body = load_manifest_body(self.paths_for(ctx.flags).service_account)
            body.setdefault("metadata", {})["name"] = name
            action = await self.applier.apply_object(
                ResourceKind.SERVICE_ACCOUNT, body, ctx.namespace, update=update
            )
            return _outcome(action)

        return Step(f"{verb} ServiceAccount {name} in namespace {flags.namespace}", run)

    def _read_rbac_step(self) -> Step:
        async def run(ctx: RunContext) -> StepOutcome:
            ctx.buckets, warnings = scan_resources(ctx.resources_path)
            ctx.warnings.extend(warnings)
            return StepOutcome.done()

        return Step(
            "Read Roles and Bindings",
            run,
            requires=frozenset({"resources_path"}),
            provides=frozenset({"buckets"}),
        )

    def _apply_rbac_step(self, *, update: bool) -> Step:
        async def run(ctx: RunContext) -> StepOutcome:
            summary = await self.applier.apply_rbac(
                ctx.buckets, ctx.namespace, update=update
            )
            return StepOutcome.done(f"({summary.describe()})")

        title = "Updating Roles and Bindings" if update else "Creating Roles and Bindings"
        return Step(title, run, requires=frozenset({"buckets"}))

    def _crd_step(self, *, update: bool) -> Step:
        async def run(ctx: RunContext) -> StepOutcome:
            crd_path = select_crd_path(
                self.paths_for(ctx.flags), bool(ctx.api_extensions_v1)
            )
            return _outcome(await self.crds.apply(crd_path, update=update))

        crd = self.constants.CHE_CLUSTER_CRD
        title = f"Updating Eclipse Che cluster CRD {crd}" if update else f"Create CRD {crd}"
        return Step(title, run, requires=frozenset({"api_extensions_v1"}))

    def _flush_step(self) -> Step:
        async def run(ctx: RunContext) -> StepOutcome:
            await self.waiter.flush_delay()
            return StepOutcome.done()

        return Step(
            f"Waiting {self.constants.FLUSH_DELAY:g} seconds for the new Kubernetes "
            "resources to get flushed",
            run,
        )

    def _read_operator_deployment(self, ctx: RunContext) -> dict[str, Any]:
        return self.operator_deployment.read_operator_deployment(
            self.paths_for(ctx.flags).operator_deployment,
            namespace=ctx.namespace,
            operator_image=ctx.flags.operator_image,
            api_extensions_v1=bool(ctx.api_extensions_v1),
        )

    # =========================================================================
    # Deploy
    # =========================================================================

    def deploy_steps(self, flags: InstallerFlags) -> list[Step]:
        """Steps installing the operator into ``flags.namespace``."""
        namespace = flags.namespace
        deployment_name = self.constants.OPERATOR_DEPLOYMENT_NAME
        crd = self.constants.CHE_CLUSTER_CRD

        async def advise_installer(ctx: RunContext) -> StepOutcome:
            if ctx.flags.is_stable_channel and not ctx.legacy_platform:
                ctx.warnings.append(
                    "Consider using the more reliable 'OLM' installer when deploying "
                    "a stable release of Eclipse Che (--installer=olm)."
                )
            return StepOutcome.done()

        async def create_deployment(ctx: RunContext) -> StepOutcome:
            if await self.controller.resource_exists(
                ResourceKind.DEPLOYMENT, deployment_name, ctx.namespace
            ):
                return StepOutcome.exists()
            deployment = self._read_operator_deployment(ctx)
            return _outcome(await self.operator_deployment.create(deployment, ctx.namespace))

        async def wait_for_operator_pod(ctx: RunContext) -> StepOutcome:
            attempts = await self.waiter.wait_for_pod_ready(
                self.constants.OPERATOR_SELECTOR, ctx.namespace
            )
            return StepOutcome.done(f"(ready after {attempts} check(s))")

        async def prepare_cr(ctx: RunContext) -> StepOutcome:
            action = await self.che_clusters.stage_default(ctx, self.paths_for(ctx.flags))
            if action is ApplyAction.EXISTING:
                return StepOutcome.exists()
            return StepOutcome.done()

        async def create_cr(ctx: RunContext) -> StepOutcome:
            if ctx.custom_cr is None and ctx.default_cr is None:
                return StepOutcome.skipped("no custom resource staged")
            return _outcome(await self.che_clusters.create(ctx))

        return [
            self._capabilities_step(),
            Step(
                "Check installer recommendations",
                advise_installer,
                requires=frozenset({"legacy_platform"}),
            ),
            self._service_account_step(flags, update=False),
            self._read_rbac_step(),
            self._apply_rbac_step(update=False),
            self._crd_step(update=False),
            self._flush_step(),
            Step(
                f"Create deployment {deployment_name} in namespace {namespace}",
                create_deployment,
                requires=frozenset({"api_extensions_v1"}),
            ),
            Step("Operator pod bootstrap", wait_for_operator_pod),
            Step(
                "Prepare Eclipse Che cluster CR",
                prepare_cr,
                reads=frozenset({"custom_cr"}),
                provides=frozenset({"default_cr"}),
            ),
            Step(
                f"Create the Custom Resource of type {crd} in the namespace {namespace}",
                create_cr,
                reads=frozenset({"custom_cr", "default_cr", "cr_patch"}),
            ),
        ]

    # =========================================================================
    # Update
    # =========================================================================

    def pre_update_steps(self, flags: InstallerFlags) -> list[Step]:
        """Checks that must pass before an update touches the cluster."""

        async def check_existing_deployment(ctx: RunContext) -> StepOutcome:
            name = self.constants.OPERATOR_DEPLOYMENT_NAME
            deployment = await self.controller.get_resource(
                ResourceKind.DEPLOYMENT, name, ctx.namespace
            )
            if deployment is None:
                raise PreconditionError(
                    f"{name} deployment is not found in namespace {ctx.namespace}.",
                    details="Probably Eclipse Che was initially deployed with another installer",
                )
            ctx.deployed_operator_deployment = deployment
            return StepOutcome.done()

        async def detect_versions(ctx: RunContext) -> StepOutcome:
            deployment = ctx.deployed_operator_deployment
            if deployment is None:
                raise PipelineStateError(
                    "Existing operator deployment was not read before version detection"
                )
            deployed_image = self.operator_deployment.retrieve_container_image(deployment)
            ctx.deployed_image_name, ctx.deployed_image_tag = get_image_name_and_tag(
                deployed_image
            )

            new_image = ctx.flags.operator_image
            if not new_image:
                template = load_manifest_body(self.paths_for(ctx.flags).operator_deployment)
                new_image = self.operator_deployment.retrieve_container_image(template)
            ctx.new_image_name, ctx.new_image_tag = get_image_name_and_tag(new_image)

            return StepOutcome.done(f"{ctx.deployed_image_tag} -> {ctx.new_image_tag}")

        async def check_compatibility(ctx: RunContext) -> StepOutcome:
            che_cluster = await self.che_clusters.get(ctx.namespace)
            check_workspace_engine_compatibility(che_cluster, ctx)
            return StepOutcome.done()

        return [
            Step(
                "Checking existing operator deployment before update",
                check_existing_deployment,
                provides=frozenset({"deployed_operator_deployment"}),
            ),
            Step(
                "Detecting existing version",
                detect_versions,
                requires=frozenset({"deployed_operator_deployment"}),
                provides=frozenset(
                    {
                        "deployed_image_name",
                        "deployed_image_tag",
                        "new_image_name",
                        "new_image_tag",
                    }
                ),
            ),
            Step(
                "Check workspace engine compatibility",
                check_compatibility,
                reads=frozenset({"custom_cr", "cr_patch"}),
            ),
        ]

    def update_steps(self, flags: InstallerFlags) -> list[Step]:
        """Steps upgrading an existing installation in ``flags.namespace``."""
        namespace = flags.namespace
        deployment_name = self.constants.OPERATOR_DEPLOYMENT_NAME
        crd = self.constants.CHE_CLUSTER_CRD

        async def replace_deployment(ctx: RunContext) -> StepOutcome:
            deployment = self._read_operator_deployment(ctx)
            return _outcome(await self.operator_deployment.replace(deployment, ctx.namespace))

        async def wait_for_new_operator(ctx: RunContext) -> StepOutcome:
            await self.waiter.wait_for_latest_replica(deployment_name, ctx.namespace)
            return StepOutcome.done(f"({ctx.new_image_name}:{ctx.new_image_tag})")

        async def patch_cr(ctx: RunContext) -> StepOutcome:
            if not ctx.cr_patch:
                return StepOutcome.skipped("no patch requested")
            await self.che_clusters.patch(ctx)
            return StepOutcome.done()

        return [
            *self.pre_update_steps(flags),
            self._capabilities_step(),
            self._service_account_step(flags, update=True),
            self._read_rbac_step(),
            self._apply_rbac_step(update=True),
            self._crd_step(update=True),
            self._flush_step(),
            Step(
                f"Updating deployment {deployment_name} in namespace {namespace}",
                replace_deployment,
                requires=frozenset({"api_extensions_v1"}),
            ),
            Step(
                "Waiting newer operator to be run",
                wait_for_new_operator,
                requires=frozenset({"new_image_name", "new_image_tag"}),
            ),
            Step(
                f"Patching the Custom Resource of type '{crd}' in the namespace '{namespace}'",
                patch_cr,
                reads=frozenset({"cr_patch"}),
            ),
        ]

    # =========================================================================
    # Delete
    # =========================================================================

    def delete_steps(self, flags: InstallerFlags) -> list[Step]:
        """Steps removing the installation from ``flags.namespace``."""
        teardown = self.teardown_coordinator
        crd = self.constants.CHE_CLUSTER_CRD
        service_account = self.constants.OPERATOR_SERVICE_ACCOUNT
        pvc = self.constants.OPERATOR_PVC_NAME

        return [
            self._capabilities_step(),
            Step("Delete oauthClientAuthorizations", teardown.delete_oauth_client_authorizations),
            Step(f"Delete the Custom Resource of type {crd}", teardown.delete_che_cluster),
            Step("Delete CRDs", teardown.delete_crd, requires=frozenset({"api_extensions_v1"})),
            Step("Delete Roles and Bindings", teardown.delete_roles_and_bindings),
            Step(f"Delete service accounts {service_account}", teardown.delete_service_account),
            Step(f"Delete PVC {pvc}", teardown.delete_operator_pvc),
        ]

    # =========================================================================
    # Async Entry Points
    # =========================================================================

    async def run_deploy(self, flags: InstallerFlags) -> list[StepRecord]:
        return await self.runner.run(self.deploy_steps(flags), self.new_context(flags))

    async def run_update(self, flags: InstallerFlags) -> list[StepRecord]:
        return await self.runner.run(self.update_steps(flags), self.new_context(flags))

    async def run_delete(self, flags: InstallerFlags) -> list[StepRecord]:
        return await self.runner.run(self.delete_steps(flags), self.new_context(flags))

    # =========================================================================
    # Public Interface
    # =========================================================================

    def deploy(self, flags: InstallerFlags | None = None, **kwargs: Any) -> None:
        """Install the operator.

        Args:
            flags: Installer inputs (defaults when omitted)
            **kwargs: Reserved for future options
        """
        flags = flags or InstallerFlags()
        self.console.print_header(f"Deploying Che operator to {flags.namespace}")
        self._show_summary(run_sync(self.run_deploy(flags)))
        self.success(f"Che operator deployed in namespace {flags.namespace}")

    def update(self, flags: InstallerFlags | None = None, **kwargs: Any) -> None:
        """Upgrade the operator.

        Args:
            flags: Installer inputs (defaults when omitted)
            **kwargs: Reserved for future options
        """
        flags = flags or InstallerFlags()
        self.console.print_header(f"Updating Che operator in {flags.namespace}")
        self._show_summary(run_sync(self.run_update(flags)))
        self.success(f"Che operator updated in namespace {flags.namespace}")

    def teardown(self, flags: InstallerFlags | None = None, **kwargs: Any) -> None:
        """Remove the operator and its resources.

        Args:
            flags: Installer inputs (defaults when omitted)
            **kwargs: Reserved for future options
        """
        flags = flags or InstallerFlags()
        self.console.print_header(f"Deleting Che operator from {flags.namespace}", "red")
        self._show_summary(run_sync(self.run_delete(flags)))
        self.success(f"Teardown complete for {flags.namespace}")

    def _show_summary(self, records: list[StepRecord]) -> None:
        """Print a table of every executed step and its outcome."""
        table = Table(show_header=True, header_style="bold")
        table.add_column("Step")
        table.add_column("Result")
        table.add_column("Details", style="dim")

        for record in records:
            status = record.outcome.status
            style = _STATUS_STYLES[status]
            table.add_row(
                record.step.title,
                f"[{style}]{status.value}[/{style}]",
                record.outcome.detail,
            )

        self.console.print(table)
