"""Che operator commands.

This module provides commands for installing, upgrading and removing the
Che operator together with its RBAC, CRD and CheCluster resources.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

from che_installer.cli.context import CLIContext, get_cli_context
from che_installer.cli.shared.console import console, with_error_handling
from che_installer.infra.k8s import get_namespace, get_templates_dir

if TYPE_CHECKING:
    from che_installer.cli.deployment.operator_deployer import (
        InstallerFlags,
        OperatorDeployer,
    )


# ---------------------------------------------------------------------------
# Shared Options
# ---------------------------------------------------------------------------

NamespaceOption = Annotated[
    str | None,
    typer.Option(
        "--namespace",
        "-n",
        help="Kubernetes namespace (defaults to $CHE_NAMESPACE or 'che')",
    ),
]
TemplatesOption = Annotated[
    Path | None,
    typer.Option(
        "--templates",
        "-t",
        help="Templates directory holding che-operator/ (defaults to $CHE_TEMPLATES)",
    ),
]
OperatorImageOption = Annotated[
    str | None,
    typer.Option(
        "--che-operator-image",
        help="Container image of the operator, overrides the one in operator.yaml",
    ),
]
CrPatchOption = Annotated[
    Path | None,
    typer.Option(
        "--che-operator-cr-patch-yaml",
        help="YAML merge patch applied to the CheCluster",
        exists=True,
        dir_okay=False,
    ),
]


# ---------------------------------------------------------------------------
# Deployer Factory
# ---------------------------------------------------------------------------


def _get_deployer(ctx: CLIContext) -> "OperatorDeployer":
    """Get the operator deployer instance.

    Args:
        ctx: Current CLI context

    Returns:
        OperatorDeployer bound to the context's console and controller
    """
    from che_installer.cli.deployment.operator_deployer import OperatorDeployer

    return OperatorDeployer(ctx.console, ctx.k8s_controller, ctx.constants)


def _build_flags(
    namespace: str | None,
    templates: Path | None,
    **options: object,
) -> "InstallerFlags":
    """Collect command options into validated installer flags.

    Namespace and templates fall back to the environment. Callers build the
    CLI context first so that ``.env`` is already loaded.
    """
    from che_installer.cli.deployment.operator_deployer import InstallerFlags

    values = {key: value for key, value in options.items() if value is not None}
    return InstallerFlags(
        namespace=namespace or get_namespace(),
        templates=templates or Path(get_templates_dir()),
        **values,
    )


# ---------------------------------------------------------------------------
# Typer App
# ---------------------------------------------------------------------------

operator_app = typer.Typer(
    name="operator",
    help="Che operator install, update and delete commands.",
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@operator_app.command()
@with_error_handling
def deploy(
    namespace: NamespaceOption = None,
    templates: TemplatesOption = None,
    operator_image: OperatorImageOption = None,
    channel: Annotated[
        str,
        typer.Option(
            "--channel",
            help="Release channel being deployed ('stable' or 'next')",
        ),
    ] = "stable",
    workspace_engine: Annotated[
        str,
        typer.Option(
            "--workspace-engine",
            help="Workspace engine ('che-server' or 'dev-workspace')",
        ),
    ] = "che-server",
    cr_yaml: Annotated[
        Path | None,
        typer.Option(
            "--che-operator-cr-yaml",
            help="CheCluster to create instead of the default one",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    cr_patch_yaml: CrPatchOption = None,
) -> None:
    """Deploy the Che operator.

    This command:
    - Creates the operator service account
    - Creates roles, cluster roles and their bindings
    - Creates the CheCluster CRD
    - Creates the operator deployment and waits for its pod
    - Creates the CheCluster custom resource

    Objects that already exist are left untouched.

    Examples:
        che-installer operator deploy
        che-installer operator deploy -n eclipse-che
        che-installer operator deploy --che-operator-image quay.io/eclipse/che-operator:next
    """
    ctx = get_cli_context()
    flags = _build_flags(
        namespace,
        templates,
        operator_image=operator_image,
        channel=channel,
        workspace_engine=workspace_engine,
        cr_yaml=cr_yaml,
        cr_patch_yaml=cr_patch_yaml,
    )
    _get_deployer(ctx).deploy(flags)


@operator_app.command()
@with_error_handling
def update(
    namespace: NamespaceOption = None,
    templates: TemplatesOption = None,
    operator_image: OperatorImageOption = None,
    workspace_engine: Annotated[
        str,
        typer.Option(
            "--workspace-engine",
            help="Workspace engine ('che-server' or 'dev-workspace')",
        ),
    ] = "che-server",
    cr_patch_yaml: CrPatchOption = None,
) -> None:
    """Update an existing Che operator installation.

    Replaces the service account, RBAC objects, CRD and operator deployment
    with the versions found in the templates, waits for the new operator
    to run and applies the CheCluster patch when one is given.

    Examples:
        che-installer operator update
        che-installer operator update --che-operator-cr-patch-yaml patch.yaml
    """
    ctx = get_cli_context()
    flags = _build_flags(
        namespace,
        templates,
        operator_image=operator_image,
        workspace_engine=workspace_engine,
        cr_patch_yaml=cr_patch_yaml,
    )
    _get_deployer(ctx).update(flags)


@operator_app.command()
@with_error_handling
def delete(
    namespace: NamespaceOption = None,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Skip confirmation prompt",
        ),
    ] = False,
) -> None:
    """Remove the Che operator and the resources installed with it.

    The CheCluster CRD is kept while another namespace still has a
    CheCluster.

    Examples:
        che-installer operator delete
        che-installer operator delete -n eclipse-che -y
    """
    ctx = get_cli_context()
    flags = _build_flags(namespace, None)

    if not console.confirm_action(
        "Delete Che operator",
        f"This will delete from namespace '{flags.namespace}':\n"
        f"  • The CheCluster and its OAuth client authorizations\n"
        f"  • Roles, cluster roles and their bindings\n"
        f"  • The operator service account and persistent volume claim",
        force=yes,
    ):
        console.print("[dim]Operation cancelled[/dim]")
        raise typer.Exit(0)

    _get_deployer(ctx).teardown(flags)
