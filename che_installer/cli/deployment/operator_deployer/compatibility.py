"""Guard against feature-flag transitions an update cannot perform."""

from __future__ import annotations

from typing import Any

from che_installer.infra.constants import DEFAULT_CONSTANTS

from .context import RunContext
from .errors import CompatibilityError


def _dev_workspace_enabled(resource: dict[str, Any] | None) -> bool:
    if not resource:
        return False
    spec = resource.get("spec") or {}
    dev_workspace = spec.get("devWorkspace") or {}
    return bool(dev_workspace.get("enable"))


def is_dev_workspace_requested(ctx: RunContext) -> bool:
    """Whether this run asks for the dev-workspace engine.

    It is requested by the custom CheCluster, by the CR patch, or by the
    workspace engine option.
    """
    return (
        _dev_workspace_enabled(ctx.custom_cr)
        or _dev_workspace_enabled(ctx.cr_patch)
        or ctx.flags.workspace_engine == DEFAULT_CONSTANTS.DEV_WORKSPACE_ENGINE
    )


def check_workspace_engine_compatibility(
    che_cluster: dict[str, Any] | None, ctx: RunContext
) -> None:
    """Refuse an update that would switch the dev-workspace engine on.

    Args:
        che_cluster: The CheCluster currently deployed, or None
        ctx: Run context holding the requested configuration

    Raises:
        CompatibilityError: If the engine is disabled on the deployed
            CheCluster and the update would enable it
    """
    if che_cluster is None:
        return

    enabled_before = _dev_workspace_enabled(che_cluster)
    enabled_after = is_dev_workspace_requested(ctx)
    if not enabled_before and enabled_after:
        name = (che_cluster.get("metadata") or {}).get("name", "")
        raise CompatibilityError(
            "Unsupported operation: it is not possible to update current Che "
            "installation to new version with enabled 'devWorkspace' engine.",
            details=f"CheCluster {ctx.namespace}/{name} has spec.devWorkspace.enable "
            "unset; enable it with a fresh installation instead.",
        )
