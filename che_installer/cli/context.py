"""CLI context and dependency container."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer
from dotenv import load_dotenv

from che_installer.cli.shared.console import CLIConsole, console
from che_installer.infra.constants import InstallerConstants
from che_installer.infra.k8s import get_k8s_controller
from che_installer.infra.k8s.controller import KubernetesController


@dataclass(frozen=True)
class CLIContext:
    """Runtime dependencies for CLI commands."""

    console: CLIConsole
    k8s_controller: KubernetesController
    constants: InstallerConstants


def build_cli_context() -> CLIContext:
    """Build a fresh CLIContext.

    Variables from a ``.env`` file in the working directory are loaded
    first, without overriding the process environment.
    """
    load_dotenv(Path.cwd() / ".env", override=False)

    return CLIContext(
        console=console,
        k8s_controller=get_k8s_controller(),
        constants=InstallerConstants(),
    )


def get_cli_context(ctx: typer.Context | None = None) -> CLIContext:
    """Return the CLIContext from Typer, falling back to a new instance."""
    context = ctx or typer.get_current_context(silent=True)
    if context and isinstance(context.obj, CLIContext):
        return context.obj
    return build_cli_context()
