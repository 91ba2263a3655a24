"""Validated installer inputs.

The CLI collects options into an ``InstallerFlags`` model; everything
downstream reads configuration from it rather than from raw option values.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

from che_installer.infra.constants import DEFAULT_CONSTANTS

from .manifests import load_manifest_body


class InstallerFlags(BaseModel):
    """Configuration for one installer run."""

    model_config = ConfigDict(frozen=True)

    namespace: str = DEFAULT_CONSTANTS.DEFAULT_NAMESPACE
    templates: Path = Path(DEFAULT_CONSTANTS.DEFAULT_TEMPLATES_DIR)
    operator_image: str | None = None
    channel: Literal["stable", "next"] = "stable"
    workspace_engine: Literal["che-server", "dev-workspace"] = "che-server"
    cr_yaml: Path | None = None
    cr_patch_yaml: Path | None = None

    @field_validator("namespace")
    @classmethod
    def _validate_namespace(cls, value: str) -> str:
        if not DEFAULT_CONSTANTS.NAMESPACE_PATTERN.match(value) or len(value) > 63:
            raise ValueError(
                f"Invalid namespace '{value}': must be a lowercase RFC 1123 label"
            )
        return value

    @field_validator("operator_image")
    @classmethod
    def _validate_operator_image(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("Operator image must not be empty")
        return value

    @property
    def is_stable_channel(self) -> bool:
        """Whether a stable release is being deployed.

        An explicit operator image means a custom build, which never counts
        as a stable release.
        """
        return self.channel == "stable" and self.operator_image is None

    def load_custom_cr(self) -> dict[str, Any] | None:
        """Load the user supplied CheCluster, if any."""
        if self.cr_yaml is None:
            return None
        return load_manifest_body(self.cr_yaml)

    def load_cr_patch(self) -> dict[str, Any] | None:
        """Load the user supplied CheCluster merge patch, if any."""
        if self.cr_patch_yaml is None:
            return None
        return load_manifest_body(self.cr_patch_yaml)
