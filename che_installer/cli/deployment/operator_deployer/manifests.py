"""Manifest loading and the read-only manifest object model."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ManifestError

YAML_SUFFIXES = (".yaml", ".yml")


def load_yaml_file(path: Path) -> Any:
    """Load a single YAML document from a file.

    Args:
        path: Path to the YAML file

    Returns:
        The parsed document (None for an empty file)

    Raises:
        ManifestError: If the file is missing or is not valid YAML
    """
    try:
        with open(path) as f:
            return yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ManifestError(f"Manifest file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ManifestError(f"Error parsing YAML file {path}", details=str(e)) from e


def load_manifest_body(path: Path) -> dict[str, Any]:
    """Load a YAML file that must hold a single mapping."""
    content = load_yaml_file(path)
    if not isinstance(content, dict):
        raise ManifestError(f"Manifest {path} does not contain a YAML mapping")
    return content


@dataclass(frozen=True)
class ManifestObject:
    """A Kubernetes object as read from the manifests directory.

    Instances are never mutated; callers that need to rewrite an object
    work on ``copy_body()``.
    """

    kind: str
    name: str
    namespace: str | None
    body: dict[str, Any] = field(repr=False)
    source: Path | None = None

    @classmethod
    def from_dict(
        cls, body: dict[str, Any], source: Path | None = None
    ) -> ManifestObject:
        metadata = body.get("metadata") or {}
        return cls(
            kind=body.get("kind", ""),
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace"),
            body=body,
            source=source,
        )

    def copy_body(self) -> dict[str, Any]:
        return copy.deepcopy(self.body)
