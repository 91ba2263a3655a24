"""Installer error hierarchy.

Every fatal condition raised by the installer pipeline is a
``DeploymentError``; the CLI error handler renders ``message`` and
``details`` and exits non-zero. Messages name the resource kind, name and
namespace involved.
"""

from __future__ import annotations


class DeploymentError(Exception):
    """Raised when a deployment operation fails."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(message)


class PreconditionError(DeploymentError):
    """A resource required by the requested operation is missing."""


class ConsistencyError(DeploymentError):
    """A fetched object lacks data needed for a safe replace."""


class CapabilityError(DeploymentError):
    """A manifest lacks the container or field an override targets."""


class CompatibilityError(DeploymentError):
    """An update would silently change a feature flag's state."""


class ConvergenceTimeoutError(DeploymentError):
    """A bounded wait ran out of attempts or time."""


class PipelineStateError(DeploymentError):
    """A pipeline step ran before the context fields it reads were written."""


class ManifestError(DeploymentError):
    """A manifest file could not be read or parsed."""
