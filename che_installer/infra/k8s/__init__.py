"""Kubernetes infrastructure abstraction layer.

This module provides a clean abstraction over the Kubernetes operations the
installer needs, backed by the kr8s library.

Example:
    from che_installer.infra.k8s import get_k8s_controller, run_sync

    controller = get_k8s_controller()
    exists = run_sync(
        controller.resource_exists(ResourceKind.DEPLOYMENT, "che-operator", "che")
    )
"""

from .controller import (
    KubernetesApiError,
    KubernetesController,
    PodInfo,
    ReplicaSetInfo,
    ResourceKind,
)
from .helpers import get_k8s_controller, get_namespace, get_templates_dir
from .utils import run_sync

__all__ = [
    # Controller classes
    "KubernetesController",
    "KubernetesApiError",
    "ResourceKind",
    # Data classes
    "PodInfo",
    "ReplicaSetInfo",
    # Utilities
    "get_k8s_controller",
    "get_namespace",
    "get_templates_dir",
    "run_sync",
]
