from __future__ import annotations

import os

from cachetools.func import lru_cache  # type: ignore

from che_installer.infra.constants import DEFAULT_CONSTANTS
from che_installer.infra.k8s.controller import KubernetesController


@lru_cache(maxsize=1)
def get_k8s_controller() -> KubernetesController:
    """Get an instance of the KubernetesController.

    Returns:
        An instance of KubernetesController
    """
    from che_installer.infra.k8s.kr8s_controller import Kr8sController

    return Kr8sController()


def get_namespace() -> str:
    """Get the target namespace from the environment or default."""
    return os.environ.get("CHE_NAMESPACE", DEFAULT_CONSTANTS.DEFAULT_NAMESPACE)


def get_templates_dir() -> str:
    """Get the manifests root directory from the environment or default."""
    return os.environ.get("CHE_TEMPLATES", DEFAULT_CONSTANTS.DEFAULT_TEMPLATES_DIR)
