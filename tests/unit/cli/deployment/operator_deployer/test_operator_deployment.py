"""Tests for operator deployment patching and apply."""

from pathlib import Path

import pytest

from che_installer.cli.deployment.operator_deployer.applier import ApplyAction
from che_installer.cli.deployment.operator_deployer.errors import CapabilityError
from che_installer.cli.deployment.operator_deployer.operator_deployment import (
    OperatorDeploymentManager,
)
from che_installer.infra.constants import ManifestPaths
from che_installer.infra.k8s.controller import ResourceKind
from tests.fixtures import (
    OPERATOR_DEPLOYMENT,
    OPERATOR_IMAGE,
    FakeKubernetesController,
    write_yaml,
)


def _container_names(deployment: dict) -> list[str]:
    return [c["name"] for c in deployment["spec"]["template"]["spec"]["containers"]]


class TestReadOperatorDeployment:
    """Tests for OperatorDeploymentManager.read_operator_deployment."""

    @pytest.fixture
    def manager(self, fake_controller: FakeKubernetesController) -> OperatorDeploymentManager:
        return OperatorDeploymentManager(fake_controller)

    @pytest.fixture
    def deployment_path(self, templates_dir: Path) -> Path:
        return ManifestPaths(templates_dir).operator_deployment

    def test_moves_deployment_into_namespace(
        self, manager: OperatorDeploymentManager, deployment_path: Path
    ) -> None:
        deployment = manager.read_operator_deployment(
            deployment_path, namespace="che", operator_image=None, api_extensions_v1=True
        )

        assert deployment["metadata"]["namespace"] == "che"
        assert _container_names(deployment) == ["che-operator", "devworkspace-controller"]
        assert manager.retrieve_container_image(deployment) == OPERATOR_IMAGE

    def test_image_override_targets_operator_container(
        self, manager: OperatorDeploymentManager, deployment_path: Path
    ) -> None:
        """Only the che-operator container gets the override."""
        deployment = manager.read_operator_deployment(
            deployment_path,
            namespace="che",
            operator_image="quay.io/eclipse/che-operator:next",
            api_extensions_v1=True,
        )

        containers = deployment["spec"]["template"]["spec"]["containers"]
        assert containers[0]["image"] == "quay.io/eclipse/che-operator:next"
        assert containers[1]["image"] == "quay.io/devfile/devworkspace-controller:next"

    def test_trims_sidecars_without_apiextensions_v1(
        self, manager: OperatorDeploymentManager, deployment_path: Path
    ) -> None:
        deployment = manager.read_operator_deployment(
            deployment_path, namespace="che", operator_image=None, api_extensions_v1=False
        )

        assert _container_names(deployment) == ["che-operator"]

    def test_missing_name_raises(
        self, manager: OperatorDeploymentManager, tmp_path: Path
    ) -> None:
        path = write_yaml(tmp_path / "operator.yaml", {"kind": "Deployment", "metadata": {}})

        with pytest.raises(CapabilityError, match="must have name specified"):
            manager.read_operator_deployment(
                path, namespace="che", operator_image=None, api_extensions_v1=True
            )

    def test_override_without_operator_container_raises(
        self, manager: OperatorDeploymentManager, tmp_path: Path
    ) -> None:
        body = {
            "kind": "Deployment",
            "metadata": {"name": "che-operator"},
            "spec": {"template": {"spec": {"containers": [{"name": "other", "image": "x"}]}}},
        }
        path = write_yaml(tmp_path / "operator.yaml", body)

        with pytest.raises(CapabilityError, match="Container 'che-operator' not found"):
            manager.read_operator_deployment(
                path, namespace="che", operator_image="img:1", api_extensions_v1=True
            )

    def test_retrieve_image_requires_image(self, manager: OperatorDeploymentManager) -> None:
        body = {
            "metadata": {"name": "che-operator", "namespace": "che"},
            "spec": {"template": {"spec": {"containers": [{"name": "che-operator"}]}}},
        }

        with pytest.raises(CapabilityError, match="must have image specified"):
            manager.retrieve_container_image(body)


class TestApplyOperatorDeployment:
    """Tests for create and replace of the operator deployment."""

    @pytest.mark.asyncio
    async def test_create_then_existing(self, fake_controller: FakeKubernetesController) -> None:
        manager = OperatorDeploymentManager(fake_controller)

        first = await manager.create(OPERATOR_DEPLOYMENT, "che")
        second = await manager.create(OPERATOR_DEPLOYMENT, "che")

        assert first is ApplyAction.CREATED
        assert second is ApplyAction.EXISTING
        assert len(fake_controller.calls_for("create", ResourceKind.DEPLOYMENT)) == 1

    @pytest.mark.asyncio
    async def test_replace_existing_or_create(
        self, fake_controller: FakeKubernetesController
    ) -> None:
        manager = OperatorDeploymentManager(fake_controller)

        assert await manager.replace(OPERATOR_DEPLOYMENT, "che") is ApplyAction.CREATED
        assert await manager.replace(OPERATOR_DEPLOYMENT, "che") is ApplyAction.REPLACED
