"""Tests for CRD file selection and apply."""

from pathlib import Path

import pytest

from che_installer.cli.deployment.operator_deployer.applier import ApplyAction
from che_installer.cli.deployment.operator_deployer.crd import (
    CrdManager,
    crd_kind_for,
    crd_kind_for_cluster,
    select_crd_path,
)
from che_installer.cli.deployment.operator_deployer.errors import ConsistencyError
from che_installer.infra.constants import ManifestPaths
from che_installer.infra.k8s.controller import ResourceKind
from tests.fixtures import CRD_V1, FakeKubernetesController


class TestSelectCrdPath:
    """Tests for select_crd_path."""

    def test_v1_cluster_uses_default_file(self, templates_dir: Path) -> None:
        paths = ManifestPaths(templates_dir)

        assert select_crd_path(paths, api_extensions_v1=True) == paths.crd

    def test_v1beta1_cluster_uses_v1beta1_file(self, templates_dir: Path) -> None:
        paths = ManifestPaths(templates_dir)

        assert select_crd_path(paths, api_extensions_v1=False) == paths.crd_v1beta1

    def test_falls_back_to_default_when_v1beta1_file_missing(
        self, templates_dir: Path
    ) -> None:
        """Without a v1beta1 file the default file is used on any cluster."""
        paths = ManifestPaths(templates_dir)
        paths.crd_v1beta1.unlink()

        assert select_crd_path(paths, api_extensions_v1=False) == paths.crd


def test_crd_kind_follows_api_version():
    assert crd_kind_for(CRD_V1) is ResourceKind.CRD
    assert crd_kind_for({"apiVersion": "apiextensions.k8s.io/v1beta1"}) is ResourceKind.CRD_V1BETA1
    assert crd_kind_for_cluster(True) is ResourceKind.CRD
    assert crd_kind_for_cluster(False) is ResourceKind.CRD_V1BETA1


class TestCrdManager:
    """Tests for CrdManager.apply."""

    @pytest.fixture
    def manager(self, fake_controller: FakeKubernetesController) -> CrdManager:
        return CrdManager(fake_controller)

    @pytest.mark.asyncio
    async def test_creates_absent_crd(
        self,
        manager: CrdManager,
        fake_controller: FakeKubernetesController,
        templates_dir: Path,
    ) -> None:
        action = await manager.apply(ManifestPaths(templates_dir).crd, update=False)

        assert action is ApplyAction.CREATED
        assert fake_controller.names_for("create", ResourceKind.CRD) == [
            "checlusters.org.eclipse.che"
        ]

    @pytest.mark.asyncio
    async def test_existing_crd_is_kept_without_update(
        self,
        manager: CrdManager,
        fake_controller: FakeKubernetesController,
        templates_dir: Path,
    ) -> None:
        fake_controller.seed(ResourceKind.CRD, CRD_V1)

        action = await manager.apply(ManifestPaths(templates_dir).crd, update=False)

        assert action is ApplyAction.EXISTING
        assert fake_controller.mutating_calls() == []

    @pytest.mark.asyncio
    async def test_update_replaces_with_current_resource_version(
        self,
        manager: CrdManager,
        fake_controller: FakeKubernetesController,
        templates_dir: Path,
    ) -> None:
        """The replace carries the fetched resourceVersion."""
        seeded = fake_controller.seed(ResourceKind.CRD, CRD_V1)

        action = await manager.apply(ManifestPaths(templates_dir).crd, update=True)

        assert action is ApplyAction.REPLACED
        assert fake_controller.names_for("replace", ResourceKind.CRD) == [
            "checlusters.org.eclipse.che"
        ]
        stored = fake_controller.stored(ResourceKind.CRD, "checlusters.org.eclipse.che")
        assert stored["metadata"]["resourceVersion"] != seeded["metadata"]["resourceVersion"]

    @pytest.mark.asyncio
    async def test_update_without_resource_version_is_refused(
        self,
        manager: CrdManager,
        fake_controller: FakeKubernetesController,
        templates_dir: Path,
    ) -> None:
        fake_controller.seed(ResourceKind.CRD, CRD_V1)
        stored = fake_controller.stored(ResourceKind.CRD, "checlusters.org.eclipse.che")
        del stored["metadata"]["resourceVersion"]

        with pytest.raises(ConsistencyError, match="without resource version"):
            await manager.apply(ManifestPaths(templates_dir).crd, update=True)

        assert fake_controller.calls_for("replace") == []
