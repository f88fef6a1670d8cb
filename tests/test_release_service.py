"""Tests for ReleaseStore and dependency installers."""

import os
import subprocess
from unittest.mock import Mock, patch

import pytest

from release_tool.api.exceptions import (
    AlreadyCurrent,
    DependencyInstallFailed,
    ExtractionFailed,
    InstallerError,
    NoPriorRelease,
    ReleaseAlreadyExists,
    ReleaseNotInstalled,
)
from release_tool.constants import RELEASE_METADATA_FILE
from release_tool.models.release import ReleaseStatus
from release_tool.services.release_service import NoopInstaller, NpmInstaller, ReleaseStore
from tests.conftest import build_tarball


@pytest.fixture
def store(app_paths, installer):
    app_paths.releases_dir.mkdir(parents=True)
    return ReleaseStore(app_paths, installer)


@pytest.fixture
def artifacts(temp_dir):
    def make(release_id):
        return build_tarball(temp_dir / "artifacts", "demo", release_id)
    return make


async def install_all(store, artifacts, *release_ids):
    return [await store.install(r, artifacts(r)) for r in release_ids]


class TestInstall:
    """Tests for release installation."""

    @pytest.mark.asyncio
    async def test_install_extracts_into_place(self, store, artifacts, app_paths) -> None:
        release = await store.install("v1", artifacts("v1"))

        assert release.status == ReleaseStatus.INSTALLED
        assert release.path == app_paths.release_dir("v1")
        assert (release.path / "server.js").is_file()
        assert (release.path / "node_modules").is_dir()
        assert (release.path / RELEASE_METADATA_FILE).is_file()
        assert [p.name for p in app_paths.releases_dir.iterdir()] == ["v1"]

    @pytest.mark.asyncio
    async def test_install_failure_cleans_up(self, store, artifacts, installer, app_paths) -> None:
        installer.failing.add("v1")

        with pytest.raises(DependencyInstallFailed, match="dependency resolution"):
            await store.install("v1", artifacts("v1"))

        assert list(app_paths.releases_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_corrupt_archive(self, store, temp_dir, app_paths) -> None:
        archive = temp_dir / "demo-v1.tar.gz"
        archive.write_bytes(b"this is not a tarball")

        with pytest.raises(ExtractionFailed):
            await store.install("v1", archive)

        assert list(app_paths.releases_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_install_existing(self, store, artifacts) -> None:
        first, second = await install_all(store, artifacts, "v1", "v2")
        store.promote(second)

        with pytest.raises(ReleaseAlreadyExists):
            await store.install("v1", artifacts("v1"))
        with pytest.raises(AlreadyCurrent):
            await store.install("v2", artifacts("v2"))


class TestPointer:
    """Tests for promotion and release ordering."""

    @pytest.mark.asyncio
    async def test_promote_uses_relative_link(self, store, artifacts, app_paths) -> None:
        (release,) = await install_all(store, artifacts, "v1")

        store.promote(release)

        assert os.readlink(app_paths.current_link) == "releases/v1"
        assert store.current_id() == "v1"
        assert store.current().release_id == "v1"

    @pytest.mark.asyncio
    async def test_promote_replaces_existing_link(self, store, artifacts, app_paths) -> None:
        first, second = await install_all(store, artifacts, "v1", "v2")
        store.promote(first)

        store.promote(second)

        assert os.readlink(app_paths.current_link) == "releases/v2"
        assert sorted(p.name for p in app_paths.base_dir.iterdir()) == ["current", "releases"]

    @pytest.mark.asyncio
    async def test_promote_requires_installed(self, store, artifacts) -> None:
        (release,) = await install_all(store, artifacts, "v1")
        release.status = ReleaseStatus.FAILED

        with pytest.raises(ReleaseNotInstalled):
            store.promote(release)

    @pytest.mark.asyncio
    async def test_previous(self, store, artifacts) -> None:
        releases = await install_all(store, artifacts, "v1", "v2", "v3")
        store.promote(releases[2])

        assert store.previous().release_id == "v2"
        assert store.previous(excluding="v2").release_id == "v3"

    @pytest.mark.asyncio
    async def test_no_prior_release(self, store, artifacts) -> None:
        (release,) = await install_all(store, artifacts, "v1")
        store.promote(release)

        with pytest.raises(NoPriorRelease):
            store.previous()

    def test_empty_store(self, store) -> None:
        assert store.list_releases() == []
        assert store.current() is None
        with pytest.raises(NoPriorRelease):
            store.previous()


class TestPrune:
    """Tests for release pruning."""

    @pytest.mark.asyncio
    async def test_prune_keeps_newest(self, store, artifacts) -> None:
        releases = await install_all(store, artifacts, "v1", "v2", "v3", "v4")
        store.promote(releases[3])

        removed = store.prune(keep=2)

        assert sorted(removed) == ["v1", "v2"]
        assert [r.release_id for r in store.list_releases()] == ["v4", "v3"]

    @pytest.mark.asyncio
    async def test_prune_never_removes_current(self, store, artifacts) -> None:
        """An old current release is kept on top of the newest ones."""
        releases = await install_all(store, artifacts, "v1", "v2", "v3")
        store.promote(releases[0])

        removed = store.prune(keep=2)

        assert removed == []
        assert sorted(r.release_id for r in store.list_releases()) == ["v1", "v2", "v3"]
        assert store.current_id() == "v1"

    @pytest.mark.asyncio
    async def test_prune_evicts_beyond_newest_and_current(self, store, artifacts) -> None:
        releases = await install_all(store, artifacts, "v1", "v2", "v3", "v4")
        store.promote(releases[0])

        removed = store.prune(keep=2)

        assert removed == ["v2"]
        assert sorted(r.release_id for r in store.list_releases()) == ["v1", "v3", "v4"]

    def test_prune_rejects_zero(self, store) -> None:
        with pytest.raises(ValueError):
            store.prune(keep=0)

    def test_remove_is_idempotent(self, store) -> None:
        assert store.remove("missing") is False


class TestNpmInstaller:
    """Tests for the npm dependency installer."""

    def test_skips_without_package_json(self, temp_dir) -> None:
        with patch("subprocess.run") as mock_run:
            NpmInstaller().install(temp_dir)

        mock_run.assert_not_called()

    def test_runs_command_in_release_dir(self, temp_dir) -> None:
        (temp_dir / "package.json").write_text("{}")

        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0, stdout="", stderr="")
            NpmInstaller(["npm", "ci"]).install(temp_dir)

        assert mock_run.call_args[0][0] == ["npm", "ci"]
        assert mock_run.call_args[1]["cwd"] == temp_dir

    def test_failure_raises(self, temp_dir) -> None:
        (temp_dir / "package.json").write_text("{}")

        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=1, stdout="", stderr="npm ERR! 404\n")
            with pytest.raises(InstallerError, match="npm ERR! 404"):
                NpmInstaller().install(temp_dir)

    def test_missing_command(self, temp_dir) -> None:
        (temp_dir / "package.json").write_text("{}")

        with patch("subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(InstallerError, match="not found"):
                NpmInstaller().install(temp_dir)

    def test_timeout(self, temp_dir) -> None:
        (temp_dir / "package.json").write_text("{}")

        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("npm", 1)):
            with pytest.raises(InstallerError, match="timed out"):
                NpmInstaller(timeout=1).install(temp_dir)


class TestNoopInstaller:
    """Tests for the installer used when artifacts ship their dependencies."""

    def test_never_runs_a_command(self, temp_dir) -> None:
        (temp_dir / "package.json").write_text("{}")

        with patch("subprocess.run") as mock_run:
            NoopInstaller().install(temp_dir)

        mock_run.assert_not_called()
