"""Release store: installed releases on disk and the current pointer"""

import logging
import os
import shutil
import subprocess
import tarfile
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from ..api.exceptions import (
    AlreadyCurrent,
    DependencyInstallFailed,
    ExtractionFailed,
    InstallerError,
    NoPriorRelease,
    PromotionFailed,
    ReleaseAlreadyExists,
    ReleaseNotInstalled,
)
from ..constants import RELEASE_METADATA_FILE, STAGING_PREFIX, DEFAULT_INSTALL_COMMAND
from ..core.path_resolver import AppPaths, validate_release_id
from ..models.release import Release, ReleaseStatus
from ..utils.async_utils import run_blocking
from ..utils.file_utils import (
    atomic_symlink,
    atomic_write_json,
    extract_archive,
    path_age,
    read_json,
    remove_path,
)

logger = logging.getLogger(__name__)


class DependencyInstaller(ABC):
    """Installs an extracted release's dependencies in place"""

    @abstractmethod
    def install(self, release_dir: Path) -> None:
        """
        Install dependencies into ``release_dir``

        Args:
            release_dir: Extracted release tree

        Raises:
            InstallerError: If installation fails
        """
        pass


class NoopInstaller(DependencyInstaller):
    """Installer for artifacts that ship their dependencies"""

    def install(self, release_dir: Path) -> None:
        logger.debug(f"Skipping dependency installation for {release_dir}")


class NpmInstaller(DependencyInstaller):
    """Runs the package manager when the release has a ``package.json``"""

    def __init__(self, command: Optional[Sequence[str]] = None, timeout: Optional[float] = None):
        self.command = list(command) if command else DEFAULT_INSTALL_COMMAND.split()
        self.timeout = timeout

    def install(self, release_dir: Path) -> None:
        if not (release_dir / "package.json").exists():
            logger.info("No package.json found, skipping dependency installation")
            return

        logger.info(f"Installing dependencies: {' '.join(self.command)}")
        try:
            result = subprocess.run(
                self.command,
                cwd=release_dir,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except FileNotFoundError:
            raise InstallerError(f"Command not found: {self.command[0]}") from None
        except subprocess.TimeoutExpired:
            raise InstallerError(f"'{' '.join(self.command)}' timed out") from None

        if result.returncode != 0:
            output = (result.stderr or result.stdout or "").strip().splitlines()
            tail = output[-1] if output else f"exit code {result.returncode}"
            raise InstallerError(tail)


class ReleaseStore:
    """Manages installed releases and the ``current`` symlink of one application"""

    def __init__(self, paths: AppPaths, installer: Optional[DependencyInstaller] = None):
        """Initialize release store

        Args:
            paths: Application path resolver
            installer: Dependency installer run against each extracted release
        """
        self.paths = paths
        self.installer = installer or NpmInstaller()

    def _read_release(self, release_dir: Path) -> Optional[Release]:
        """Load an installed release from its directory"""
        if release_dir.name.startswith(".") or release_dir.is_symlink() or not release_dir.is_dir():
            return None

        metadata_file = release_dir / RELEASE_METADATA_FILE
        if metadata_file.exists():
            try:
                data = read_json(metadata_file)
                return Release.from_dict(release_dir, {**data, 'release_id': release_dir.name})
            except (ValueError, KeyError) as e:
                logger.warning(f"Ignoring unreadable metadata {metadata_file}: {e}")

        # Installed by hand or metadata lost: fall back to the directory mtime
        installed_at = datetime.fromtimestamp(release_dir.stat().st_mtime).astimezone()
        return Release(release_id=release_dir.name, path=release_dir, installed_at=installed_at)

    def list_releases(self) -> List[Release]:
        """List installed releases, newest first"""
        if not self.paths.releases_dir.is_dir():
            return []

        releases = []
        for entry in self.paths.releases_dir.iterdir():
            release = self._read_release(entry)
            if release and release.status == ReleaseStatus.INSTALLED:
                releases.append(release)

        releases.sort(key=lambda r: (r.installed_at.timestamp(), r.release_id), reverse=True)
        return releases

    def get(self, release_id: str) -> Optional[Release]:
        """Get an installed release by id"""
        release = self._read_release(self.paths.release_dir(release_id))
        if release and release.status == ReleaseStatus.INSTALLED:
            return release
        return None

    def current_id(self) -> Optional[str]:
        """Release id named by the current pointer, or None"""
        link = self.paths.current_link
        if not link.is_symlink():
            return None
        return Path(os.readlink(link)).name

    def current(self) -> Optional[Release]:
        """Release the current pointer resolves to, or None"""
        release_id = self.current_id()
        if release_id is None:
            return None
        return self.get(release_id)

    def check_installable(self, release_id: str) -> None:
        """
        Refuse a release id that is already installed

        Raises:
            AlreadyCurrent: If the release is installed and current
            ReleaseAlreadyExists: If the release is installed but not current
        """
        validate_release_id(release_id)
        if self.get(release_id) is None:
            return
        if self.current_id() == release_id:
            raise AlreadyCurrent(release_id)
        raise ReleaseAlreadyExists(release_id)

    async def install(self, release_id: str, artifact_path: Path) -> Release:
        """
        Extract an artifact and install its dependencies as a new release

        The tree is built under a hidden staging name and renamed into
        ``releases/<release_id>`` only once complete. Any failure removes
        the staging directory.

        Args:
            release_id: Release identifier
            artifact_path: Downloaded archive

        Returns:
            Installed release (not yet current)

        Raises:
            AlreadyCurrent: If the release is already installed and current
            ReleaseAlreadyExists: If the release is already installed
            ExtractionFailed: If the archive cannot be extracted
            DependencyInstallFailed: If dependency installation fails
        """
        self.check_installable(release_id)

        final_dir = self.paths.release_dir(release_id)
        self.paths.releases_dir.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(
            prefix=f"{STAGING_PREFIX}{release_id}-",
            dir=self.paths.releases_dir
        ))
        release = Release(
            release_id=release_id,
            path=staging,
            installed_at=datetime.now().astimezone(),
            status=ReleaseStatus.INSTALLING,
            artifact=artifact_path.name
        )

        try:
            logger.info(f"Extracting {artifact_path.name}")
            try:
                await run_blocking(extract_archive, artifact_path, staging)
            except (shutil.ReadError, tarfile.TarError, ValueError, OSError) as e:
                raise ExtractionFailed(f"Cannot extract {artifact_path.name}: {e}") from e

            try:
                await run_blocking(self.installer.install, staging)
            except InstallerError as e:
                raise DependencyInstallFailed(release_id, str(e)) from e

            release.status = ReleaseStatus.INSTALLED
            release.path = final_dir
            release.installed_at = datetime.now().astimezone()
            atomic_write_json(staging / RELEASE_METADATA_FILE, release.to_dict())

            if final_dir.exists():
                raise ReleaseAlreadyExists(release_id)
            os.rename(staging, final_dir)
        except BaseException:
            release.status = ReleaseStatus.FAILED
            remove_path(staging)
            raise

        logger.info(f"Installed release {release_id} at {final_dir}")
        return release

    def promote(self, release: Release) -> None:
        """
        Atomically point ``current`` at ``release``

        Raises:
            ReleaseNotInstalled: If the release is not installed under this store
            PromotionFailed: If the pointer could not be replaced
        """
        if (not release.is_installed
                or release.path != self.paths.release_dir(release.release_id)):
            raise ReleaseNotInstalled(release.release_id)

        try:
            atomic_symlink(self.paths.current_target(release.release_id), self.paths.current_link)
        except OSError as e:
            raise PromotionFailed(
                f"Cannot update {self.paths.current_link} to {release.release_id}: {e}"
            ) from e

        logger.info(f"current -> {release.release_id}")

    def previous(self, excluding: Optional[str] = None) -> Release:
        """
        Most recently installed release other than ``excluding``

        Args:
            excluding: Release id to skip (defaults to the current release)

        Raises:
            NoPriorRelease: If no other release is installed
        """
        if excluding is None:
            excluding = self.current_id()

        for release in self.list_releases():
            if release.release_id != excluding:
                return release

        raise NoPriorRelease(self.paths.app_name)

    def remove(self, release_id: str) -> bool:
        """Delete a release directory; absent directories are not an error"""
        removed = remove_path(self.paths.release_dir(release_id))
        if removed:
            logger.info(f"Removed release {release_id}")
        return removed

    def prune(self, keep: int) -> List[str]:
        """
        Delete releases beyond the ``keep`` most recent, never the current one

        An older current release is kept in addition to the ``keep`` newest.

        Args:
            keep: Number of releases to retain (at least 1)

        Returns:
            Removed release ids
        """
        if keep < 1:
            raise ValueError("keep must be at least 1")

        releases = self.list_releases()
        retained = {release.release_id for release in releases[:keep]}
        retained.add(self.current_id())

        removed = []
        for release in releases:
            if release.release_id in retained:
                continue
            self.remove(release.release_id)
            removed.append(release.release_id)

        return removed

    def stale_staging(self, older_than: float) -> List[Path]:
        """Staging directories left by interrupted installs"""
        if not self.paths.releases_dir.is_dir():
            return []

        return [
            entry for entry in self.paths.releases_dir.iterdir()
            if entry.name.startswith(STAGING_PREFIX) and path_age(entry) > older_than
        ]
