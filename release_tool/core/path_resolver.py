"""Path resolution module for release-tool"""

from pathlib import Path
from typing import Union

from ..api.exceptions import InvalidNameError
from ..constants import (
    APP_NAME_PATTERN,
    RELEASE_ID_PATTERN,
    CONFIG_FILE,
    RELEASES_DIR,
    CURRENT_LINK_NAME,
    MANIFEST_FILE,
    LOGS_DIR,
    OUT_LOG_FILE,
    ERROR_LOG_FILE,
    SCRATCH_DIR,
    DEPLOYMENT_LOG_FILE,
    DEPLOYMENT_LOCK_FILE,
)


def validate_app_name(name: str) -> str:
    """Return ``name`` if it is a valid application name"""
    if not name or not APP_NAME_PATTERN.match(name):
        raise InvalidNameError("application name", name)
    return name


def validate_release_id(release_id: str) -> str:
    """Return ``release_id`` if it is safe to use as a directory name"""
    if (not release_id
            or release_id in (".", "..")
            or not RELEASE_ID_PATTERN.match(release_id)):
        raise InvalidNameError("release id", release_id)
    return release_id


class AppPaths:
    """Resolves paths within one application's base directory"""

    def __init__(self, root: Union[str, Path], app_name: str):
        """Initialize path resolver

        Args:
            root: Directory holding all application base directories
            app_name: Application name
        """
        self.app_name = validate_app_name(app_name)
        self.root = Path(root).expanduser().absolute()
        self.base_dir = self.root / app_name

    @property
    def config_file(self) -> Path:
        return self.base_dir / CONFIG_FILE

    @property
    def releases_dir(self) -> Path:
        return self.base_dir / RELEASES_DIR

    @property
    def current_link(self) -> Path:
        return self.base_dir / CURRENT_LINK_NAME

    @property
    def manifest_file(self) -> Path:
        return self.base_dir / MANIFEST_FILE

    @property
    def logs_dir(self) -> Path:
        return self.base_dir / LOGS_DIR

    @property
    def out_log(self) -> Path:
        return self.logs_dir / OUT_LOG_FILE

    @property
    def error_log(self) -> Path:
        return self.logs_dir / ERROR_LOG_FILE

    @property
    def scratch_dir(self) -> Path:
        return self.base_dir / SCRATCH_DIR

    @property
    def deployment_log(self) -> Path:
        return self.base_dir / DEPLOYMENT_LOG_FILE

    @property
    def lock_file(self) -> Path:
        return self.base_dir / DEPLOYMENT_LOCK_FILE

    def release_dir(self, release_id: str) -> Path:
        """Get final installation directory for a release

        Args:
            release_id: Release identifier

        Returns:
            Path under the releases directory
        """
        return self.releases_dir / validate_release_id(release_id)

    def current_target(self, release_id: str) -> Path:
        """Relative link target for the current pointer"""
        return Path(RELEASES_DIR) / validate_release_id(release_id)

    def layout_dirs(self):
        """Directories created by setup"""
        return [self.base_dir, self.releases_dir, self.logs_dir, self.scratch_dir]

    def __repr__(self) -> str:
        return f"AppPaths({self.base_dir})"
