"""Core functionality for release-tool"""

from .path_resolver import AppPaths, validate_app_name, validate_release_id
from .settings import ToolSettings
from .lock import DeployLock
from .deploy_log import DeploymentLog

__all__ = [
    "AppPaths",
    "validate_app_name",
    "validate_release_id",
    "ToolSettings",
    "DeployLock",
    "DeploymentLog",
]
