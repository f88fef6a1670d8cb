# release_tool/models/__init__.py
"""Data models for release-tool"""

from .config import DeployConfig
from .release import Release, ReleaseStatus, DeploymentLogEntry
from .manifest import ProcessManifest
from .result import (
    OperationStatus,
    Stage,
    SetupRequest,
    DeployRequest,
    RollbackRequest,
    ErrorDetail,
    OperationResult,
    HousekeepingReport,
    StatusReport,
)

__all__ = [
    # Config models
    "DeployConfig",

    # Release models
    "Release",
    "ReleaseStatus",
    "DeploymentLogEntry",

    # Manifest models
    "ProcessManifest",

    # Request and result models
    "OperationStatus",
    "Stage",
    "SetupRequest",
    "DeployRequest",
    "RollbackRequest",
    "ErrorDetail",
    "OperationResult",
    "HousekeepingReport",
    "StatusReport",
]
