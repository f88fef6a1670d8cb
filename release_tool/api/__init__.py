# release_tool/api/__init__.py
"""API layer for release-tool"""

from .exceptions import (
    ReleaseToolError,
    UsageError,
    InvalidNameError,
    PreconditionError,
    NotInitialized,
    AlreadyInitialized,
    ConfigCorrupt,
    NoPriorRelease,
    DeploymentInProgress,
    ReleaseAlreadyExists,
    ReleaseNotInstalled,
    AlreadyCurrent,
    OperationalError,
    ArtifactNotFound,
    TransferFailed,
    ExtractionFailed,
    DependencyInstallFailed,
    ProcessStopFailed,
    PromotionFailed,
    CriticalError,
    ProcessStartFailed,
    RecoveryFailed,
    SupervisorError,
    InstallerError,
)
from .deployer import Deployer, deploy, rollback

__all__ = [
    # Main classes
    "Deployer",

    # Convenience functions
    "deploy",
    "rollback",

    # Exceptions
    "ReleaseToolError",
    "UsageError",
    "InvalidNameError",
    "PreconditionError",
    "NotInitialized",
    "AlreadyInitialized",
    "ConfigCorrupt",
    "NoPriorRelease",
    "DeploymentInProgress",
    "ReleaseAlreadyExists",
    "ReleaseNotInstalled",
    "AlreadyCurrent",
    "OperationalError",
    "ArtifactNotFound",
    "TransferFailed",
    "ExtractionFailed",
    "DependencyInstallFailed",
    "ProcessStopFailed",
    "PromotionFailed",
    "CriticalError",
    "ProcessStartFailed",
    "RecoveryFailed",
    "SupervisorError",
    "InstallerError",
]
