"""Release Tool - versioned application releases on a single host.

Provisions a per-application directory layout, installs tagged release
artifacts side by side, atomically switches the ``current`` pointer and
restarts the managed process, with rollback and deployment history.
"""

from .__version__ import __version__, __version_info__, __author__, __email__, __license__

# Core API
from .api.deployer import Deployer, deploy, rollback
from .services.orchestrator import Orchestrator
from .core.settings import ToolSettings

# Data models
from .models.config import DeployConfig
from .models.release import Release, ReleaseStatus, DeploymentLogEntry
from .models.result import OperationResult, OperationStatus, Stage, StatusReport

# Exceptions
from .api.exceptions import (
    ReleaseToolError,
    UsageError,
    PreconditionError,
    OperationalError,
    CriticalError,
    AlreadyCurrent,
)

__all__ = [
    # Version information
    "__version__",
    "__version_info__",
    "__author__",
    "__email__",
    "__license__",

    # Main classes
    "Deployer",
    "Orchestrator",
    "ToolSettings",

    # Core API functions
    "deploy",
    "rollback",

    # Data models
    "DeployConfig",
    "Release",
    "ReleaseStatus",
    "DeploymentLogEntry",
    "OperationResult",
    "OperationStatus",
    "Stage",
    "StatusReport",

    # Exceptions
    "ReleaseToolError",
    "UsageError",
    "PreconditionError",
    "OperationalError",
    "CriticalError",
    "AlreadyCurrent",
]
