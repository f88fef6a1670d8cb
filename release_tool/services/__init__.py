# release_tool/services/__init__.py
"""Business logic services for release-tool"""

from .config_service import ConfigStore
from .fetch_service import ArtifactFetcher
from .release_service import DependencyInstaller, NoopInstaller, NpmInstaller, ReleaseStore
from .process_service import ProcessState, ProcessSupervisor, Pm2Supervisor, ProcessController
from .retention_service import RetentionPolicy
from .orchestrator import Orchestrator

__all__ = [
    "ConfigStore",
    "ArtifactFetcher",
    "DependencyInstaller",
    "NoopInstaller",
    "NpmInstaller",
    "ReleaseStore",
    "ProcessState",
    "ProcessSupervisor",
    "Pm2Supervisor",
    "ProcessController",
    "RetentionPolicy",
    "Orchestrator",
]
