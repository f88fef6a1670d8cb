"""Deployer API for release operations"""

from typing import Dict, List, Optional

from ..constants import ErrorCategory, ErrorCode, ExitCode
from ..core.settings import ToolSettings
from ..models import (
    DeployConfig,
    DeployRequest,
    DeploymentLogEntry,
    OperationResult,
    OperationStatus,
    RollbackRequest,
    SetupRequest,
    StatusReport,
)
from ..services.orchestrator import Orchestrator
from ..utils.async_utils import run_async
from ..utils.env_utils import current_actor


class Deployer:
    """Synchronous entry point to the release orchestrator"""

    def __init__(self, settings: Optional[ToolSettings] = None,
                 orchestrator: Optional[Orchestrator] = None,
                 actor: Optional[str] = None):
        """
        Initialize deployer

        Args:
            settings: Tool settings (read from the environment when omitted)
            orchestrator: Preconfigured orchestrator
            actor: Name recorded in the deployment log
        """
        self.orchestrator = orchestrator or Orchestrator(settings)
        self.settings = self.orchestrator.settings
        self.actor = actor or current_actor()

    def setup(self,
              app_name: str,
              source: str,
              script: str,
              env: Optional[Dict[str, str]] = None,
              force: bool = False) -> OperationResult:
        """
        Provision an application's layout and config

        Args:
            app_name: Application name
            source: Artifact source (OWNER/REPO, URL or absolute path)
            script: Entry script relative to the release root
            env: Process environment
            force: Overwrite a different existing config

        Returns:
            OperationResult: Setup result
        """
        try:
            config = DeployConfig(source=source, script=script, env=dict(env or {}))
        except ValueError as e:
            result = OperationResult(operation="setup", app_name=app_name)
            return _usage_failure(result, str(e))

        return self.orchestrator.setup(SetupRequest(
            app_name=app_name,
            config=config,
            force=force,
            actor=self.actor
        ))

    def deploy(self, app_name: str, release_id: str,
               reuse_installed: bool = False) -> OperationResult:
        """
        Deploy a tagged release

        Args:
            app_name: Application name
            release_id: Release tag
            reuse_installed: Promote an installed copy instead of failing

        Returns:
            OperationResult: Deployment result
        """
        return run_async(self.orchestrator.deploy(DeployRequest(
            app_name=app_name,
            release_id=release_id,
            actor=self.actor,
            reuse_installed=reuse_installed
        )))

    def rollback(self, app_name: str) -> OperationResult:
        """Roll back to the most recent other release"""
        return run_async(self.orchestrator.rollback(RollbackRequest(
            app_name=app_name,
            actor=self.actor
        )))

    def status(self, app_name: str) -> StatusReport:
        """Current state of an application"""
        return self.orchestrator.status(app_name)

    def history(self, app_name: str, limit: Optional[int] = None) -> List[DeploymentLogEntry]:
        """Deployment log entries, oldest first"""
        return self.orchestrator.history(app_name, limit)


def _usage_failure(result: OperationResult, message: str) -> OperationResult:
    result.add_error(ErrorCode.INVALID_CONFIG, message, category=ErrorCategory.USAGE)
    result.complete(OperationStatus.FAILED, ExitCode.USAGE_ERROR)
    return result


def deploy(app_name: str, release_id: str, **kwargs) -> OperationResult:
    """
    Convenience function for deploying a release

    Args:
        app_name: Application name
        release_id: Release tag
        **kwargs: Passed to Deployer.deploy

    Returns:
        OperationResult: Deployment result
    """
    return Deployer().deploy(app_name, release_id, **kwargs)


def rollback(app_name: str) -> OperationResult:
    """Convenience function for rolling back an application"""
    return Deployer().rollback(app_name)
