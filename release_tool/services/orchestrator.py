"""Release orchestrator: setup, deploy and rollback state machines"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import requests

from ..api.exceptions import (
    AlreadyCurrent,
    AlreadyInitialized,
    ConfigCorrupt,
    DeploymentInProgress,
    NotInitialized,
    ProcessStartFailed,
    RecoveryFailed,
    ReleaseToolError,
    SupervisorError,
    UsageError,
)
from ..constants import (
    ErrorCategory,
    ErrorCode,
    ExitCode,
    MSG_DEPLOY_SUCCESS,
    MSG_OPERATOR_ACTION,
    MSG_ROLLBACK_SUCCESS,
)
from ..core.deploy_log import DeploymentLog
from ..core.lock import DeployLock
from ..core.path_resolver import AppPaths, validate_release_id
from ..core.settings import ToolSettings
from ..models.config import DeployConfig
from ..models.release import DeploymentLogEntry, Release
from ..models.result import (
    DeployRequest,
    OperationResult,
    OperationStatus,
    RollbackRequest,
    SetupRequest,
    Stage,
    StatusReport,
)
from ..utils.async_utils import run_blocking
from .config_service import ConfigStore
from .fetch_service import ArtifactFetcher
from .process_service import Pm2Supervisor, ProcessController, ProcessSupervisor
from .release_service import DependencyInstaller, NoopInstaller, NpmInstaller, ReleaseStore
from .retention_service import RetentionPolicy

logger = logging.getLogger(__name__)

DEPLOY_STAGES = (
    Stage.START,
    Stage.CONFIG_LOADED,
    Stage.FETCHED,
    Stage.INSTALLED,
    Stage.STOPPED,
    Stage.PROMOTED,
    Stage.STARTED,
    Stage.LOGGED,
)

ROLLBACK_STAGES = (
    Stage.START,
    Stage.CONFIG_LOADED,
    Stage.PRIOR_FOUND,
    Stage.STOPPED,
    Stage.PROMOTED,
    Stage.STARTED,
    Stage.LOGGED,
)


@dataclass
class AppContext:
    """Collaborators bound to one application"""
    paths: AppPaths
    config_store: ConfigStore
    fetcher: ArtifactFetcher
    releases: ReleaseStore
    process: ProcessController
    retention: RetentionPolicy
    log: DeploymentLog


class Orchestrator:
    """Composes the stores and controllers into setup, deploy and rollback

    Every operation takes the application's DeployLock before touching
    state and returns an ``OperationResult`` instead of raising for
    expected failures. Unexpected exceptions are recorded in the
    deployment log and re-raised.
    """

    def __init__(self,
                 settings: Optional[ToolSettings] = None,
                 supervisor: Optional[ProcessSupervisor] = None,
                 installer: Optional[DependencyInstaller] = None,
                 session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize orchestrator

        Args:
            settings: Tool settings (defaults to the environment)
            supervisor: Process supervisor (defaults to pm2)
            installer: Dependency installer (defaults to npm, or none when the install command is empty)
            session: HTTP session for artifact downloads
            sleep: Sleep function used while waiting for process start
        """
        self.settings = settings or ToolSettings.from_env()
        self.supervisor = supervisor or Pm2Supervisor(self.settings.supervisor_command)
        self.installer = installer or self._default_installer()
        self.session = session
        self._sleep = sleep

    def _default_installer(self) -> DependencyInstaller:
        if not self.settings.install_command:
            return NoopInstaller()
        return NpmInstaller(self.settings.install_command)

    def context(self, app_name: str) -> AppContext:
        """Build the collaborators for one application

        Raises:
            InvalidNameError: If the application name is invalid
        """
        paths = AppPaths(self.settings.root, app_name)
        releases = ReleaseStore(paths, self.installer)
        return AppContext(
            paths=paths,
            config_store=ConfigStore(paths),
            fetcher=ArtifactFetcher(
                paths,
                artifact_host=self.settings.artifact_host,
                probe_timeout=self.settings.probe_timeout,
                transfer_timeout=self.settings.transfer_timeout,
                session=self.session,
            ),
            releases=releases,
            process=ProcessController(
                paths,
                self.supervisor,
                start_check_attempts=self.settings.start_check_attempts,
                start_check_interval=self.settings.start_check_interval,
                sleep=self._sleep,
            ),
            retention=RetentionPolicy(
                paths,
                releases,
                keep=self.settings.keep_releases,
                grace_period=self.settings.grace_period,
            ),
            log=DeploymentLog(paths.deployment_log),
        )

    def _lock(self, ctx: AppContext) -> DeployLock:
        return DeployLock(ctx.paths.lock_file, ctx.paths.app_name, self.settings.lock_timeout)

    # ------------------------------------------------------------------
    # setup
    # ------------------------------------------------------------------

    def setup(self, request: SetupRequest) -> OperationResult:
        """Create the directory layout and persist the config

        Safe to re-run: an identical config is a no-op, a different one is
        refused unless ``request.force`` is set.
        """
        result = OperationResult(operation="setup", app_name=request.app_name)

        try:
            ctx = self.context(request.app_name)
        except UsageError as e:
            self._fail(result, e)
            return result

        try:
            ctx.paths.base_dir.mkdir(parents=True, exist_ok=True)
            with self._lock(ctx):
                self._setup_locked(ctx, request, result)
        except ReleaseToolError as e:
            self._fail(result, e)
        except OSError as e:
            self._fail_filesystem(result, e)

        self._record(ctx, result, request.actor)
        return result

    def _setup_locked(self, ctx: AppContext, request: SetupRequest,
                      result: OperationResult) -> None:
        for directory in ctx.paths.layout_dirs():
            directory.mkdir(parents=True, exist_ok=True)

        config = request.config
        try:
            ctx.config_store.initialize(config, overwrite=request.force)
            result.message = f"Application '{ctx.paths.app_name}' set up at {ctx.paths.base_dir}"
        except AlreadyInitialized:
            existing = self._existing_config(ctx)
            if existing is None or not existing.same_settings(config):
                raise
            config = existing
            result.message = f"Application '{ctx.paths.app_name}' is already set up; nothing changed"

        ctx.process.write_manifest(config)
        result.complete(OperationStatus.SUCCESS, ExitCode.SUCCESS)

    @staticmethod
    def _existing_config(ctx: AppContext) -> Optional[DeployConfig]:
        try:
            return ctx.config_store.load()
        except ConfigCorrupt as e:
            logger.warning(f"Existing configuration is unreadable: {e}")
            return None

    # ------------------------------------------------------------------
    # deploy
    # ------------------------------------------------------------------

    async def deploy(self, request: DeployRequest) -> OperationResult:
        """Fetch, install and promote a release

        Stages: start, config-loaded, fetched, installed, stopped,
        promoted, started, logged.
        """
        result = OperationResult(
            operation="deploy",
            app_name=request.app_name,
            release_id=request.release_id
        )

        try:
            ctx = self.context(request.app_name)
            validate_release_id(request.release_id)
        except UsageError as e:
            self._fail(result, e, DEPLOY_STAGES)
            return result

        if not ctx.config_store.exists():
            self._fail(result, NotInitialized(request.app_name), DEPLOY_STAGES)
            self._record(ctx, result, request.actor)
            return result

        try:
            with self._lock(ctx):
                await self._deploy_locked(ctx, request, result)
        except DeploymentInProgress as e:
            self._fail(result, e)
        except ReleaseToolError as e:
            self._fail(result, e, DEPLOY_STAGES)
        except OSError as e:
            self._fail_filesystem(result, e, DEPLOY_STAGES)
        except BaseException as e:
            self._fail_unexpected(ctx, result, e, DEPLOY_STAGES, request.actor)
            raise

        self._record(ctx, result, request.actor)
        return result

    async def _deploy_locked(self, ctx: AppContext, request: DeployRequest,
                             result: OperationResult) -> None:
        release_id = request.release_id

        config = ctx.config_store.load()
        result.advance(Stage.CONFIG_LOADED)

        previous_id = ctx.releases.current_id()
        result.previous_release = previous_id

        try:
            release = await self._obtain_release(ctx, config, request, result)
        except AlreadyCurrent as e:
            logger.info(str(e))
            result.message = str(e)
            result.complete(OperationStatus.SUCCESS, ExitCode.SUCCESS)
            return
        result.advance(Stage.INSTALLED)

        await self._switch(ctx, config, release, previous_id, result, DEPLOY_STAGES)

        if result.is_success:
            result.message = MSG_DEPLOY_SUCCESS.format(app=ctx.paths.app_name, release=release_id)
            self._housekeep(ctx, result)

    async def _obtain_release(self, ctx: AppContext, config: DeployConfig,
                              request: DeployRequest, result: OperationResult) -> Release:
        """Fetch and install the requested release, or reuse an installed copy"""
        release_id = request.release_id

        if request.reuse_installed:
            existing = ctx.releases.get(release_id)
            if existing is not None:
                if ctx.releases.current_id() == release_id:
                    raise AlreadyCurrent(release_id)
                logger.info(f"Reusing installed release {release_id}")
                result.add_warning(f"Reused installed release {release_id}; fetch skipped")
                result.advance(Stage.FETCHED)
                return existing

        # Refuse before spending a download on an installed id
        ctx.releases.check_installable(release_id)

        artifact = await ctx.fetcher.fetch(config.source, release_id)
        result.advance(Stage.FETCHED)
        try:
            return await ctx.releases.install(release_id, artifact)
        finally:
            ctx.fetcher.discard(artifact)

    # ------------------------------------------------------------------
    # rollback
    # ------------------------------------------------------------------

    async def rollback(self, request: RollbackRequest) -> OperationResult:
        """Repoint current to the most recent other release and restart

        Stages: start, config-loaded, prior-found, stopped, promoted,
        started, logged.
        """
        result = OperationResult(operation="rollback", app_name=request.app_name)

        try:
            ctx = self.context(request.app_name)
        except UsageError as e:
            self._fail(result, e, ROLLBACK_STAGES)
            return result

        if not ctx.config_store.exists():
            self._fail(result, NotInitialized(request.app_name), ROLLBACK_STAGES)
            self._record(ctx, result, request.actor)
            return result

        try:
            with self._lock(ctx):
                await self._rollback_locked(ctx, result)
        except DeploymentInProgress as e:
            self._fail(result, e)
        except ReleaseToolError as e:
            self._fail(result, e, ROLLBACK_STAGES)
        except OSError as e:
            self._fail_filesystem(result, e, ROLLBACK_STAGES)
        except BaseException as e:
            self._fail_unexpected(ctx, result, e, ROLLBACK_STAGES, request.actor)
            raise

        self._record(ctx, result, request.actor)
        return result

    async def _rollback_locked(self, ctx: AppContext, result: OperationResult) -> None:
        config = ctx.config_store.load()
        result.advance(Stage.CONFIG_LOADED)

        current_id = ctx.releases.current_id()
        result.previous_release = current_id

        prior = ctx.releases.previous(excluding=current_id)
        result.release_id = prior.release_id
        result.advance(Stage.PRIOR_FOUND)

        await self._switch(ctx, config, prior, current_id, result, ROLLBACK_STAGES)

        if result.is_success:
            result.message = MSG_ROLLBACK_SUCCESS.format(
                app=ctx.paths.app_name, release=prior.release_id
            )

    # ------------------------------------------------------------------
    # shared switch: stop, promote, start
    # ------------------------------------------------------------------

    async def _switch(self, ctx: AppContext, config: DeployConfig, release: Release,
                      previous_id: Optional[str], result: OperationResult,
                      stages: Sequence[Stage]) -> None:
        """Stop the old process, promote ``release`` and start it

        Before promotion the old release stays current and is restarted on
        failure. A failed start after promotion triggers recovery to
        ``previous_id``.
        """
        await run_blocking(ctx.process.stop)
        result.advance(Stage.STOPPED)

        try:
            ctx.releases.promote(release)
        except ReleaseToolError as e:
            self._fail(result, e, stages)
            await self._restart_current(ctx, config, result)
            return
        result.advance(Stage.PROMOTED)

        try:
            await run_blocking(ctx.process.start, config)
        except ProcessStartFailed as e:
            self._fail(result, e, stages)
            await self._recover(ctx, config, previous_id, result)
            return
        result.advance(Stage.STARTED)

        result.complete(OperationStatus.SUCCESS, ExitCode.SUCCESS)

    async def _restart_current(self, ctx: AppContext, config: DeployConfig,
                               result: OperationResult) -> None:
        """Bring the unchanged current release back up after a pre-promotion failure"""
        current = ctx.releases.current()
        if current is None:
            return

        try:
            await run_blocking(ctx.process.start, config)
        except ProcessStartFailed as e:
            self._escalate(ctx, result, RecoveryFailed(
                f"Restarting {current.release_id} failed: {e}"
            ))
            return

        result.add_warning(f"Restarted unchanged release {current.release_id}")

    async def _recover(self, ctx: AppContext, config: DeployConfig,
                       previous_id: Optional[str], result: OperationResult) -> None:
        """Repoint to ``previous_id`` and restart it after a failed start"""
        prior = ctx.releases.get(previous_id) if previous_id else None
        if prior is None:
            self._escalate(ctx, result, RecoveryFailed(
                "No previous release to recover to"
            ))
            return

        logger.warning(f"Start failed, rolling back to {prior.release_id}")
        try:
            ctx.releases.promote(prior)
            await run_blocking(ctx.process.start, config)
        except (ReleaseToolError, OSError) as e:
            self._escalate(ctx, result, RecoveryFailed(
                f"Automatic rollback to {prior.release_id} failed: {e}"
            ))
            return

        result.add_warning(f"Automatically rolled back to {prior.release_id}")
        result.complete(OperationStatus.ROLLED_BACK, ExitCode.DEPLOYMENT_FAILED)

    def _housekeep(self, ctx: AppContext, result: OperationResult) -> None:
        try:
            report = ctx.retention.housekeep()
        except (OSError, ValueError) as e:
            logger.warning(f"Housekeeping failed: {e}")
            result.add_warning(f"Housekeeping failed: {e}")
            return

        if report.pruned:
            result.add_warning(f"Pruned releases: {', '.join(report.pruned)}")

    # ------------------------------------------------------------------
    # status and history
    # ------------------------------------------------------------------

    def status(self, app_name: str) -> StatusReport:
        """Snapshot of config, releases and process state

        Raises:
            NotInitialized: If the application was never set up
            ConfigCorrupt: If the config is unreadable
        """
        ctx = self.context(app_name)
        config = ctx.config_store.load()

        try:
            process_state = ctx.process.state().value
        except SupervisorError as e:
            logger.warning(str(e))
            process_state = "unknown"

        return StatusReport(
            app_name=app_name,
            base_dir=ctx.paths.base_dir,
            config=config,
            current=ctx.releases.current(),
            releases=ctx.releases.list_releases(),
            process_state=process_state,
        )

    def history(self, app_name: str, limit: Optional[int] = None) -> List[DeploymentLogEntry]:
        """Entries of the deployment log, oldest first"""
        ctx = self.context(app_name)
        if not ctx.config_store.exists():
            raise NotInitialized(app_name)
        return ctx.log.read(limit)

    # ------------------------------------------------------------------
    # result bookkeeping
    # ------------------------------------------------------------------

    @staticmethod
    def _attempted_stage(result: OperationResult, stages: Sequence[Stage]) -> Optional[Stage]:
        if not stages:
            return None
        index = stages.index(result.stage) if result.stage in stages else 0
        return stages[min(index + 1, len(stages) - 1)]

    def _fail(self, result: OperationResult, error: ReleaseToolError,
              stages: Sequence[Stage] = ()) -> None:
        """Record an expected failure at the stage being attempted"""
        stage = self._attempted_stage(result, stages)
        result.failed_stage = stage
        result.add_error(
            error.error_code or ErrorCode.UNEXPECTED_ERROR,
            str(error),
            category=error.category,
            stage=stage
        )
        status = (OperationStatus.CRITICAL if error.category == ErrorCategory.CRITICAL
                  else OperationStatus.FAILED)
        result.complete(status, error.exit_code)

        where = f" at {stage.value}" if stage else ""
        logger.error(f"{result.operation} {result.app_name} failed{where}: {error}")

    def _fail_filesystem(self, result: OperationResult, error: OSError,
                         stages: Sequence[Stage] = ()) -> None:
        stage = self._attempted_stage(result, stages)
        result.failed_stage = stage
        result.add_error(
            ErrorCode.FILESYSTEM_ERROR,
            f"Filesystem error: {error}",
            category=ErrorCategory.OPERATIONAL,
            stage=stage
        )
        result.complete(OperationStatus.FAILED, ExitCode.FAILURE)
        logger.error(f"{result.operation} {result.app_name} failed: {error}")

    def _fail_unexpected(self, ctx: AppContext, result: OperationResult,
                         error: BaseException, stages: Sequence[Stage], actor: str) -> None:
        stage = self._attempted_stage(result, stages)
        result.failed_stage = stage
        result.add_error(
            ErrorCode.UNEXPECTED_ERROR,
            f"Interrupted: {type(error).__name__}: {error}",
            stage=stage
        )
        result.complete(OperationStatus.FAILED, ExitCode.FAILURE)
        self._record(ctx, result, actor)

    def _escalate(self, ctx: AppContext, result: OperationResult, error: RecoveryFailed) -> None:
        """Mark the result critical with operator guidance"""
        guidance = MSG_OPERATOR_ACTION.format(
            app=ctx.paths.app_name, log=ctx.paths.error_log
        )
        result.add_error(
            error.error_code,
            f"{error} {guidance}",
            category=error.category,
            stage=result.failed_stage
        )
        result.complete(OperationStatus.CRITICAL, error.exit_code)
        logger.critical(f"{error} {guidance}")

    def _record(self, ctx: AppContext, result: OperationResult, actor: str) -> None:
        """Append the terminal outcome to the deployment log"""
        if not ctx.paths.base_dir.is_dir():
            return

        try:
            ctx.log.record(result, actor)
        except OSError as e:
            logger.error(f"Cannot write deployment log {ctx.log.log_file}: {e}")
            result.add_warning(f"Deployment log not written: {e}")
            return

        if result.is_success and result.stage == Stage.STARTED:
            result.advance(Stage.LOGGED)
