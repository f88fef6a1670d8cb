"""Process control through an external supervisor"""

import json
import logging
import os
import subprocess
import time
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from ..api.exceptions import ProcessStartFailed, ProcessStopFailed, SupervisorError
from ..constants import (
    DEFAULT_START_CHECK_ATTEMPTS,
    DEFAULT_START_CHECK_INTERVAL,
    DEFAULT_SUPERVISOR,
)
from ..core.path_resolver import AppPaths
from ..models.config import DeployConfig
from ..models.manifest import ProcessManifest
from ..utils.file_utils import atomic_write_json

logger = logging.getLogger(__name__)


class ProcessState(Enum):
    """Process state as reported by the supervisor"""
    ONLINE = "online"
    LAUNCHING = "launching"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERRORED = "errored"
    NOT_FOUND = "not-found"

    @property
    def is_running(self) -> bool:
        return self in (ProcessState.ONLINE, ProcessState.LAUNCHING)

    @classmethod
    def parse(cls, value: str) -> 'ProcessState':
        try:
            return cls(value)
        except ValueError:
            return cls.ERRORED


_FAILED_STATES = (ProcessState.ERRORED, ProcessState.STOPPED, ProcessState.NOT_FOUND)


class ProcessSupervisor(ABC):
    """Capability interface of the external process supervisor"""

    @abstractmethod
    def status(self, name: str) -> ProcessState:
        """Current state of the named process"""
        pass

    @abstractmethod
    def stop(self, name: str) -> None:
        """Stop the named process"""
        pass

    @abstractmethod
    def start(self, manifest_path: Path, name: str) -> None:
        """Start the process described by ``manifest_path`` with a fresh environment"""
        pass


class Pm2Supervisor(ProcessSupervisor):
    """Drives the ``pm2`` command line"""

    def __init__(self, command: str = DEFAULT_SUPERVISOR, timeout: float = 60.0):
        self.command = command
        self.timeout = timeout

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        cmd = [self.command, *args]
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError:
            raise SupervisorError(f"Supervisor command not found: {self.command}") from None
        except subprocess.TimeoutExpired:
            raise SupervisorError(f"'{' '.join(cmd)}' timed out after {self.timeout:g}s") from None
        except OSError as e:
            raise SupervisorError(f"Cannot run '{' '.join(cmd)}': {e}") from e

        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            raise SupervisorError(
                f"'{' '.join(cmd)}' exited with {result.returncode}: {detail}"
            )
        return result

    def _process_list(self) -> List[dict]:
        output = self._run("jlist").stdout
        # pm2 may print banner lines before the JSON document
        start = output.find("[")
        if start < 0:
            return []
        try:
            return json.loads(output[start:])
        except json.JSONDecodeError as e:
            raise SupervisorError(f"Unreadable process list from {self.command}: {e}") from e

    def status(self, name: str) -> ProcessState:
        for process in self._process_list():
            if process.get("name") == name:
                return ProcessState.parse(process.get("pm2_env", {}).get("status", ""))
        return ProcessState.NOT_FOUND

    def stop(self, name: str) -> None:
        self._run("stop", name)

    def start(self, manifest_path: Path, name: str) -> None:
        # Deleting first drops the environment pm2 cached from the previous start
        if self.status(name) != ProcessState.NOT_FOUND:
            self._run("delete", name)
        self._run("start", str(manifest_path))


class ProcessController:
    """Starts and stops one application through a supervisor"""

    def __init__(self,
                 paths: AppPaths,
                 supervisor: ProcessSupervisor,
                 start_check_attempts: int = DEFAULT_START_CHECK_ATTEMPTS,
                 start_check_interval: float = DEFAULT_START_CHECK_INTERVAL,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize process controller

        Args:
            paths: Application path resolver
            supervisor: Supervisor capability
            start_check_attempts: Status checks after a start
            start_check_interval: Seconds between status checks
            sleep: Sleep function (replaceable in tests)
        """
        self.paths = paths
        self.supervisor = supervisor
        self.start_check_attempts = max(1, start_check_attempts)
        self.start_check_interval = start_check_interval
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self.paths.app_name

    def working_directory(self) -> Path:
        """Directory the current pointer resolves to"""
        link = self.paths.current_link
        if link.is_symlink():
            return self.paths.base_dir / os.readlink(link)
        return link

    def build_manifest(self, config: DeployConfig) -> ProcessManifest:
        """Project config and paths into a manifest"""
        return ProcessManifest.build(
            name=self.name,
            script=config.script,
            cwd=self.working_directory(),
            out_file=self.paths.out_log,
            error_file=self.paths.error_log,
            env=config.env,
        )

    def write_manifest(self, config: DeployConfig) -> Path:
        """Regenerate the manifest file

        Returns:
            Path to the manifest
        """
        manifest = self.build_manifest(config)
        self.paths.logs_dir.mkdir(parents=True, exist_ok=True)
        atomic_write_json(self.paths.manifest_file, manifest.to_dict())
        logger.debug(f"Wrote manifest {self.paths.manifest_file}")
        return self.paths.manifest_file

    def state(self) -> ProcessState:
        """Current process state"""
        return self.supervisor.status(self.name)

    def stop(self) -> bool:
        """
        Stop the process if it is running

        Returns:
            True if a running process was stopped

        Raises:
            ProcessStopFailed: If the supervisor could not stop a running process
        """
        try:
            state = self.state()
            if not state.is_running:
                logger.info(f"Process '{self.name}' is not running ({state.value})")
                return False

            self.supervisor.stop(self.name)
        except (SupervisorError, OSError) as e:
            raise ProcessStopFailed(f"Cannot stop '{self.name}': {e}") from e

        logger.info(f"Stopped '{self.name}'")
        return True

    def start(self, config: DeployConfig) -> ProcessManifest:
        """
        Regenerate the manifest and start the process from it

        Returns:
            Manifest used for the start

        Raises:
            ProcessStartFailed: If the process is not running afterwards
        """
        try:
            manifest_path = self.write_manifest(config)
        except OSError as e:
            raise ProcessStartFailed(self.name, detail=f"cannot write manifest: {e}") from e
        manifest = self.build_manifest(config)

        try:
            self.supervisor.start(manifest_path, self.name)
        except (SupervisorError, OSError) as e:
            raise ProcessStartFailed(self.name, detail=str(e)) from e

        state = self._await_running()
        if state != ProcessState.ONLINE:
            raise ProcessStartFailed(self.name, state.value)

        logger.info(f"Started '{self.name}' from {manifest.cwd}")
        return manifest

    def _await_running(self) -> ProcessState:
        """Poll until the process is online or has failed"""
        state: Optional[ProcessState] = None

        for _ in range(self.start_check_attempts):
            self._sleep(self.start_check_interval)
            try:
                state = self.state()
            except (SupervisorError, OSError) as e:
                raise ProcessStartFailed(self.name, detail=str(e)) from e
            if state == ProcessState.ONLINE or state in _FAILED_STATES:
                break

        return state
