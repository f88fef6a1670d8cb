"""Operation request and result models"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Any

from .config import DeployConfig
from .release import Release
from ..constants import ErrorCategory, ExitCode


class OperationStatus(Enum):
    """Operation status"""
    SUCCESS = "success"
    FAILED = "failed"
    ROLLED_BACK = "rolled-back"
    CRITICAL = "critical"
    IN_PROGRESS = "in_progress"


class Stage(Enum):
    """Orchestrator state machine stages"""
    START = "start"
    CONFIG_LOADED = "config-loaded"
    PRIOR_FOUND = "prior-found"
    FETCHED = "fetched"
    INSTALLED = "installed"
    STOPPED = "stopped"
    PROMOTED = "promoted"
    STARTED = "started"
    LOGGED = "logged"


@dataclass
class SetupRequest:
    """Input for the setup operation"""
    app_name: str
    config: DeployConfig
    force: bool = False
    actor: str = "unknown"


@dataclass
class DeployRequest:
    """Input for the deploy operation"""
    app_name: str
    release_id: str
    actor: str = "unknown"
    reuse_installed: bool = False


@dataclass
class RollbackRequest:
    """Input for the rollback operation"""
    app_name: str
    actor: str = "unknown"


@dataclass
class ErrorDetail:
    """Detailed error information"""

    code: str
    message: str
    category: Optional[ErrorCategory] = None
    stage: Optional[Stage] = None
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "code": self.code,
            "message": self.message,
            "category": self.category.value if self.category else None,
            "stage": self.stage.value if self.stage else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat()
        }


@dataclass
class OperationResult:
    """Outcome of setup, deploy or rollback, threaded through every stage"""

    operation: str
    app_name: str
    status: OperationStatus = OperationStatus.IN_PROGRESS
    release_id: Optional[str] = None
    previous_release: Optional[str] = None
    stage: Stage = Stage.START
    failed_stage: Optional[Stage] = None
    message: str = ""
    errors: List[ErrorDetail] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    exit_code: int = ExitCode.SUCCESS
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None

    @property
    def is_success(self) -> bool:
        """Check if operation was successful"""
        return self.status == OperationStatus.SUCCESS

    @property
    def is_critical(self) -> bool:
        """Check if the application may have been left down"""
        return self.status == OperationStatus.CRITICAL

    @property
    def error(self) -> Optional[str]:
        """First error message, if any"""
        return self.errors[0].message if self.errors else None

    @property
    def duration(self) -> Optional[float]:
        """Get operation duration in seconds"""
        if self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return None

    def advance(self, stage: Stage) -> None:
        """Record that ``stage`` completed"""
        self.stage = stage

    def add_error(self, code: str, message: str,
                  category: Optional[ErrorCategory] = None,
                  stage: Optional[Stage] = None, **context) -> None:
        """Add an error"""
        self.errors.append(ErrorDetail(
            code=code,
            message=message,
            category=category,
            stage=stage,
            context=context
        ))

    def add_warning(self, message: str) -> None:
        """Add a warning"""
        self.warnings.append(message)

    def complete(self, status: OperationStatus, exit_code: Optional[int] = None) -> None:
        """Mark operation as complete"""
        self.end_time = datetime.now()
        self.status = status
        if exit_code is not None:
            self.exit_code = exit_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "operation": self.operation,
            "app": self.app_name,
            "status": self.status.value,
            "release_id": self.release_id,
            "previous_release": self.previous_release,
            "stage": self.stage.value,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "message": self.message,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": self.warnings,
            "exit_code": self.exit_code,
            "duration": self.duration
        }


@dataclass
class HousekeepingReport:
    """Result of a retention pass"""
    pruned: List[str] = field(default_factory=list)
    scratch_removed: List[Path] = field(default_factory=list)


@dataclass
class StatusReport:
    """Snapshot of an application's deployment state"""
    app_name: str
    base_dir: Path
    config: Optional[DeployConfig] = None
    current: Optional[Release] = None
    releases: List[Release] = field(default_factory=list)
    process_state: Optional[str] = None
