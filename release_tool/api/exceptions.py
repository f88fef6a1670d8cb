"""Exception definitions for release-tool API"""

from ..constants import ErrorCategory, ErrorCode, ExitCode


class ReleaseToolError(Exception):
    """Base exception for release-tool"""

    category = ErrorCategory.OPERATIONAL
    exit_code = ExitCode.FAILURE

    def __init__(self, message: str, error_code: str = None):
        super().__init__(message)
        self.error_code = error_code


class UsageError(ReleaseToolError):
    """Missing or invalid user input, raised before any state is touched"""

    category = ErrorCategory.USAGE
    exit_code = ExitCode.USAGE_ERROR


class InvalidNameError(UsageError):
    """Application name or release id is not filesystem-safe"""

    def __init__(self, kind: str, value: str):
        super().__init__(f"Invalid {kind}: {value!r}", ErrorCode.INVALID_NAME)
        self.kind = kind
        self.value = value


class PreconditionError(ReleaseToolError):
    """Operation refused without mutating state; retry after fixing the cause"""

    category = ErrorCategory.PRECONDITION
    exit_code = ExitCode.PRECONDITION_FAILED


class NotInitialized(PreconditionError):
    """Application was never set up"""

    def __init__(self, app_name: str):
        super().__init__(
            f"Application '{app_name}' is not set up. "
            f"Run: release-tool setup --name {app_name} ...",
            ErrorCode.NOT_INITIALIZED
        )
        self.app_name = app_name


class AlreadyInitialized(PreconditionError):
    """Application config already exists"""

    def __init__(self, app_name: str):
        super().__init__(
            f"Application '{app_name}' is already set up with a different "
            f"configuration. Use --force to overwrite.",
            ErrorCode.ALREADY_INITIALIZED
        )
        self.app_name = app_name


class ConfigCorrupt(PreconditionError):
    """Persisted config cannot be parsed into a complete record"""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.CONFIG_CORRUPT)


class NoPriorRelease(PreconditionError):
    """No installed release exists to roll back to"""

    def __init__(self, app_name: str):
        super().__init__(
            f"No prior release of '{app_name}' is installed",
            ErrorCode.NO_PRIOR_RELEASE
        )
        self.app_name = app_name


class DeploymentInProgress(PreconditionError):
    """Another invocation holds the application's deploy lock"""

    def __init__(self, app_name: str, timeout: float):
        super().__init__(
            f"Another operation on '{app_name}' is in progress "
            f"(lock not acquired within {timeout:g}s)",
            ErrorCode.DEPLOYMENT_IN_PROGRESS
        )
        self.app_name = app_name


class ReleaseAlreadyExists(PreconditionError):
    """Release id is already installed and is not current"""

    def __init__(self, release_id: str):
        super().__init__(
            f"Release {release_id} is already installed. "
            f"Use --reuse to promote the installed copy.",
            ErrorCode.RELEASE_ALREADY_EXISTS
        )
        self.release_id = release_id


class ReleaseNotInstalled(PreconditionError):
    """Release is not in installed status"""

    def __init__(self, release_id: str):
        super().__init__(
            f"Release {release_id} is not installed",
            ErrorCode.RELEASE_NOT_INSTALLED
        )
        self.release_id = release_id


class AlreadyCurrent(ReleaseToolError):
    """Release is installed and already current; callers treat this as success"""

    exit_code = ExitCode.SUCCESS

    def __init__(self, release_id: str):
        super().__init__(
            f"Release {release_id} is already current",
            ErrorCode.ALREADY_CURRENT
        )
        self.release_id = release_id


class OperationalError(ReleaseToolError):
    """Failure before promotion; the old release remains current"""

    category = ErrorCategory.OPERATIONAL
    exit_code = ExitCode.OPERATIONAL_FAILURE


class ArtifactNotFound(OperationalError):
    """Remote artifact does not exist"""

    def __init__(self, url: str):
        super().__init__(f"Artifact not found: {url}", ErrorCode.ARTIFACT_NOT_FOUND)
        self.url = url


class TransferFailed(OperationalError):
    """Artifact probe or transfer failed"""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.TRANSFER_FAILED)


class ExtractionFailed(OperationalError):
    """Artifact could not be extracted"""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.EXTRACTION_FAILED)


class DependencyInstallFailed(OperationalError):
    """Dependency installation failed for an extracted release"""

    def __init__(self, release_id: str, detail: str = ""):
        message = f"Dependency installation failed for {release_id}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, ErrorCode.DEPENDENCY_INSTALL_FAILED)
        self.release_id = release_id


class ProcessStopFailed(OperationalError):
    """Supervisor failed to stop a running process"""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.PROCESS_STOP_FAILED)


class PromotionFailed(OperationalError):
    """Current pointer could not be replaced; it still names the old release"""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.PROMOTION_FAILED)


class CriticalError(ReleaseToolError):
    """Failure after promotion; liveness is not guaranteed"""

    category = ErrorCategory.CRITICAL
    exit_code = ExitCode.CRITICAL_FAILURE


class ProcessStartFailed(CriticalError):
    """Supervisor reports the process is not running after a start"""

    def __init__(self, app_name: str, state: str = "unknown", detail: str = ""):
        message = f"Process '{app_name}' failed to start (state: {state})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, ErrorCode.PROCESS_START_FAILED)
        self.app_name = app_name
        self.state = state


class RecoveryFailed(CriticalError):
    """Automatic rollback after a failed start also failed"""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.RECOVERY_FAILED)


class SupervisorError(ReleaseToolError):
    """Process supervisor command failed"""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.SUPERVISOR_ERROR)


class InstallerError(ReleaseToolError):
    """Dependency installer command failed"""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.DEPENDENCY_INSTALL_FAILED)
