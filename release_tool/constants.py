"""Global constants for release-tool"""

from enum import Enum
import re

APP_NAME = "release-tool"
LOG_FORMAT = "%(message)s"

# Config file format version
CONFIG_VERSION = "1.0"

# Per-application directory structure
DEFAULT_ROOT = "/opt/apps"
CONFIG_FILE = "config.yaml"
RELEASES_DIR = "releases"
CURRENT_LINK_NAME = "current"
MANIFEST_FILE = "ecosystem.config.json"
LOGS_DIR = "logs"
OUT_LOG_FILE = "out.log"
ERROR_LOG_FILE = "error.log"
SCRATCH_DIR = "tmp"
DEPLOYMENT_LOG_FILE = "deployments.log"
DEPLOYMENT_LOCK_FILE = ".deploy.lock"
RELEASE_METADATA_FILE = ".release.json"
STAGING_PREFIX = ".staging-"
FETCH_PREFIX = "fetch-"

# Artifact naming
DEFAULT_ARTIFACT_HOST = "https://github.com"
ARTIFACT_URL_PATTERN = "{base}/releases/download/{release}/{archive}"
ARCHIVE_FILE_PATTERN = "{repo}-{release}.tar.gz"

# Default configuration values
DEFAULT_KEEP_RELEASES = 5
DEFAULT_LOCK_TIMEOUT = 5.0  # seconds
LOCK_POLL_INTERVAL = 0.1  # seconds
DEFAULT_PROBE_TIMEOUT = 10.0  # seconds
DEFAULT_TRANSFER_TIMEOUT = 300.0  # seconds
DEFAULT_GRACE_PERIOD = 900  # seconds
DEFAULT_CHUNK_SIZE = 1024 * 1024  # 1MB
DEFAULT_SUPERVISOR = "pm2"
DEFAULT_INSTALL_COMMAND = "npm install --production"
DEFAULT_START_CHECK_ATTEMPTS = 5
DEFAULT_START_CHECK_INTERVAL = 1.0  # seconds

# Process environment defaults, overridable by the application config
DEFAULT_PROCESS_ENV = {
    "NODE_ENV": "production",
}

# Environment variables
ENV_ROOT = "RELEASE_TOOL_ROOT"
ENV_ARTIFACT_HOST = "RELEASE_TOOL_ARTIFACT_HOST"
ENV_KEEP = "RELEASE_TOOL_KEEP"
ENV_LOCK_TIMEOUT = "RELEASE_TOOL_LOCK_TIMEOUT"
ENV_PROBE_TIMEOUT = "RELEASE_TOOL_PROBE_TIMEOUT"
ENV_TRANSFER_TIMEOUT = "RELEASE_TOOL_TRANSFER_TIMEOUT"
ENV_GRACE_PERIOD = "RELEASE_TOOL_GRACE_PERIOD"
ENV_SUPERVISOR = "RELEASE_TOOL_SUPERVISOR"
ENV_INSTALL_COMMAND = "RELEASE_TOOL_INSTALL_COMMAND"
ENV_ACTOR = "RELEASE_TOOL_ACTOR"


# Error categories
class ErrorCategory(Enum):
    USAGE = "usage"
    PRECONDITION = "precondition"
    OPERATIONAL = "operational"
    CRITICAL = "critical"


# Process exit codes
class ExitCode:
    SUCCESS = 0
    FAILURE = 1
    USAGE_ERROR = 2
    PRECONDITION_FAILED = 3
    OPERATIONAL_FAILURE = 4
    DEPLOYMENT_FAILED = 5
    CRITICAL_FAILURE = 6


# Error codes
class ErrorCode:
    INVALID_NAME = "RT001"
    NOT_INITIALIZED = "RT002"
    ALREADY_INITIALIZED = "RT003"
    CONFIG_CORRUPT = "RT004"
    NO_PRIOR_RELEASE = "RT005"
    DEPLOYMENT_IN_PROGRESS = "RT006"
    RELEASE_ALREADY_EXISTS = "RT007"
    RELEASE_NOT_INSTALLED = "RT008"
    ALREADY_CURRENT = "RT009"
    ARTIFACT_NOT_FOUND = "RT010"
    TRANSFER_FAILED = "RT011"
    EXTRACTION_FAILED = "RT012"
    DEPENDENCY_INSTALL_FAILED = "RT013"
    PROCESS_STOP_FAILED = "RT014"
    PROMOTION_FAILED = "RT015"
    PROCESS_START_FAILED = "RT016"
    RECOVERY_FAILED = "RT017"
    SUPERVISOR_ERROR = "RT018"
    FILESYSTEM_ERROR = "RT019"
    UNEXPECTED_ERROR = "RT020"
    INVALID_CONFIG = "RT021"


# Validation patterns
APP_NAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_-]*$")
RELEASE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]*$")
ENV_KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Display constants
EMOJI_SUCCESS = "✓"
EMOJI_ERROR = "✗"
EMOJI_WARNING = "⚠"
EMOJI_ARROW = "→"

# Messages templates
MSG_DEPLOY_SUCCESS = f"{EMOJI_SUCCESS} Deployed {{app}}:{{release}}"
MSG_ROLLBACK_SUCCESS = f"{EMOJI_SUCCESS} Rolled back {{app}} {EMOJI_ARROW} {{release}}"
MSG_OPERATOR_ACTION = (
    "Application '{app}' may be down. Inspect '{log}' and the supervisor "
    "logs, then run 'release-tool rollback --name {app}' or deploy a known-good release."
)
