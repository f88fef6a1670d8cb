"""Tool-wide settings resolved from the environment"""

import os
import shlex
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional, Any

from ..constants import (
    DEFAULT_ROOT,
    DEFAULT_ARTIFACT_HOST,
    DEFAULT_KEEP_RELEASES,
    DEFAULT_LOCK_TIMEOUT,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_TRANSFER_TIMEOUT,
    DEFAULT_GRACE_PERIOD,
    DEFAULT_SUPERVISOR,
    DEFAULT_INSTALL_COMMAND,
    DEFAULT_START_CHECK_ATTEMPTS,
    DEFAULT_START_CHECK_INTERVAL,
    ENV_ROOT,
    ENV_ARTIFACT_HOST,
    ENV_KEEP,
    ENV_LOCK_TIMEOUT,
    ENV_PROBE_TIMEOUT,
    ENV_TRANSFER_TIMEOUT,
    ENV_GRACE_PERIOD,
    ENV_SUPERVISOR,
    ENV_INSTALL_COMMAND,
)


@dataclass
class ToolSettings:
    """Settings shared by every operation of one invocation"""

    root: Path = Path(DEFAULT_ROOT)
    artifact_host: str = DEFAULT_ARTIFACT_HOST
    keep_releases: int = DEFAULT_KEEP_RELEASES
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    transfer_timeout: float = DEFAULT_TRANSFER_TIMEOUT
    grace_period: float = DEFAULT_GRACE_PERIOD
    supervisor_command: str = DEFAULT_SUPERVISOR
    install_command: List[str] = field(
        default_factory=lambda: shlex.split(DEFAULT_INSTALL_COMMAND)
    )
    start_check_attempts: int = DEFAULT_START_CHECK_ATTEMPTS
    start_check_interval: float = DEFAULT_START_CHECK_INTERVAL

    def __post_init__(self):
        """Validate settings"""
        self.root = Path(self.root)
        if self.keep_releases < 1:
            raise ValueError("keep_releases must be at least 1")
        for name in ("lock_timeout", "probe_timeout", "transfer_timeout", "grace_period"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None, **overrides: Any) -> 'ToolSettings':
        """Build settings from ``RELEASE_TOOL_*`` variables

        Args:
            environ: Environment mapping (defaults to ``os.environ``)
            **overrides: Explicit values (e.g. from CLI options); ``None`` is ignored

        Returns:
            ToolSettings instance

        Raises:
            ValueError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        if env.get(ENV_ROOT):
            values["root"] = Path(env[ENV_ROOT])
        if env.get(ENV_ARTIFACT_HOST):
            values["artifact_host"] = env[ENV_ARTIFACT_HOST]
        if env.get(ENV_KEEP):
            values["keep_releases"] = _parse_number(env, ENV_KEEP, int)
        if env.get(ENV_LOCK_TIMEOUT):
            values["lock_timeout"] = _parse_number(env, ENV_LOCK_TIMEOUT, float)
        if env.get(ENV_PROBE_TIMEOUT):
            values["probe_timeout"] = _parse_number(env, ENV_PROBE_TIMEOUT, float)
        if env.get(ENV_TRANSFER_TIMEOUT):
            values["transfer_timeout"] = _parse_number(env, ENV_TRANSFER_TIMEOUT, float)
        if env.get(ENV_GRACE_PERIOD):
            values["grace_period"] = _parse_number(env, ENV_GRACE_PERIOD, float)
        if env.get(ENV_SUPERVISOR):
            values["supervisor_command"] = env[ENV_SUPERVISOR]
        if env.get(ENV_INSTALL_COMMAND):
            command = env[ENV_INSTALL_COMMAND]
            # "none" disables dependency installation
            values["install_command"] = [] if command.strip().lower() == "none" else shlex.split(command)

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def with_overrides(self, **overrides: Any) -> 'ToolSettings':
        """Copy with non-None overrides applied"""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _parse_number(env: Dict[str, str], name: str, kind):
    try:
        return kind(env[name])
    except ValueError:
        raise ValueError(f"{name} must be a number, got {env[name]!r}") from None
