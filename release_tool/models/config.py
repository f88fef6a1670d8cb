"""Configuration data models"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, Optional

from ..constants import CONFIG_VERSION, ENV_KEY_PATTERN


@dataclass
class DeployConfig:
    """Per-application setup data written once by ``setup``"""

    source: str  # owner/repo or a base URL
    script: str  # process entry point, relative to the release directory
    env: Dict[str, str] = field(default_factory=dict)
    created_at: Optional[str] = None

    def __post_init__(self):
        """Validate configuration"""
        if not isinstance(self.source, str) or not self.source.strip():
            raise ValueError("Config requires a non-empty 'source'")
        if not isinstance(self.script, str) or not self.script.strip():
            raise ValueError("Config requires a non-empty 'script'")
        if not isinstance(self.env, dict):
            raise ValueError("Config 'env' must be a mapping")

        for key, value in self.env.items():
            if not isinstance(key, str) or not ENV_KEY_PATTERN.match(key):
                raise ValueError(f"Invalid environment variable name: {key!r}")
            if not isinstance(value, str):
                raise ValueError(f"Environment value for {key} must be a string")

        if not self.created_at:
            self.created_at = datetime.now().isoformat()

    def same_settings(self, other: 'DeployConfig') -> bool:
        """Compare everything except the creation timestamp"""
        return (
            self.source == other.source
            and self.script == other.script
            and self.env == other.env
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "version": CONFIG_VERSION,
            "source": self.source,
            "script": self.script,
            "env": dict(self.env),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DeployConfig':
        """Create from dictionary

        Raises:
            ValueError: If a required field is missing or malformed
        """
        missing = [key for key in ("source", "script") if key not in data]
        if missing:
            raise ValueError(f"Missing required field(s): {', '.join(missing)}")

        env = data.get("env") or {}
        return cls(
            source=data["source"],
            script=data["script"],
            env=env,
            created_at=str(data["created_at"]) if data.get("created_at") else None,
        )
