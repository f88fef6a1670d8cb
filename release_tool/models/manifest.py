"""Process manifest model consumed by the process supervisor"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any

from ..constants import DEFAULT_PROCESS_ENV


@dataclass
class ProcessManifest:
    """How to run the application; a projection of DeployConfig and app paths"""

    name: str
    script: str
    cwd: Path
    out_file: Path
    error_file: Path
    env: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, name: str, script: str, cwd: Path, out_file: Path,
              error_file: Path, env: Dict[str, str]) -> 'ProcessManifest':
        """Build a manifest with default environment merged under ``env``"""
        merged = dict(DEFAULT_PROCESS_ENV)
        merged.update(env)
        return cls(
            name=name,
            script=script,
            cwd=cwd,
            out_file=out_file,
            error_file=error_file,
            env=merged,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a pm2 ecosystem document"""
        return {
            "apps": [
                {
                    "name": self.name,
                    "script": self.script,
                    "cwd": str(self.cwd),
                    "out_file": str(self.out_file),
                    "error_file": str(self.error_file),
                    "merge_logs": True,
                    "autorestart": True,
                    "env": dict(self.env),
                }
            ]
        }
