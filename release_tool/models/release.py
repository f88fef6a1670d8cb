# release_tool/models/release.py
"""Release models for the deployment tool"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional


class ReleaseStatus(Enum):
    """Lifecycle status of a release directory"""
    INSTALLING = "installing"
    INSTALLED = "installed"
    FAILED = "failed"


@dataclass
class Release:
    """One extracted, versioned installation of the application"""
    release_id: str
    path: Path
    installed_at: datetime
    status: ReleaseStatus = ReleaseStatus.INSTALLED
    artifact: Optional[str] = None

    @property
    def is_installed(self) -> bool:
        """Check if release is installed and present on disk"""
        return self.status == ReleaseStatus.INSTALLED and self.path.is_dir()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for the on-disk metadata file"""
        return {
            'release_id': self.release_id,
            'installed_at': self.installed_at.isoformat(),
            'status': self.status.value,
            'artifact': self.artifact,
        }

    @classmethod
    def from_dict(cls, path: Path, data: Dict[str, Any]) -> 'Release':
        """Create from metadata dictionary"""
        return cls(
            release_id=data['release_id'],
            path=path,
            installed_at=datetime.fromisoformat(data['installed_at']),
            status=ReleaseStatus(data.get('status', ReleaseStatus.INSTALLED.value)),
            artifact=data.get('artifact'),
        )


@dataclass
class DeploymentLogEntry:
    """One terminal outcome of a deploy, rollback or setup"""
    timestamp: datetime
    operation: str
    release_id: Optional[str]
    outcome: str
    actor: str
    stage: Optional[str] = None
    detail: str = ""

    def to_line(self) -> str:
        """Render as a single tab-separated log line"""
        detail = " ".join(self.detail.split())
        return "\t".join([
            self.timestamp.isoformat(timespec='seconds'),
            self.operation,
            self.release_id or "-",
            self.outcome,
            self.actor,
            self.stage or "-",
            detail,
        ])

    @classmethod
    def from_line(cls, line: str) -> 'DeploymentLogEntry':
        """Parse a line written by ``to_line``

        Raises:
            ValueError: If the line has too few fields
        """
        parts = line.rstrip("\n").split("\t", 6)
        if len(parts) < 6:
            raise ValueError(f"Malformed deployment log line: {line!r}")
        while len(parts) < 7:
            parts.append("")

        timestamp, operation, release_id, outcome, actor, stage, detail = parts
        return cls(
            timestamp=datetime.fromisoformat(timestamp),
            operation=operation,
            release_id=None if release_id == "-" else release_id,
            outcome=outcome,
            actor=actor,
            stage=None if stage == "-" else stage,
            detail=detail,
        )
