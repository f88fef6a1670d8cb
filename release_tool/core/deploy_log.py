"""Append-only deployment log"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..models.release import DeploymentLogEntry
from ..models.result import OperationResult

logger = logging.getLogger(__name__)


class DeploymentLog:
    """One human-readable line per terminal outcome of an operation"""

    def __init__(self, log_file: Path):
        self.log_file = Path(log_file)

    def append(self, entry: DeploymentLogEntry) -> None:
        """Append an entry

        The line is written with a single ``O_APPEND`` write so concurrent
        writers never interleave within a line.
        """
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        line = (entry.to_line() + "\n").encode("utf-8")

        fd = os.open(self.log_file, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o644)
        try:
            os.write(fd, line)
        finally:
            os.close(fd)

    def record(self, result: OperationResult, actor: str) -> DeploymentLogEntry:
        """Append the terminal outcome of ``result``"""
        stage = result.failed_stage or result.stage
        detail = result.error or result.message
        entry = DeploymentLogEntry(
            timestamp=datetime.now().astimezone(),
            operation=result.operation,
            release_id=result.release_id,
            outcome=result.status.value,
            actor=actor,
            stage=stage.value if stage else None,
            detail=detail or "",
        )
        self.append(entry)
        return entry

    def read(self, limit: Optional[int] = None) -> List[DeploymentLogEntry]:
        """Read entries, oldest first

        Args:
            limit: Return only the last ``limit`` entries

        Returns:
            Parsed entries; malformed lines are skipped with a warning
        """
        if not self.log_file.exists():
            return []

        entries = []
        with open(self.log_file, "r", encoding="utf-8") as f:
            for number, line in enumerate(f, 1):
                if not line.strip():
                    continue
                try:
                    entries.append(DeploymentLogEntry.from_line(line))
                except ValueError as e:
                    logger.warning(f"{self.log_file}:{number}: {e}")

        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries
