"""Retention policy: release pruning and scratch cleanup"""

import logging
from pathlib import Path
from typing import List

from ..constants import DEFAULT_GRACE_PERIOD, DEFAULT_KEEP_RELEASES
from ..core.path_resolver import AppPaths
from ..models.result import HousekeepingReport
from ..utils.file_utils import path_age, remove_path
from .release_service import ReleaseStore

logger = logging.getLogger(__name__)


class RetentionPolicy:
    """Keeps the newest releases and clears leftovers of interrupted runs"""

    def __init__(self,
                 paths: AppPaths,
                 release_store: ReleaseStore,
                 keep: int = DEFAULT_KEEP_RELEASES,
                 grace_period: float = DEFAULT_GRACE_PERIOD):
        """Initialize retention policy

        Args:
            paths: Application path resolver
            release_store: Release store to prune
            keep: Number of releases to retain
            grace_period: Minimum age in seconds before scratch state is removed
        """
        if keep < 1:
            raise ValueError("keep must be at least 1")
        self.paths = paths
        self.release_store = release_store
        self.keep = keep
        self.grace_period = grace_period

    def stale_scratch(self) -> List[Path]:
        """Scratch entries older than the grace period"""
        if not self.paths.scratch_dir.is_dir():
            return []
        return [
            entry for entry in self.paths.scratch_dir.iterdir()
            if path_age(entry) > self.grace_period
        ]

    def housekeep(self) -> HousekeepingReport:
        """Prune old releases, then remove stale scratch and staging state"""
        report = HousekeepingReport()
        report.pruned = self.release_store.prune(self.keep)

        stale = self.stale_scratch() + self.release_store.stale_staging(self.grace_period)
        for entry in stale:
            if remove_path(entry):
                report.scratch_removed.append(entry)
                logger.info(f"Removed stale {entry}")

        if report.pruned:
            logger.info(f"Pruned releases: {', '.join(report.pruned)}")
        return report
