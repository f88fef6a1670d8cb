"""Tests for the per-application deploy lock."""

import pytest

from release_tool.api.exceptions import DeploymentInProgress
from release_tool.core.lock import DeployLock


class TestDeployLock:
    """Tests for DeployLock."""

    def test_second_holder_times_out(self, temp_dir) -> None:
        lock_file = temp_dir / "demo" / ".deploy.lock"

        with DeployLock(lock_file, "demo", timeout=0):
            contender = DeployLock(lock_file, "demo", timeout=0.2, poll_interval=0.05)
            with pytest.raises(DeploymentInProgress, match="demo"):
                contender.acquire()
            assert not contender.is_held

    def test_released_on_exception(self, temp_dir) -> None:
        lock_file = temp_dir / ".deploy.lock"

        with pytest.raises(RuntimeError):
            with DeployLock(lock_file, "demo"):
                raise RuntimeError("interrupted")

        with DeployLock(lock_file, "demo", timeout=0) as lock:
            assert lock.is_held

    def test_applications_do_not_contend(self, temp_dir) -> None:
        with DeployLock(temp_dir / "a" / ".deploy.lock", "a", timeout=0):
            with DeployLock(temp_dir / "b" / ".deploy.lock", "b", timeout=0) as other:
                assert other.is_held

    def test_release_is_idempotent(self, temp_dir) -> None:
        lock = DeployLock(temp_dir / ".deploy.lock", "demo")
        lock.acquire()
        lock.release()
        lock.release()

        assert not lock.is_held
        assert (temp_dir / ".deploy.lock").exists()
