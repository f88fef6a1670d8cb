"""Per-application deploy lock"""

import fcntl
import logging
import os
import time
from pathlib import Path
from typing import Optional

from ..api.exceptions import DeploymentInProgress
from ..constants import DEFAULT_LOCK_TIMEOUT, LOCK_POLL_INTERVAL

logger = logging.getLogger(__name__)


class DeployLock:
    """Exclusive, host-local lock on one application's base directory

    Uses ``flock`` on a lock file, so the kernel drops the lock if the
    holding process dies. The lock file itself is never removed.

    Example:
        >>> with DeployLock(paths.lock_file, "demo", timeout=5):
        ...     orchestrate()
    """

    def __init__(self, lock_file: Path, app_name: str,
                 timeout: float = DEFAULT_LOCK_TIMEOUT,
                 poll_interval: float = LOCK_POLL_INTERVAL):
        self.lock_file = Path(lock_file)
        self.app_name = app_name
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._fd: Optional[int] = None
        self.wait_time: float = 0.0

    @property
    def is_held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        """Acquire the lock or raise ``DeploymentInProgress`` after the timeout"""
        if self._fd is not None:
            raise RuntimeError(f"Lock already held: {self.lock_file}")

        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.lock_file, os.O_RDWR | os.O_CREAT, 0o644)
        started = time.monotonic()
        deadline = started + self.timeout

        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    os.close(fd)
                    raise DeploymentInProgress(self.app_name, self.timeout) from None
                time.sleep(self.poll_interval)
            except BaseException:
                os.close(fd)
                raise

        self._fd = fd
        self.wait_time = time.monotonic() - started

        # Holder pid is informational only
        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        logger.debug(f"Acquired {self.lock_file} after {self.wait_time:.2f}s")

    def release(self) -> None:
        """Release the lock; safe to call when not held"""
        if self._fd is None:
            return

        fd, self._fd = self._fd, None
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
        logger.debug(f"Released {self.lock_file}")

    def __enter__(self) -> 'DeployLock':
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
