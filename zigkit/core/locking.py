"""
Cross-process locking for zigkit.

The provider's single-flight rule keeps one install running per process.
Several processes (two editor windows, an editor and the CLI) can share one
install directory, so mutations of that directory are additionally guarded
by a file lock.

Usage:
    from zigkit.core.locking import LockManager

    lock_manager = LockManager(install_dir / "lock")
    with lock_manager.install_lock(timeout=300):
        # publish a new version, repoint 'current'
        ...
"""

import logging
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout as LockTimeout

logger = logging.getLogger(__name__)


class LockManager:
    """
    Manages file locks for an install directory.

    Uses the `filelock` library, which releases locks automatically when the
    owning process dies.

    Attributes:
        lock_dir: Directory where lock files are stored
    """

    def __init__(self, lock_dir: Path):
        self.lock_dir = Path(lock_dir)
        self.lock_dir.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def install_lock(self, timeout: float = 300):
        """
        Acquire the lock protecting the installed-versions directory.

        Args:
            timeout: Maximum wait time in seconds (default: 300 for long downloads)

        Raises:
            LockTimeout: If lock can't be acquired within timeout
        """
        lock_path = self.lock_dir / "install.lock"
        lock = FileLock(lock_path, timeout=timeout)

        try:
            with lock:
                logger.debug(f"Acquired install lock: {lock_path}")
                yield
                logger.debug(f"Released install lock: {lock_path}")
        except LockTimeout as e:
            logger.error(
                f"Could not acquire install lock after {timeout}s. "
                "Another zigkit process may be installing."
            )
            raise LockTimeout(str(lock_path)) from e


__all__ = ["LockManager", "LockTimeout"]
