# tagflow/storage/file_lock.py
"""
跨进程文件锁，串行化同一项目回合历史的写入。

Unix 使用 fcntl.flock，Windows 使用 msvcrt.locking。加锁采用非阻塞轮询，
超过 ``timeout`` 秒仍未拿到锁时抛出 ``LockTimeout``；退出 with 块时总是释放。
"""

import logging
import sys
import time
from pathlib import Path
from typing import IO, Optional

if sys.platform == "win32":
    import msvcrt
else:
    import fcntl

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.05


class LockTimeout(RuntimeError):
    pass


if sys.platform == "win32":
    def _try_lock(handle: IO) -> bool:
        try:
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
        except OSError:
            return False
        return True

    def _unlock(handle: IO) -> None:
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
else:
    def _try_lock(handle: IO) -> bool:
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            return False
        return True

    def _unlock(handle: IO) -> None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


class FileLock:
    """Exclusive lock on ``path``; ``timeout=None`` waits forever."""

    def __init__(self, path: str, timeout: Optional[float] = 10.0):
        self.path = Path(path)
        self.timeout = timeout
        self._handle: Optional[IO] = None

    @property
    def locked(self) -> bool:
        return self._handle is not None

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            handle = open(self.path, "w")
        except OSError as e:
            raise RuntimeError(f"Cannot open lock file {self.path}: {e}") from e

        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        try:
            while not _try_lock(handle):
                if deadline is not None and time.monotonic() >= deadline:
                    raise LockTimeout(f"Timed out after {self.timeout}s waiting for {self.path}")
                time.sleep(POLL_INTERVAL)
        except BaseException:
            handle.close()
            raise
        self._handle = handle

    def release(self) -> None:
        if self._handle is None:
            return
        try:
            _unlock(self._handle)
        except OSError as e:
            logger.warning("Failed to release lock %s: %s", self.path, e)
        finally:
            self._handle.close()
            self._handle = None

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
