"""
Session Lock
============
Filesystem-level mutual exclusion keyed by target identity.

Only one checkfix session may run per target at a time. The lock records
the owning PID so a lock left behind by a crashed session can be detected
and reclaimed.

File backend layout:
    <tmp>/checkfix-<identity>.lock/      (directory; mkdir is the atomic step)
    <tmp>/checkfix-<identity>.lock/pid   (owner PID, moved in atomically)

Release only removes a lock whose pid file still names the releasing
owner, so a late cleanup can never delete the lock of a newer session
that reclaimed a stale one.
"""
import os
import time
import shutil
import logging
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional

from checkfix.core import config
from checkfix.core.constants import LOCK_ATTEMPTS, LOCK_BACKOFF_SECONDS
from checkfix.core.errors import AlreadyRunningError, LockError
from checkfix.utils.process_utils import pid_is_alive

logger = logging.getLogger(__name__)


@dataclass
class LockHandle:
    """Proof of ownership returned by ``acquire``."""
    identity: str
    owner_pid: int
    path: str = ""
    released: bool = False


class LockBackend(ABC):
    """Pluggable lock storage."""

    @abstractmethod
    def acquire(self, identity: str) -> LockHandle:
        """Take the lock or raise AlreadyRunningError / LockError."""

    @abstractmethod
    def release(self, handle: LockHandle) -> None:
        """Give the lock back. Must be idempotent."""


def _read_pid(path: str) -> Optional[int]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read().strip()
    except OSError:
        return None
    return int(raw) if raw.isdigit() else None


class FileLockBackend(LockBackend):
    """
    mkdir-based lock with a PID file and stale-owner recovery.

    Parameters
    ----------
    lock_root : str
        Directory that holds the lock directories (default: CHECKFIX_TMP_DIR).
    is_alive : callable
        PID liveness probe; injectable for tests.
    attempts : int
        How many times to try before giving up.
    backoff : float
        Pause after reclaiming a stale lock.
    """

    def __init__(
        self,
        lock_root: Optional[str] = None,
        is_alive: Callable[[int], bool] = pid_is_alive,
        attempts: int = LOCK_ATTEMPTS,
        backoff: float = LOCK_BACKOFF_SECONDS,
    ) -> None:
        self.lock_root = lock_root or config.TMP_DIR
        self.is_alive = is_alive
        self.attempts = attempts
        self.backoff = backoff

    def lock_dir(self, identity: str) -> str:
        return os.path.join(self.lock_root, f"checkfix-{identity}.lock")

    def acquire(self, identity: str) -> LockHandle:
        lock_dir = self.lock_dir(identity)
        pid_path = os.path.join(lock_dir, "pid")
        owner = os.getpid()

        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.lock_root, prefix="checkfix-pid-")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(f"{owner}\n")
        except OSError as exc:
            raise LockError(f"cannot create temp file: {exc}") from exc

        try:
            for attempt in range(1, self.attempts + 1):
                try:
                    os.mkdir(lock_dir)
                except FileExistsError:
                    pass
                except OSError as exc:
                    raise LockError(f"cannot create lock {lock_dir}: {exc}") from exc
                else:
                    try:
                        os.replace(tmp_path, pid_path)
                    except OSError as exc:
                        shutil.rmtree(lock_dir, ignore_errors=True)
                        raise LockError(f"cannot install PID file: {exc}") from exc
                    logger.debug("Lock acquired: %s", lock_dir)
                    return LockHandle(identity=identity, owner_pid=owner, path=lock_dir)

                pid = _read_pid(pid_path)
                if pid is not None and self.is_alive(pid):
                    raise AlreadyRunningError(pid)

                logger.warning(
                    "Reclaiming stale lock %s (owner %s) [attempt %d/%d]",
                    lock_dir, pid if pid is not None else "unknown", attempt, self.attempts,
                )
                shutil.rmtree(lock_dir, ignore_errors=True)
                time.sleep(self.backoff)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

        raise LockError("cannot acquire lock")

    def release(self, handle: LockHandle) -> None:
        if handle.released:
            return
        handle.released = True
        pid_path = os.path.join(handle.path, "pid")
        if _read_pid(pid_path) == handle.owner_pid:
            shutil.rmtree(handle.path, ignore_errors=True)
            logger.debug("Lock released: %s", handle.path)
        else:
            logger.debug("Lock %s no longer ours, leaving it", handle.path)


class InMemoryLockBackend(LockBackend):
    """
    Process-local lock table with the same semantics as the file backend.

    ``owner_pid`` may be overridden per acquire to simulate other sessions.
    """

    def __init__(self, is_alive: Callable[[int], bool] = pid_is_alive) -> None:
        self.is_alive = is_alive
        self.owners: Dict[str, int] = {}

    def acquire(self, identity: str, owner_pid: Optional[int] = None) -> LockHandle:
        owner = owner_pid if owner_pid is not None else os.getpid()
        current = self.owners.get(identity)
        if current is not None and self.is_alive(current):
            raise AlreadyRunningError(current)
        if current is not None:
            logger.warning("Reclaiming stale in-memory lock for %s (owner %d)", identity, current)
        self.owners[identity] = owner
        return LockHandle(identity=identity, owner_pid=owner)

    def release(self, handle: LockHandle) -> None:
        if handle.released:
            return
        handle.released = True
        if self.owners.get(handle.identity) == handle.owner_pid:
            del self.owners[handle.identity]


class SessionLock:
    """Scoped acquisition over a LockBackend."""

    def __init__(self, backend: Optional[LockBackend] = None) -> None:
        self.backend = backend or FileLockBackend()

    @contextmanager
    def held(self, identity: str) -> Iterator[LockHandle]:
        handle = self.backend.acquire(identity)
        try:
            yield handle
        finally:
            self.backend.release(handle)
