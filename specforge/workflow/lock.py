# specforge/workflow/lock.py
"""
Advisory single-writer lock for one spec directory.

Two runs against the same spec would race on the checkpoint record. The
lock file (<spec dir>/.specforge/run.lock) is created with O_EXCL and holds
the owner's pid, host and start time. A lock whose owner is gone, or that
is older than `stale_after` seconds, is reclaimed.
"""

import json
import logging
import os
import socket
import time
from pathlib import Path
from types import TracebackType

import psutil

from specforge.errors import ErrorCode, SpecforgeError, make_error, normalize_exception
from specforge.storage import STATE_DIR_NAME, load_json, state_dir

logger = logging.getLogger(__name__)

LOCK_FILE = "run.lock"
DEFAULT_STALE_AFTER = 6 * 3600.0
_WRITE_GRACE = 5.0


class RunLock:
    """
    Context manager around the run lock file.

    Example:
        with RunLock(spec_path):
            ...
    """

    def __init__(
        self,
        spec_path: Path | str,
        stale_after: float = DEFAULT_STALE_AFTER,
        dir_name: str = STATE_DIR_NAME,
    ) -> None:
        self._path = state_dir(spec_path, dir_name) / LOCK_FILE
        self._stale_after = stale_after
        self._held = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        """
        Take the lock, reclaiming it once if the current holder is stale.

        Raises:
            SpecforgeError: WORKFLOW_LOCKED if another live run holds the lock,
                a FILESYSTEM error if the state directory cannot be created
        """
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SpecforgeError(normalize_exception(e, str(self._path.parent))) from e
        if self._try_create():
            return

        owner = load_json(self._path)
        if not self._is_stale(owner):
            pid = owner.get("pid") if isinstance(owner, dict) else None
            raise SpecforgeError(
                make_error(
                    ErrorCode.WORKFLOW_LOCKED,
                    f"Another run (pid {pid}) is in progress for this spec",
                    path=str(self._path),
                    pid=pid,
                )
            )

        logger.warning(f"Reclaiming stale run lock {self._path} (owner: {owner})")
        self._path.unlink(missing_ok=True)
        if not self._try_create():
            raise SpecforgeError(
                make_error(ErrorCode.WORKFLOW_LOCKED, path=str(self._path))
            )

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove run lock {self._path}: {e}")

    def _try_create(self) -> bool:
        try:
            fd = os.open(self._path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        except OSError as e:
            raise SpecforgeError(normalize_exception(e, str(self._path))) from e

        owner = {"pid": os.getpid(), "timestamp": time.time(), "host": socket.gethostname()}
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(owner, f)
        self._held = True
        logger.debug(f"Acquired run lock {self._path}")
        return True

    def _is_stale(self, owner: object) -> bool:
        # Unreadable lock: stale unless it was just created and is still being written
        if not isinstance(owner, dict):
            try:
                return time.time() - self._path.stat().st_mtime > _WRITE_GRACE
            except FileNotFoundError:
                return True
        timestamp = owner.get("timestamp")
        if not isinstance(timestamp, (int, float)) or time.time() - timestamp > self._stale_after:
            return True
        pid = owner.get("pid")
        if not isinstance(pid, int):
            return True
        # A pid on another host cannot be probed; rely on age alone
        if owner.get("host") != socket.gethostname():
            return False
        return not psutil.pid_exists(pid)

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
