"""Cross-process exclusive lock backed by a lock file."""

from __future__ import annotations

import os
import time
from enum import Enum
from pathlib import Path
from types import TracebackType
from typing import Callable

from .config_loader import LockConfig
from .errors import (
    LockConstructionError,
    LockExistsError,
    LockHeldError,
    LockWriteError,
    NoLockError,
    NotStaleError,
    OwnershipLostError,
    RemovalFailedError,
    TxLockError,
)
from .identity import generate_token, is_process_running, resolve_owner_identity
from .logging_utils import LOGGER
from .record import LockRecord, read_record, write_record_atomic


class LockState(Enum):
    """What currently sits at a lock path."""

    ABSENT = "absent"
    FRESH = "held"
    STALE = "stale"


class FileLock:
    """Advisory exclusive lock on a path shared between processes.

    The lock file's existence is the exclusion signal. Its content records
    the owner, acquisition time and a per-handle token used to decide
    staleness and to verify ownership before release.

    One instance is meant to be driven by a single thread at a time.
    """

    def __init__(
        self,
        path: str | Path | None,
        config: LockConfig | None = None,
        *,
        identity: Callable[[], str] = resolve_owner_identity,
        liveness: Callable[[str], bool] = is_process_running,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if path is None or os.fspath(path).strip() in {"", "."}:
            raise LockConstructionError("Lock file path is required.")
        self.path = Path(path)
        self.config = config or LockConfig()
        self._liveness = liveness
        self._clock = clock
        self._sleep = sleep
        self.owner_id = identity()
        self.token = generate_token(self.owner_id, now=clock())
        self.held = False

    def __repr__(self) -> str:
        return f"FileLock({str(self.path)!r}, owner_id={self.owner_id!r}, held={self.held})"

    def __enter__(self) -> FileLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if exc_type is None:
            self.release()
            return False
        try:
            self.release()
        except TxLockError as release_exc:
            LOGGER.warn(f"Release of {self.path} failed while handling {exc_type.__name__}: {release_exc}")
        return False

    def get_owner_identity(self) -> str:
        return self.owner_id

    def read_record(self) -> LockRecord | None:
        return read_record(self.path)

    def owner_running(self, record: LockRecord) -> bool:
        """Return whether the owner named in record appears to be running."""
        return self._liveness(record.owner_id)

    def _record_is_stale(self, record: LockRecord, now: float) -> bool:
        if not self.owner_running(record):
            return True
        return record.age_seconds(now) > self.config.stale_after_seconds

    def state(self) -> LockState:
        """Classify the lock path as absent, held by a live owner, or stale."""
        record = self.read_record()
        if record is None:
            return LockState.ABSENT
        if self._record_is_stale(record, self._clock()):
            return LockState.STALE
        return LockState.FRESH

    def is_stale(self) -> bool:
        """Return True when a lock file exists and may be reclaimed.

        An absent lock file is not stale; use state() to tell the two apart.
        """
        return self.state() is LockState.STALE

    def is_locked(self) -> bool:
        """Return True when a live, unexpired lock file exists."""
        return self.state() is LockState.FRESH

    def age_seconds(self) -> float | None:
        record = self.read_record()
        if record is None:
            return None
        return record.age_seconds(self._clock())

    def remove_stale(self) -> None:
        """Delete the lock file if it is stale.

        No token check is made here: this clears the way before acquiring,
        it does not release a lock we own.
        """
        record = self.read_record()
        if record is None:
            raise NoLockError(f"No lock file to remove at {self.path}.")
        now = self._clock()
        if not self._record_is_stale(record, now):
            raise NotStaleError(f"Lock at {self.path} is not stale (owner={record.owner_id}).")
        try:
            self.path.unlink()
        except FileNotFoundError:
            LOGGER.debug(f"Stale lock {self.path} was already removed by another process.")
            return
        except OSError as exc:
            raise RemovalFailedError(f"Failed to remove stale lock file {self.path}: {exc}") from exc
        LOGGER.warn(
            f"Removed stale lock {self.path} (owner={record.owner_id}, "
            f"age_seconds={int(record.age_seconds(now))})"
        )

    def _wait(self, deadline: float) -> None:
        remaining = deadline - self._clock()
        self._sleep(max(0.0, min(self.config.retry_delay_seconds, remaining)))

    def acquire(self) -> bool:
        """Acquire the lock, retrying until timeout_seconds elapses.

        Returns True once held. With timeout_seconds == 0 exactly one pass
        is made. Raises
        LockHeldError when a live lock outlasts the timeout, LockExistsError
        when a creation race is still lost at the deadline, LockWriteError
        on any other filesystem failure, and RemovalFailedError when a stale
        lock cannot be deleted.
        """
        if self.held:
            return True
        deadline = self._clock() + self.config.timeout_seconds
        while True:
            record = self.read_record()
            if record is not None:
                if self._record_is_stale(record, self._clock()):
                    try:
                        self.remove_stale()
                    except NotStaleError:
                        # Replaced or removed by someone else since the read.
                        pass
                    continue
                if self._clock() >= deadline:
                    raise LockHeldError(
                        f"Lock {self.path} is held by another process (owner={record.owner_id})."
                    )
                self._wait(deadline)
                continue

            candidate = LockRecord(
                owner_id=self.owner_id,
                timestamp=int(self._clock()),
                token=self.token,
            )
            try:
                write_record_atomic(self.path, candidate)
            except LockExistsError:
                if self._clock() >= deadline:
                    raise
                self._wait(deadline)
                continue
            except LockWriteError as exc:
                LOGGER.error(str(exc))
                raise
            self.held = True
            LOGGER.debug(f"Acquired {self.path} (token={self.token})")
            return True

    def try_acquire(self) -> bool:
        """Acquire the lock, returning False instead of raising on contention."""
        try:
            self.acquire()
        except (LockHeldError, LockExistsError):
            return False
        return True

    def release(self) -> bool:
        """Release the lock if this handle holds it.

        Returns True; releasing an unheld handle is a no-op. If the lock file is gone or
        carries another token, the handle drops its claim and raises
        OwnershipLostError without touching the file.
        """
        if not self.held:
            return True
        record = self.read_record()
        if record is None or record.token != self.token:
            self.held = False
            owner = record.owner_id if record is not None else None
            LOGGER.warn(f"Lock {self.path} is no longer owned by this handle (current owner={owner}).")
            raise OwnershipLostError(f"Lock {self.path} is no longer owned by this handle.")
        try:
            self.path.unlink()
        except FileNotFoundError as exc:
            self.held = False
            raise OwnershipLostError(f"Lock {self.path} disappeared before release.") from exc
        except OSError as exc:
            raise RemovalFailedError(f"Failed to remove lock file {self.path}: {exc}") from exc
        self.held = False
        LOGGER.debug(f"Released {self.path}")
        return True
