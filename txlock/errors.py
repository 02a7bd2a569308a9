"""Custom errors for txlock."""


class TxLockError(Exception):
    """Base txlock exception."""


class LockConfigError(TxLockError):
    """Raised when lock configuration is invalid or missing."""


class LockConstructionError(LockConfigError):
    """Raised when a lock is constructed without a usable path."""


class LockRecordError(TxLockError):
    """Raised when a lock record exists but cannot be read."""


class LockHeldError(TxLockError):
    """Raised when a valid lock is held by another owner and time ran out."""


class AcquireFailedError(TxLockError):
    """Raised when the lock file could not be created."""


class LockExistsError(AcquireFailedError):
    """Raised when another writer published the lock file first."""


class LockWriteError(AcquireFailedError):
    """Raised when writing the lock file fails for a reason other than a lost race."""


class NotStaleError(TxLockError):
    """Raised when stale-lock removal is requested for a live lock."""


class NoLockError(NotStaleError):
    """Raised when stale-lock removal is requested but no lock file exists."""


class RemovalFailedError(TxLockError):
    """Raised when the lock file cannot be deleted."""


class OwnershipLostError(TxLockError):
    """Raised when a release finds the lock file no longer carries our token."""
