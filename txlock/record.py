"""Lock file record codec and create-or-fail publishing."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .errors import LockExistsError, LockRecordError, LockWriteError
from .logging_utils import LOGGER


@dataclass(frozen=True)
class LockRecord:
    """Metadata persisted inside a lock file."""

    owner_id: str
    timestamp: int
    token: str | None = None

    def age_seconds(self, now: float) -> float:
        return now - self.timestamp


def format_record(record: LockRecord) -> str:
    """Serialize a record as owner, timestamp and token lines."""
    return f"{record.owner_id}\n{int(record.timestamp)}\n{record.token or ''}\n"


def _parse_timestamp(raw: str | None) -> int:
    if raw is None:
        return 0
    try:
        return int(raw.strip())
    except ValueError:
        return 0


def parse_record(text: str) -> LockRecord:
    """Parse lock file content.

    Only the first three non-empty lines are used. A missing or unparseable
    timestamp becomes 0 so the record reads as maximally stale.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()][:3]
    owner_id = lines[0] if lines else ""
    timestamp = _parse_timestamp(lines[1] if len(lines) > 1 else None)
    token = lines[2] if len(lines) > 2 else None
    return LockRecord(owner_id=owner_id, timestamp=timestamp, token=token)


def read_record(path: Path) -> LockRecord | None:
    """Load the record at path, or None when no lock file exists."""
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise LockRecordError(f"Failed to read lock file at {path}: {exc}") from exc
    return parse_record(text)


def temp_path_for(path: Path, token: str) -> Path:
    """Return the per-handle staging path used before publishing."""
    return path.with_name(f"{path.name}.{token}.tmp")


def _publish(temp: Path, path: Path) -> None:
    if os.name == "nt":
        # rename refuses to replace an existing file on Windows.
        os.rename(temp, path)
        return
    os.link(temp, path)


def _discard(temp: Path) -> None:
    try:
        temp.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        LOGGER.warn(f"Could not remove staging file {temp}: {exc}")


def write_record_atomic(path: Path, record: LockRecord) -> None:
    """Write record to a staging file, then publish it at path.

    Publishing never replaces an existing file: if path already exists,
    LockExistsError is raised. Any other filesystem failure raises
    LockWriteError.
    """
    temp = temp_path_for(path, record.token or record.owner_id)
    try:
        with temp.open("w", encoding="utf-8") as handle:
            handle.write(format_record(record))
            handle.flush()
            os.fsync(handle.fileno())
        _publish(temp, path)
    except FileExistsError as exc:
        raise LockExistsError(f"Lock file already exists: {path}") from exc
    except OSError as exc:
        raise LockWriteError(f"Failed to write lock file at {path}: {exc}") from exc
    finally:
        _discard(temp)
