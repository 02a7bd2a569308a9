"""Owner identity, lock tokens, and process liveness helpers."""

from __future__ import annotations

import os
import random
import re
import subprocess
import time

TOKEN_RANDOM_MIN = 100000
TOKEN_RANDOM_MAX = 999999
TASKLIST_TIMEOUT_SECONDS = 5

_NUMERIC_ID = re.compile(r"\d+")


def _synthesized_identity() -> str:
    return f"{int(time.time())}_{random.randint(TOKEN_RANDOM_MIN, TOKEN_RANDOM_MAX)}"


def resolve_owner_identity() -> str:
    """Return an identifier for the current process.

    Uses the native PID. When that is unavailable, returns a synthesized
    ``<unix-seconds>_<random>`` identifier; the underscore marks it as
    non-numeric so liveness checks know PID semantics do not apply.
    """
    try:
        pid = os.getpid()
    except (AttributeError, OSError):
        return _synthesized_identity()
    if pid <= 0:
        return _synthesized_identity()
    return str(pid)


def is_synthesized_identity(owner_id: str) -> bool:
    """Return True when the owner id is not a plain numeric PID."""
    return _NUMERIC_ID.fullmatch(owner_id) is None


def generate_token(owner_id: str, *, now: float | None = None) -> str:
    """Return a token unique to one lock handle."""
    stamp = int(time.time() if now is None else now)
    return f"{owner_id}_{stamp}_{random.randint(TOKEN_RANDOM_MIN, TOKEN_RANDOM_MAX)}"


def _windows_pid_running(pid: int) -> bool:
    try:
        result = subprocess.run(
            ["tasklist", "/FI", f"PID eq {pid}", "/NH", "/FO", "CSV"],
            capture_output=True,
            text=True,
            check=False,
            timeout=TASKLIST_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError):
        return True
    if result.returncode != 0:
        return True
    return f'"{pid}"' in result.stdout


def _posix_pid_running(pid: int) -> bool:
    try:
        os.kill(pid, 0)
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but belongs to another user.
        return True
    except (OSError, OverflowError):
        # Includes PIDs too large for the platform to check.
        return True


def is_process_running(owner_id: str) -> bool:
    """Report whether the owner recorded in a lock file is still running.

    Ambiguous answers default to True so a detection failure never steals an
    active lock; the age threshold reclaims such records eventually.
    """
    if not owner_id:
        return False
    if is_synthesized_identity(owner_id):
        return True
    try:
        pid = int(owner_id)
    except ValueError:
        return True
    if pid <= 0:
        return False
    if os.name == "nt":
        return _windows_pid_running(pid)
    return _posix_pid_running(pid)
