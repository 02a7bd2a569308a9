"""stderr logger helpers for txlock."""

from __future__ import annotations

import os
import sys
from datetime import datetime, timezone

DEBUG_ENV = "TXLOCK_DEBUG"


def utc_timestamp() -> str:
    """Return an RFC3339 UTC timestamp with second precision."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class TxLockLogger:
    """Simple structured logger writing to stderr only."""

    def _emit(self, level: str, message: str) -> None:
        print(f"[TXLOCK {utc_timestamp()}] {level}: {message}", file=sys.stderr, flush=True)

    def debug(self, message: str) -> None:
        if os.getenv(DEBUG_ENV):
            self._emit("DEBUG", message)

    def info(self, message: str) -> None:
        self._emit("INFO", message)

    def warn(self, message: str) -> None:
        self._emit("WARN", message)

    def error(self, message: str) -> None:
        self._emit("ERROR", message)


LOGGER = TxLockLogger()
